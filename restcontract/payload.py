"""
Payload body validation against the schema a route declares for a content type.

JSON bodies are checked with ``jsonschema``, XML bodies with ``lxml`` and an
XML Schema. Both paths hand back the same plain structure (dicts, lists and
scalars) so handlers see one shape whatever the wire format.
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Union

from jsonschema import SchemaError, validators
from jsonschema.exceptions import ValidationError as SchemaViolation
from lxml import etree

from .exceptions import ConfigurationError, ContractViolation, InvalidBody, UnsupportedMediaType
from .models import ErrorCode, ValidationError, sentence_case

logger = logging.getLogger(__name__)

Body = Union[str, bytes, None]


@dataclass(frozen=True)
class BodyOutcome:
    """Result of validating a payload body: the parsed value or the failure."""

    value: Any = None
    failure: Optional[ContractViolation] = None

    @property
    def ok(self) -> bool:
        return self.failure is None


def body_family(content_type: Optional[str]) -> Optional[str]:
    """Content-type family used to pick the validation path."""
    lowered = (content_type or "").lower()
    if "json" in lowered:
        return "json"
    if "xml" in lowered:
        return "xml"
    return None


def _as_bytes(body: Body) -> bytes:
    if body is None:
        return b""
    if isinstance(body, str):
        return body.encode("utf-8")
    return body


def load_json_schema(schema: Any) -> Dict[str, Any]:
    """Accept a schema as a mapping or as JSON text."""
    if isinstance(schema, (str, bytes)):
        try:
            return json.loads(schema)
        except ValueError as e:
            raise ConfigurationError(f"Invalid JSON schema: {e}")
    return schema


def load_xml_schema(schema: Any) -> etree.XMLSchema:
    """Compile an XML Schema given as text, bytes or a parsed document."""
    try:
        if isinstance(schema, (str, bytes)):
            schema = etree.fromstring(_as_bytes(schema))
        return etree.XMLSchema(schema)
    except (etree.XMLSyntaxError, etree.XMLSchemaParseError) as e:
        raise ConfigurationError(f"Invalid XML schema: {e}")


def xml_to_data(element: etree._Element) -> Any:
    """Convert an element into dicts, lists and strings, ignoring attributes.

    Leaf elements become their stripped text (None when empty). Repeated child
    elements are gathered into a list under their shared name.
    """
    children = list(element.iterchildren(tag=etree.Element))
    if not children:
        text = (element.text or "").strip()
        return text if text else None

    result: Dict[str, Any] = {}
    repeated = set()
    for child in children:
        key = etree.QName(child).localname
        value = xml_to_data(child)
        if key not in result:
            result[key] = value
        elif key in repeated:
            result[key].append(value)
        else:
            result[key] = [result[key], value]
            repeated.add(key)
    return result


class PayloadBodyValidator:
    """Structural validation of request bodies, branching on content-type family."""

    def check_schema(self, content_type: str, schema: Any) -> None:
        """Verify a declared schema compiles, at registration time.

        Raises:
            ConfigurationError: if the schema is invalid
        """
        family = body_family(content_type)
        if family == "json":
            schema = load_json_schema(schema)
            try:
                validators.validator_for(schema).check_schema(schema)
            except SchemaError as e:
                raise ConfigurationError(f"Invalid JSON schema for {content_type}: {e.message}")
        elif family == "xml":
            load_xml_schema(schema)

    def validate(self, body: Body, content_type: Optional[str], schema: Any) -> BodyOutcome:
        """Validate ``body`` against ``schema`` using the path its content type selects."""
        family = body_family(content_type)
        if family == "json":
            return self.validate_json(body, schema)
        if family == "xml":
            return self.validate_xml(body, schema)
        return BodyOutcome(failure=UnsupportedMediaType(f"No payload validation for content type {content_type!r}"))

    def validate_json(self, body: Body, schema: Any) -> BodyOutcome:
        try:
            value = json.loads(_as_bytes(body))
        except ValueError as e:
            logger.debug(f"JSON body parse failed: {e}")
            return BodyOutcome(failure=InvalidBody([ValidationError(sentence_case(str(e)), ErrorCode.JSON_PARSE)]))

        schema = load_json_schema(schema)
        validator = validators.validator_for(schema)(schema)
        errors = [
            ValidationError(
                sentence_case(f"{self._property_path(violation)} property: {violation.message}"),
                ErrorCode.JSON_SCHEMA_PROPERTY,
            )
            for violation in validator.iter_errors(value)
        ]
        if errors:
            return BodyOutcome(failure=InvalidBody(errors))
        return BodyOutcome(value=value)

    def validate_xml(self, body: Body, schema: Any) -> BodyOutcome:
        # Recover mode logs every structural error instead of stopping at the first
        parser = etree.XMLParser(resolve_entities=False, no_network=True, remove_comments=True, recover=True)
        document = None
        syntax_error = "Document is empty"
        try:
            document = etree.fromstring(_as_bytes(body), parser)
        except etree.XMLSyntaxError as e:
            syntax_error = str(e)
        except ValueError as e:
            return BodyOutcome(failure=InvalidBody([ValidationError(sentence_case(str(e)), ErrorCode.XML_PARSE)]))

        errors = self._log_errors(parser.error_log.filter_from_errors(), ErrorCode.XML_PARSE)
        if errors or document is None:
            if not errors:
                errors = [ValidationError(sentence_case(syntax_error), ErrorCode.XML_PARSE)]
            logger.debug(f"XML body parse failed with {len(errors)} error(s)")
            return BodyOutcome(failure=InvalidBody(errors))

        xml_schema = load_xml_schema(schema)
        if not xml_schema.validate(document):
            errors = self._log_errors(xml_schema.error_log, ErrorCode.XML_SCHEMA)
            if not errors:
                errors = [ValidationError("Document does not match its schema", ErrorCode.XML_SCHEMA)]
            return BodyOutcome(failure=InvalidBody(errors))

        return BodyOutcome(value=xml_to_data(document))

    @staticmethod
    def _log_errors(error_log: Any, code: ErrorCode) -> List[ValidationError]:
        return [
            ValidationError(sentence_case(f"line {entry.line}: {entry.message}"), code)
            for entry in error_log
        ]

    @staticmethod
    def _property_path(violation: SchemaViolation) -> str:
        path = ".".join(str(part) for part in violation.absolute_path)
        if violation.validator == "required" and isinstance(violation.instance, dict):
            for name in violation.validator_value:
                if name not in violation.instance and repr(name) in violation.message:
                    return f"{path}.{name}" if path else name
        return path
