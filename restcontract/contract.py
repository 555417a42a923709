"""
Route contracts: the declarative, per-endpoint description a request is checked against.

Contracts are built once when routes are registered and are read-only
afterwards, so a single contract can be shared by concurrent requests.
"""

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from .casting import ParameterType
from .exceptions import (
    AmbiguousStatusCode,
    DuplicateParameter,
    InvalidParameter,
    NoContentTypeDefined,
)
from .models import ErrorCode, HTTPMethod, ValidationError, sentence_case

logger = logging.getLogger(__name__)

Validator = Callable[[Any, Any], None]


class ParameterLocation(str, Enum):
    """Where a parameter is read from. Opaque to the enforcement pipeline."""

    QUERY = "query"
    PATH = "path"
    HEADER = "header"
    FORM = "form"


def media_type(content_type: Optional[str]) -> str:
    """Strip parameters such as charset from a Content-Type value and lower-case it.

    Examples:
        >>> media_type("Application/JSON; charset=utf-8")
        'application/json'
    """
    if not content_type:
        return ""
    return content_type.split(";", 1)[0].strip().lower()


_PYTHON_TYPES = {
    ParameterType.STRING: (str,),
    ParameterType.INTEGER: (int,),
    ParameterType.NUMBER: (int, float),
    ParameterType.BOOLEAN: (bool,),
    ParameterType.DATE: (datetime,),
    ParameterType.ARRAY: (list,),
}


@dataclass(frozen=True)
class ParameterSpec:
    """Declared request parameter and the constraints its value must satisfy."""

    name: str
    type: ParameterType = ParameterType.STRING
    location: ParameterLocation = ParameterLocation.QUERY
    required: bool = False
    enum: Optional[Tuple[Any, ...]] = None
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    validators: Tuple[Validator, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "type", ParameterType(self.type))
        object.__setattr__(self, "location", ParameterLocation(self.location))
        if self.enum is not None:
            object.__setattr__(self, "enum", tuple(self.enum))
        object.__setattr__(self, "validators", tuple(self.validators))

    def assert_value(self, cast_value: Any, raw_value: Any) -> None:
        """Check ``cast_value`` against every constraint of this parameter.

        Args:
            cast_value: The value after type coercion
            raw_value: The value as received from the transport

        Raises:
            InvalidParameter: with every violation found for this parameter
        """
        errors: List[ValidationError] = []

        if raw_value is None or raw_value == "":
            if self.required:
                errors.append(self._error("is required", ErrorCode.PARAMETER_REQUIRED))
                raise InvalidParameter(errors)
            return

        if not self._has_declared_type(cast_value):
            errors.append(self._error(f"must be of type {self.type.value}", ErrorCode.PARAMETER_TYPE))
            raise InvalidParameter(errors)

        if self.enum is not None and cast_value not in self.enum:
            allowed = ", ".join(str(value) for value in self.enum)
            errors.append(self._error(f"must be one of {allowed}", ErrorCode.PARAMETER_ENUM))

        if self.minimum is not None and self._is_number(cast_value) and cast_value < self.minimum:
            errors.append(self._error(f"must be greater than or equal to {self.minimum}", ErrorCode.PARAMETER_MINIMUM))

        if self.maximum is not None and self._is_number(cast_value) and cast_value > self.maximum:
            errors.append(self._error(f"must be less than or equal to {self.maximum}", ErrorCode.PARAMETER_MAXIMUM))

        if isinstance(cast_value, (str, list)):
            if self.min_length is not None and len(cast_value) < self.min_length:
                errors.append(self._error(f"must have a length of at least {self.min_length}", ErrorCode.PARAMETER_MIN_LENGTH))
            if self.max_length is not None and len(cast_value) > self.max_length:
                errors.append(self._error(f"must have a length of at most {self.max_length}", ErrorCode.PARAMETER_MAX_LENGTH))

        if self.pattern is not None and isinstance(cast_value, str) and not re.search(self.pattern, cast_value):
            errors.append(self._error(f"must match pattern {self.pattern}", ErrorCode.PARAMETER_PATTERN))

        for validator in self.validators:
            try:
                validator(cast_value, raw_value)
            except InvalidParameter as e:
                errors.extend(e.errors)
            except ValueError as e:
                errors.append(self._error(str(e), ErrorCode.PARAMETER_CONSTRAINT))

        if errors:
            raise InvalidParameter(errors)

    def _has_declared_type(self, value: Any) -> bool:
        if isinstance(value, bool) and self.type is not ParameterType.BOOLEAN:
            return False
        return isinstance(value, _PYTHON_TYPES[self.type])

    @staticmethod
    def _is_number(value: Any) -> bool:
        return isinstance(value, (int, float)) and not isinstance(value, bool)

    def _error(self, detail: str, code: ErrorCode) -> ValidationError:
        return ValidationError(sentence_case(f"{self.name} parameter {detail}"), code)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterSpec":
        """Build a parameter from a parsed specification mapping.

        Accepts ``in`` as an alias of ``location`` and camelCase length keys.
        """
        return cls(
            name=data["name"],
            type=data.get("type", ParameterType.STRING),
            location=data.get("location", data.get("in", ParameterLocation.QUERY)),
            required=bool(data.get("required", False)),
            enum=data.get("enum"),
            minimum=data.get("minimum"),
            maximum=data.get("maximum"),
            min_length=data.get("min_length", data.get("minLength")),
            max_length=data.get("max_length", data.get("maxLength")),
            pattern=data.get("pattern"),
        )


def _as_tuple(values: Optional[Iterable[Any]]) -> Tuple[Any, ...]:
    if values is None:
        return ()
    if isinstance(values, str):
        return (values,)
    return tuple(values)


@dataclass(frozen=True)
class RouteContract:
    """Immutable description of everything a route accepts and produces."""

    path: str
    method: Union[HTTPMethod, str] = HTTPMethod.GET
    resource: Optional[str] = None
    protocols: Sequence[str] = ("HTTP", "HTTPS")
    request_content_types: Sequence[str] = ()
    response_content_types: Sequence[str] = ("application/json",)
    status_codes: Sequence[int] = (200,)
    parameters: Sequence[ParameterSpec] = ()
    schemas: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        method = self.method
        if isinstance(method, str):
            method = HTTPMethod(method.upper())
        object.__setattr__(self, "method", method)
        object.__setattr__(self, "resource", self.resource or self.path)
        object.__setattr__(self, "protocols", _as_tuple(self.protocols))
        object.__setattr__(self, "request_content_types", _as_tuple(self.request_content_types))
        object.__setattr__(self, "response_content_types", _as_tuple(self.response_content_types))
        object.__setattr__(self, "status_codes", tuple(int(code) for code in _as_tuple(self.status_codes)))
        object.__setattr__(self, "parameters", _as_tuple(self.parameters))
        schemas = {media_type(content_type): schema for content_type, schema in dict(self.schemas).items()}
        object.__setattr__(self, "schemas", MappingProxyType(schemas))

    def schema_for(self, content_type: Optional[str]) -> Optional[Any]:
        """Payload body schema declared for ``content_type``, or None when no body is expected."""
        return self.schemas.get(media_type(content_type))

    @property
    def success_status_code(self) -> int:
        """The single 2xx status code declared by this contract.

        Raises:
            AmbiguousStatusCode: if zero or several 2xx codes are declared
        """
        success = [code for code in self.status_codes if 200 <= code < 300]
        if len(success) != 1:
            raise AmbiguousStatusCode(
                f"{self.method.value} {self.path} must declare exactly one 2xx status code, "
                f"got {list(self.status_codes)}"
            )
        return success[0]

    def parameter(self, name: str) -> Optional[ParameterSpec]:
        for spec in self.parameters:
            if spec.name == name:
                return spec
        return None

    def validate(self) -> "RouteContract":
        """Check the registration-time invariants of this contract.

        Raises:
            AmbiguousStatusCode: if the contract does not declare exactly one 2xx code
            NoContentTypeDefined: if no response content type is declared
            DuplicateParameter: if a parameter name is declared twice
        """
        self.success_status_code

        if not self.response_content_types:
            raise NoContentTypeDefined(f"{self.method.value} {self.path} declares no response content type")

        seen = set()
        for spec in self.parameters:
            if spec.name in seen:
                raise DuplicateParameter(f"{self.method.value} {self.path} declares parameter {spec.name!r} twice")
            seen.add(spec.name)

        return self

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RouteContract":
        """Build a contract from a mapping produced by a specification parser.

        Example:
            contract = RouteContract.from_dict({
                "path": "/items/{id}",
                "method": "GET",
                "protocols": ["HTTPS"],
                "response_content_types": ["application/json"],
                "status_codes": [200],
                "parameters": [{"name": "id", "type": "integer", "in": "path"}],
            })
        """
        kwargs: Dict[str, Any] = {
            key: data[key]
            for key in (
                "path", "method", "resource", "protocols", "request_content_types",
                "response_content_types", "status_codes", "schemas",
            )
            if key in data
        }
        parameters = [
            spec if isinstance(spec, ParameterSpec) else ParameterSpec.from_dict(spec)
            for spec in data.get("parameters", ())
        ]
        return cls(parameters=parameters, **kwargs)
