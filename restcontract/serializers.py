"""
Serializers turning handler content into response bodies, one per format family.
"""

import json
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict

from lxml import etree

from .exceptions import UnsupportedFormat

_XML_NAME_RE = re.compile(r"^[A-Za-z_][\w.-]*$")


def normalize(data: Any) -> Any:
    """Reduce content to plain dicts, lists and scalars.

    Pydantic models are dumped, dataclass-like objects are not touched.
    """
    if hasattr(data, "model_dump"):
        return normalize(data.model_dump())
    if isinstance(data, dict):
        return {str(key): normalize(value) for key, value in data.items()}
    if isinstance(data, (list, tuple, set)):
        return [normalize(item) for item in data]
    if isinstance(data, (datetime, date)):
        return data.isoformat()
    if isinstance(data, Decimal):
        return float(data)
    return data


class Serializer:
    """Base class for format serializers."""

    format: str = ""

    def serialize(self, data: Any) -> str:
        raise NotImplementedError


class JSONSerializer(Serializer):
    """Serialize content as JSON text."""

    format = "json"

    def serialize(self, data: Any) -> str:
        return json.dumps(normalize(data))


class XMLSerializer(Serializer):
    """Serialize content as XML with a generic object to element mapping.

    Mapping keys become child elements, list items become repeated elements
    named after their key (``item`` at the top level), scalars become text.
    No attributes are produced.
    """

    format = "xml"

    def __init__(self, root_name: str = "response"):
        self.root_name = root_name

    def serialize(self, data: Any) -> str:
        root = etree.Element(self.root_name)
        self._append(root, normalize(data), "item")
        return etree.tostring(root, xml_declaration=True, encoding="UTF-8").decode("utf-8")

    def _append(self, parent: etree._Element, value: Any, list_item_name: str) -> None:
        if isinstance(value, dict):
            for key, child_value in value.items():
                name = key if _XML_NAME_RE.match(key) else "item"
                if isinstance(child_value, list):
                    for item in child_value:
                        self._append(etree.SubElement(parent, name), item, "item")
                else:
                    self._append(etree.SubElement(parent, name), child_value, "item")
        elif isinstance(value, list):
            for item in value:
                self._append(etree.SubElement(parent, list_item_name), item, "item")
        elif value is not None:
            parent.text = self._text(value)

    @staticmethod
    def _text(value: Any) -> str:
        if isinstance(value, bool):
            return "true" if value else "false"
        return str(value)


SERIALIZERS: Dict[str, Serializer] = {
    "json": JSONSerializer(),
    "xml": XMLSerializer(),
}


def serialize(data: Any, format: str) -> str:
    """Serialize ``data`` in the given format family."""
    serializer = SERIALIZERS.get(format)
    if serializer is None:
        raise UnsupportedFormat(f"No serializer for format {format!r}")
    return serializer.serialize(data)
