"""
Core data models for the contract enforcement engine.
"""

from dataclasses import dataclass, field
from enum import Enum, IntEnum
from typing import Any, Dict, Optional, Union


class HTTPMethod(Enum):
    """Enumeration of supported HTTP methods."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    PATCH = "PATCH"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class ErrorCode(IntEnum):
    """Classification codes identifying the stage a validation error comes from."""

    PARAMETER_CAST = 40
    PARAMETER_REQUIRED = 41
    PARAMETER_ENUM = 42
    PARAMETER_MINIMUM = 43
    PARAMETER_MAXIMUM = 44
    PARAMETER_MIN_LENGTH = 45
    PARAMETER_MAX_LENGTH = 46
    PARAMETER_PATTERN = 47
    PARAMETER_CONSTRAINT = 48
    PARAMETER_TYPE = 49
    JSON_PARSE = 50
    JSON_SCHEMA_PROPERTY = 52
    XML_PARSE = 60
    XML_SCHEMA = 62


def sentence_case(text: str) -> str:
    """Lower-case and trim ``text``, then capitalise its first character."""
    text = text.strip().lower()
    return text[:1].upper() + text[1:]


@dataclass(frozen=True)
class ValidationError:
    """A single violation reported to the client."""

    message: str
    code: int

    def as_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "code": int(self.code)}


def get_header(headers: Optional[Dict[str, str]], name: str) -> Optional[str]:
    """Case-insensitive header lookup."""
    if not headers:
        return None
    if name in headers:
        return headers[name]
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


@dataclass
class Request:
    """Represents an HTTP request as seen by the in-process application."""

    method: HTTPMethod
    path: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[Union[str, bytes]] = None
    query_params: Optional[Dict[str, Any]] = None
    path_params: Optional[Dict[str, Any]] = None
    form_params: Optional[Dict[str, Any]] = None
    header_params: Optional[Dict[str, Any]] = None
    scheme: str = "http"
    payload: Any = None

    # Parameter bags by lookup precedence, highest first
    PARAMETER_BAGS = ("path_params", "query_params", "form_params", "header_params")

    def get_accept_header(self) -> str:
        """Get the Accept header, defaulting to */* if not present."""
        return get_header(self.headers, "Accept") or "*/*"

    def get_content_type(self) -> Optional[str]:
        """Get the Content-Type header."""
        return get_header(self.headers, "Content-Type")

    @property
    def params(self) -> Dict[str, Any]:
        """All parameter values, merged by ``PARAMETER_BAGS`` precedence."""
        merged: Dict[str, Any] = {}
        for bag_name in reversed(self.PARAMETER_BAGS):
            bag = getattr(self, bag_name)
            if bag:
                merged.update(bag)
        return merged


@dataclass
class Response:
    """Represents an HTTP response."""

    status_code: int
    body: Optional[str] = None
    headers: Optional[Dict[str, str]] = None
    content_type: Optional[str] = None

    def __post_init__(self):
        if self.headers is None:
            self.headers = {}

        if self.content_type:
            self.headers["Content-Type"] = self.content_type
        elif "Content-Type" in self.headers:
            self.content_type = self.headers["Content-Type"]

        # Do not include Content-Length for 204 responses
        if self.status_code != 204:
            if self.body is not None:
                body_bytes = self.body.encode("utf-8") if isinstance(self.body, str) else self.body
                content_length = len(body_bytes) if body_bytes else 0
            else:
                content_length = 0
            self.headers["Content-Length"] = str(content_length)
