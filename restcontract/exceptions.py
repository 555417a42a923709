"""
Exceptions raised by the contract enforcement engine.

Two families live here:

- ``ContractViolation`` subclasses describe why a single request was rejected.
  They carry the HTTP status code the transport should answer with and the
  list of ``ValidationError`` records to report to the client.
- ``ConfigurationError`` subclasses describe a broken route contract. They are
  detected when routes are registered and are never turned into responses.
"""

from http import HTTPStatus
from typing import Iterable, Optional, Tuple

from .models import ErrorCode, ValidationError


class RestContractError(Exception):
    """Base exception for restcontract errors."""

    pass


class ContractViolation(RestContractError):
    """Raised when a request does not satisfy its route contract."""

    status_code: int = HTTPStatus.BAD_REQUEST
    default_message = "Bad request"

    def __init__(self, message: Optional[str] = None, errors: Iterable[ValidationError] = ()):
        self.errors: Tuple[ValidationError, ...] = tuple(errors)
        self.message = message or self.default_message
        super().__init__(self.message)

    def error_details(self) -> Tuple[ValidationError, ...]:
        """Errors to report to the client, never empty."""
        if self.errors:
            return self.errors
        return (ValidationError(self.message, int(self.status_code)),)


class AccessDenied(ContractViolation):
    """The request protocol is not one the route allows."""

    status_code = HTTPStatus.FORBIDDEN
    default_message = "Access denied"


class NotAcceptable(ContractViolation):
    """None of the response content types matches the Accept header."""

    status_code = HTTPStatus.NOT_ACCEPTABLE
    default_message = "Not acceptable"


class UnsupportedMediaType(ContractViolation):
    """The request Content-Type is not accepted by the route."""

    status_code = HTTPStatus.UNSUPPORTED_MEDIA_TYPE
    default_message = "Unsupported media type"


class AggregatedFailure(ContractViolation):
    """Every independent violation found while evaluating one stage."""

    status_code = HTTPStatus.BAD_REQUEST

    def __init__(self, errors: Iterable[ValidationError], message: Optional[str] = None):
        errors = tuple(errors)
        if not errors:
            raise ValueError(f"{type(self).__name__} requires at least one error")
        super().__init__(message, errors)

    def __str__(self) -> str:
        return f"{self.message}: " + "; ".join(error.message for error in self.errors)


class InvalidParameter(AggregatedFailure):
    """One or more request parameters failed casting or their constraints."""

    default_message = "Invalid parameter"


class InvalidBody(AggregatedFailure):
    """The payload body could not be parsed or does not match its schema."""

    default_message = "Invalid body"


class CastError(RestContractError):
    """Raised when a raw parameter value cannot be coerced to its declared type."""

    def __init__(self, message: str, code: int = ErrorCode.PARAMETER_CAST):
        self.message = message
        self.code = code
        super().__init__(message)


class ConfigurationError(RestContractError):
    """A route contract or handler registration is invalid."""

    pass


class AmbiguousStatusCode(ConfigurationError):
    """A contract does not declare exactly one 2xx status code."""

    pass


class NoContentTypeDefined(ConfigurationError):
    """A contract declares no response content type."""

    pass


class DuplicateParameter(ConfigurationError):
    """A contract declares the same parameter name twice."""

    pass


class HandlerNotFound(ConfigurationError):
    """The handler or action for a resource cannot be resolved."""

    pass


class UnsupportedFormat(ConfigurationError):
    """A response format family is not present in the format table."""

    pass
