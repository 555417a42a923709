"""
Contract enforcement for REST routes.

Every route declares a contract: allowed protocols, the content types it
consumes and produces, its status codes, typed and constrained parameters and
payload body schemas. Requests are checked against the contract before the
handler runs, and sanitized values are written back only when every check
passes. Responses are serialized in the negotiated format.
"""

from http import HTTPStatus

from .adapters import RequestAdapter, RouteRegistrar, TransportAdapter
from .application import ContractApplication
from .casting import ParameterType, cast
from .contract import ParameterLocation, ParameterSpec, RouteContract
from .dispatch import HandlerRegistry, action_name, resource_identifier
from .enforcer import ContractEnforcer, EnforcementContext
from .error_models import ErrorDetail, ErrorResponse
from .exceptions import (
    AccessDenied,
    AggregatedFailure,
    AmbiguousStatusCode,
    CastError,
    ConfigurationError,
    ContractViolation,
    DuplicateParameter,
    HandlerNotFound,
    InvalidBody,
    InvalidParameter,
    NoContentTypeDefined,
    NotAcceptable,
    RestContractError,
    UnsupportedFormat,
    UnsupportedMediaType,
)
from .models import ErrorCode, HTTPMethod, Request, Response, ValidationError
from .negotiation import DEFAULT_FORMATS, FormatTable, negotiate
from .payload import PayloadBodyValidator
from .response import ContractResponse

__version__ = "0.1.0"
__author__ = "restcontract contributors"
__license__ = "MIT"

__all__ = [
    "ContractApplication",
    "ContractEnforcer",
    "EnforcementContext",
    "ContractResponse",
    "RouteContract",
    "ParameterSpec",
    "ParameterLocation",
    "ParameterType",
    "cast",
    "PayloadBodyValidator",
    "FormatTable",
    "DEFAULT_FORMATS",
    "negotiate",
    "HandlerRegistry",
    "resource_identifier",
    "action_name",
    "TransportAdapter",
    "RouteRegistrar",
    "RequestAdapter",
    "Request",
    "Response",
    "HTTPMethod",
    "HTTPStatus",
    "ErrorCode",
    "ValidationError",
    "ErrorDetail",
    "ErrorResponse",
    "RestContractError",
    "ContractViolation",
    "AccessDenied",
    "NotAcceptable",
    "UnsupportedMediaType",
    "AggregatedFailure",
    "InvalidParameter",
    "InvalidBody",
    "CastError",
    "ConfigurationError",
    "AmbiguousStatusCode",
    "NoContentTypeDefined",
    "DuplicateParameter",
    "HandlerNotFound",
    "UnsupportedFormat",
]
