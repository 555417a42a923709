"""
Transport adapters: the boundary between the enforcement engine and a hosting framework.

The engine never touches framework objects directly. It reads request facts,
writes sanitized values back and asks for a native response through
``TransportAdapter``. Each hosting framework provides a thin implementation;
``RequestAdapter`` is the one for the in-process ``Request`` model.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Mapping, Optional, Tuple

from .casting import ParameterType
from .contract import ParameterLocation
from .models import Request, Response, get_header

logger = logging.getLogger(__name__)

BeforeHook = Callable[["TransportAdapter"], Any]


class TransportAdapter(ABC):
    """
    Abstract view of one request and the means to answer it.

    An adapter instance is bound to a single request. Values written back with
    ``set_parameter_value`` and ``set_payload_body_value`` replace what the
    handler will read for that request only.
    """

    @abstractmethod
    def protocol(self) -> str:
        """Protocol (scheme) the request arrived over, e.g. ``"https"``."""
        pass

    @abstractmethod
    def content_type(self) -> Optional[str]:
        """Raw Content-Type header value."""
        pass

    @abstractmethod
    def accept(self) -> Optional[str]:
        """Raw Accept header value."""
        pass

    @abstractmethod
    def parameter_value(self, name: str, parameter_type: ParameterType) -> Any:
        """Raw value of a request parameter, None when absent."""
        pass

    @abstractmethod
    def set_parameter_value(self, name: str, value: Any) -> None:
        """Replace the value of a request parameter."""
        pass

    @abstractmethod
    def payload_body_value(self) -> Any:
        """Raw request body (bytes or text)."""
        pass

    @abstractmethod
    def set_payload_body_value(self, value: Any) -> None:
        """Replace the request body with its validated, parsed value."""
        pass

    @abstractmethod
    def build_response(self, content: Any, status_code: int, headers: Dict[str, str]) -> Any:
        """Create a framework-native response."""
        pass


class RouteRegistrar(ABC):
    """Framework side of route registration."""

    @abstractmethod
    def register_route(self, path: str, method: str, handler: Callable, before: BeforeHook) -> None:
        """
        Register ``handler`` for ``method`` on ``path``.

        Args:
            path: Route path template, e.g. ``/items/{id}``
            method: HTTP method name
            handler: Callable producing the response content
            before: Hook called with the request's adapter before the handler;
                    raising a ``ContractViolation`` prevents the handler from running
        """
        pass


class RequestAdapter(TransportAdapter):
    """
    Adapter over the in-process ``Request`` model.

    ``locations`` maps parameter names to where the contract declares them.
    A declared parameter is looked up in its own bag first, then in the
    others by ``Request.PARAMETER_BAGS`` precedence. Header parameters are
    only read from the request headers.
    """

    def __init__(self, request: Request, locations: Optional[Mapping[str, ParameterLocation]] = None):
        self.request = request
        self.locations = dict(locations or {})

    def protocol(self) -> str:
        return self.request.scheme

    def content_type(self) -> Optional[str]:
        return self.request.get_content_type()

    def accept(self) -> Optional[str]:
        return self.request.get_accept_header()

    def _bag_names(self, name: str) -> Tuple[str, ...]:
        location = self.locations.get(name)
        if location is None:
            return Request.PARAMETER_BAGS
        preferred = f"{location.value}_params"
        return (preferred,) + tuple(bag_name for bag_name in Request.PARAMETER_BAGS if bag_name != preferred)

    def _raw_value(self, name: str) -> Any:
        if self.locations.get(name) is ParameterLocation.HEADER:
            return get_header(self.request.headers, name)
        for bag_name in self._bag_names(name):
            bag = getattr(self.request, bag_name)
            if bag and name in bag:
                return bag[name]
        return None

    def parameter_value(self, name: str, parameter_type: ParameterType) -> Any:
        value = self._raw_value(name)
        # Multi-valued query strings only make sense for arrays
        if isinstance(value, list) and parameter_type is not ParameterType.ARRAY:
            return value[-1] if value else None
        return value

    def set_parameter_value(self, name: str, value: Any) -> None:
        # Overwrite the name in every bag holding it
        replaced = False
        for bag_name in Request.PARAMETER_BAGS:
            bag = getattr(self.request, bag_name)
            if bag and name in bag:
                bag[name] = value
                replaced = True
        if self.locations.get(name) is ParameterLocation.HEADER and get_header(self.request.headers, name) is not None:
            if self.request.header_params is None:
                self.request.header_params = {}
            self.request.header_params[name] = value
            replaced = True
        if not replaced:
            logger.debug(f"Parameter {name!r} absent from the request, nothing to replace")

    def payload_body_value(self) -> Any:
        return self.request.body

    def set_payload_body_value(self, value: Any) -> None:
        self.request.payload = value

    def build_response(self, content: Any, status_code: int, headers: Dict[str, str]) -> Response:
        return Response(status_code=status_code, body=content, headers=dict(headers))
