"""
In-process application hosting contract-enforced routes.
"""

import inspect
import logging
import os
import re
from http import HTTPStatus
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from .adapters import RequestAdapter, RouteRegistrar, TransportAdapter
from .contract import RouteContract
from .dispatch import HandlerRegistry
from .enforcer import ContractEnforcer
from .error_models import ErrorResponse
from .exceptions import ConfigurationError, ContractViolation
from .models import HTTPMethod, Request, Response
from .negotiation import DEFAULT_FORMATS, FormatTable, negotiate
from .response import ContractResponse

logger = logging.getLogger(__name__)

# Handler arguments always available, whatever the contract declares
BUILTIN_ARGUMENTS = ("request", "response", "body", "params")

BeforeHook = Callable[[TransportAdapter], Optional[ContractResponse]]


class RouteHandler:
    """Represents a registered route and its handler."""

    def __init__(
        self,
        method: HTTPMethod,
        path: str,
        handler: Callable,
        before: Optional[BeforeHook] = None,
        contract: Optional[RouteContract] = None,
    ):
        self.method = method
        self.path = path
        self.handler = handler
        self.before = before
        self.contract = contract
        self.path_pattern = re.compile(self._compile_path_pattern(path))

        # Cache signature for injection
        self.handler_signature = inspect.signature(handler)

    def _compile_path_pattern(self, path: str) -> str:
        """Convert path with {param} syntax to a pattern for matching."""
        pattern = re.sub(r"\{(\w+)\}", r"(?P<\1>[^/]+)", path)
        return f"^{pattern}$"

    def match(self, path: str) -> Optional[Dict[str, str]]:
        found = self.path_pattern.match(path)
        if found is None:
            return None
        return found.groupdict()


class ContractApplication(RouteRegistrar):
    """Application whose routes are guarded by route contracts.

    Example:
        app = ContractApplication()

        @app.route(RouteContract(
            path="/items/{id}",
            protocols=["HTTPS"],
            parameters=[ParameterSpec("id", ParameterType.INTEGER, minimum=1)],
        ))
        def get_item(id):
            return {"id": id}
    """

    def __init__(
        self,
        format_table: Optional[FormatTable] = None,
        default_format: Optional[str] = None,
        handler_registry: Optional[HandlerRegistry] = None,
    ):
        formats = format_table or DEFAULT_FORMATS
        # Default format: arg > env > table default
        default_format = default_format or os.environ.get("RESTCONTRACT_DEFAULT_FORMAT")
        if default_format and default_format != formats.default:
            formats = formats.with_default(default_format)

        self.formats = formats
        self.handlers = handler_registry or HandlerRegistry()
        self._routes: List[RouteHandler] = []

    # ========================================================================
    # REGISTRATION
    # ========================================================================

    def register_route(
        self,
        path: str,
        method: Union[HTTPMethod, str],
        handler: Callable,
        before: Optional[BeforeHook] = None,
        contract: Optional[RouteContract] = None,
    ) -> RouteHandler:
        if isinstance(method, str):
            method = HTTPMethod(method.upper())
        route = RouteHandler(method, path, handler, before, contract)
        self._routes.append(route)
        return route

    def add_contract(self, contract: RouteContract, handler: Callable) -> RouteHandler:
        """Register ``handler`` behind the enforcement of ``contract``.

        Raises:
            ConfigurationError: if the contract is invalid or the handler asks
                                for arguments the contract cannot provide
        """
        enforcer = ContractEnforcer(contract).check()
        self._check_handler_arguments(contract, handler)

        logger.info(f"Registered {contract.method.value} {contract.path} -> {getattr(handler, '__name__', handler)}")
        return self.register_route(
            contract.path, contract.method, handler, self._contract_hook(enforcer), contract
        )

    def route(self, contract: RouteContract) -> Callable[[Callable], Callable]:
        """Decorator form of ``add_contract``."""
        def decorator(func: Callable) -> Callable:
            self.add_contract(contract, func)
            return func
        return decorator

    def register_resource(self, contract: RouteContract) -> RouteHandler:
        """Register the handler the registry holds for the contract's resource and method.

        Raises:
            HandlerNotFound: if the registry has no such handler or action
        """
        handler = self.handlers.resolve(contract.resource, contract.method)
        return self.add_contract(contract, handler)

    def _contract_hook(self, enforcer: ContractEnforcer) -> BeforeHook:
        def before(adapter: TransportAdapter) -> ContractResponse:
            ctx = enforcer.enforce(adapter)
            return ContractResponse.for_contract(enforcer.contract, ctx.negotiated_type, self.formats)
        return before

    @staticmethod
    def _check_handler_arguments(contract: RouteContract, handler: Callable) -> None:
        declared = {spec.name for spec in contract.parameters}
        for name, param in inspect.signature(handler).parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if name in BUILTIN_ARGUMENTS or name in declared or param.default is not param.empty:
                continue
            raise ConfigurationError(
                f"Handler {getattr(handler, '__name__', handler)} for {contract.method.value} {contract.path} "
                f"requires {name!r}, which is neither a declared parameter nor one of {', '.join(BUILTIN_ARGUMENTS)}"
            )

    # ========================================================================
    # EXECUTION
    # ========================================================================

    def _find_route(self, method: HTTPMethod, path: str) -> Optional[Tuple[RouteHandler, Dict[str, str]]]:
        for route in self._routes:
            if route.method == method:
                params = route.match(path)
                if params is not None:
                    return route, params
        return None

    def _allowed_methods(self, path: str) -> List[str]:
        return [route.method.value for route in self._routes if route.match(path) is not None]

    def execute(self, request: Request) -> Response:
        """Process a request and return its response."""
        logger.debug(f"{request.method.value} {request.path}")
        adapter = RequestAdapter(request)

        route_match = self._find_route(request.method, request.path)
        if route_match is None:
            allowed = self._allowed_methods(request.path)
            if allowed:
                response = self._simple_error(adapter, HTTPStatus.METHOD_NOT_ALLOWED, "Method not allowed")
                response.headers["Allow"] = ", ".join(allowed)
                return response
            return self._simple_error(adapter, HTTPStatus.NOT_FOUND, "Not found")

        route, path_params = route_match
        request.path_params = {**(request.path_params or {}), **path_params}
        if route.contract is not None:
            adapter.locations = {spec.name: spec.location for spec in route.contract.parameters}

        try:
            response = route.before(adapter) if route.before else None
        except ContractViolation as e:
            return self._error_response(adapter, route, e)

        if response is None:
            response = ContractResponse(self.formats.default, HTTPStatus.OK, formats=self.formats)

        try:
            result = self._call_with_injection(route, request, response)
        except ContractViolation as e:
            return self._error_response(adapter, route, e)
        except Exception as e:
            logger.error(f"Error in handler for {request.method.value} {request.path}: {e}", exc_info=True)
            return self._simple_error(adapter, HTTPStatus.INTERNAL_SERVER_ERROR, "Internal server error")

        if result is not None and result is not response:
            response.content = result
        return response.to_transport(adapter)

    def _call_with_injection(self, route: RouteHandler, request: Request, response: ContractResponse) -> Any:
        builtins = {
            "request": request,
            "response": response,
            "body": request.payload,
            "params": request.params,
        }
        params = request.params
        kwargs: Dict[str, Any] = {}
        for name, param in route.handler_signature.parameters.items():
            if param.kind in (param.VAR_POSITIONAL, param.VAR_KEYWORD):
                continue
            if name in builtins:
                kwargs[name] = builtins[name]
            elif name in params:
                kwargs[name] = params[name]
            elif param.default is param.empty:
                # Declared but absent optional parameter
                kwargs[name] = None
        return route.handler(**kwargs)

    # ========================================================================
    # ERROR RESPONSES
    # ========================================================================

    def _error_response(self, adapter: TransportAdapter, route: RouteHandler, violation: ContractViolation) -> Any:
        negotiated = None
        if route.contract is not None:
            negotiated = negotiate(adapter.accept(), route.contract.response_content_types)
        format = self.formats.resolve(negotiated)
        mime_type = negotiated if self.formats.family_for(negotiated) == format else None

        response = ContractResponse(format, violation.status_code, mime_type, self.formats)
        response.content = ErrorResponse.from_violation(violation).model_dump()
        return response.to_transport(adapter)

    def _simple_error(self, adapter: TransportAdapter, status: HTTPStatus, message: str) -> Any:
        response = ContractResponse(self.formats.default, status, formats=self.formats)
        if status == HTTPStatus.INTERNAL_SERVER_ERROR:
            response.content = ErrorResponse.internal_error(message).model_dump()
        else:
            response.content = ErrorResponse.from_violation(_StatusViolation(status, message)).model_dump()
        return response.to_transport(adapter)


class _StatusViolation(ContractViolation):
    """Routing failure reported with the same error payload as contract violations."""

    def __init__(self, status: HTTPStatus, message: str):
        self.status_code = status
        super().__init__(message)
