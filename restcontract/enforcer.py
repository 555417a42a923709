"""
Contract enforcement pipeline, run once per request before the handler.

Following the webmachine pattern, each check is a method that returns either
the next check to run, a ``ContractViolation`` ending the pipeline, or None
once every staged value has been committed. The per-request state lives in an
``EnforcementContext`` passed from method to method, so a single enforcer can
serve concurrent requests.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Union

from .adapters import TransportAdapter
from .casting import cast
from .contract import RouteContract, media_type
from .exceptions import (
    AccessDenied,
    CastError,
    ContractViolation,
    InvalidParameter,
    NoContentTypeDefined,
    NotAcceptable,
    UnsupportedMediaType,
)
from .models import ValidationError, sentence_case
from .negotiation import negotiate
from .payload import PayloadBodyValidator

logger = logging.getLogger(__name__)


@dataclass
class EnforcementContext:
    """Values staged while one request goes through the pipeline."""

    adapter: TransportAdapter
    negotiated_type: Optional[str] = None
    parameters: Dict[str, Any] = field(default_factory=dict)
    body: Any = None
    body_staged: bool = False
    committed: bool = False


StateResult = Union[Callable[[EnforcementContext], "StateResult"], ContractViolation, None]


class ContractEnforcer:
    """Checks requests against one route contract.

    The checks run in a fixed order: protocol, Accept, Content-Type,
    parameters, payload body. Sanitized values are written back to the
    adapter only when all of them pass.
    """

    def __init__(self, contract: RouteContract, payload_validator: Optional[PayloadBodyValidator] = None):
        self.contract = contract
        self.payload_validator = payload_validator or PayloadBodyValidator()

    def check(self) -> "ContractEnforcer":
        """Registration-time verification of the contract and its schemas.

        Raises:
            ConfigurationError: if the contract cannot be enforced
        """
        self.contract.validate()
        for content_type, schema in self.contract.schemas.items():
            self.payload_validator.check_schema(content_type, schema)
        return self

    def enforce(self, adapter: TransportAdapter) -> EnforcementContext:
        """Run every check for the request behind ``adapter``.

        Returns:
            The context holding the negotiated content type and committed values

        Raises:
            ContractViolation: the first stage that failed
            NoContentTypeDefined: if the contract offers no response content type
        """
        ctx = EnforcementContext(adapter=adapter)
        contract = self.contract
        logger.debug(f"Enforcing contract: {contract.method.value} {contract.path}")

        current: StateResult = self.state_protocol_allowed
        state_count = 0
        while callable(current):
            state_count += 1
            logger.debug(f"  [{state_count}] → {current.__name__}")
            current = current(ctx)

        if isinstance(current, ContractViolation):
            logger.warning(
                f"{contract.method.value} {contract.path} rejected with {current.status_code}: {current}"
            )
            raise current

        logger.debug(f"  ✓ Contract satisfied in {state_count} states")
        return ctx

    # ========================================================================
    # STATE METHODS
    # ========================================================================

    def state_protocol_allowed(self, ctx: EnforcementContext) -> StateResult:
        """Protocol must be one of the contract's protocols."""
        protocol = (ctx.adapter.protocol() or "").upper()
        allowed = [p.upper() for p in self.contract.protocols]
        if protocol not in allowed:
            return AccessDenied(f"Protocol {protocol or 'unknown'} not allowed, use {', '.join(allowed)}")
        return self.state_acceptable

    def state_acceptable(self, ctx: EnforcementContext) -> StateResult:
        """Accept must match one of the response content types."""
        offered = self.contract.response_content_types
        if not offered:
            raise NoContentTypeDefined(
                f"{self.contract.method.value} {self.contract.path} declares no response content type"
            )

        accept = ctx.adapter.accept()
        negotiated = negotiate(accept, offered)
        if negotiated is None:
            return NotAcceptable(f"Not acceptable, available types: {', '.join(offered)}")

        ctx.negotiated_type = negotiated
        return self.state_content_type_supported

    def state_content_type_supported(self, ctx: EnforcementContext) -> StateResult:
        """Content-Type must be accepted when the route restricts it."""
        accepted = [media_type(content_type) for content_type in self.contract.request_content_types]
        if accepted and media_type(ctx.adapter.content_type()) not in accepted:
            return UnsupportedMediaType(
                f"Unsupported media type {ctx.adapter.content_type()!r}, use {', '.join(accepted)}"
            )
        return self.state_parameters_valid

    def state_parameters_valid(self, ctx: EnforcementContext) -> StateResult:
        """Cast and assert every declared parameter.

        A cast failure stops the check at once. Constraint failures are
        collected across all parameters and reported together.
        """
        errors: List[ValidationError] = []
        for spec in self.contract.parameters:
            raw_value = ctx.adapter.parameter_value(spec.name, spec.type)
            try:
                cast_value = cast(raw_value, spec.type)
            except CastError as e:
                return InvalidParameter([
                    ValidationError(sentence_case(f"{spec.name} parameter: {e.message}"), e.code)
                ])

            try:
                spec.assert_value(cast_value, raw_value)
            except InvalidParameter as e:
                errors.extend(e.errors)
                continue

            ctx.parameters[spec.name] = cast_value

        if errors:
            return InvalidParameter(errors)
        return self.state_body_valid

    def state_body_valid(self, ctx: EnforcementContext) -> StateResult:
        """Validate the payload body when the contract declares a schema for it."""
        content_type = ctx.adapter.content_type()
        schema = self.contract.schema_for(content_type)
        if schema is None:
            return self.state_commit

        outcome = self.payload_validator.validate(ctx.adapter.payload_body_value(), content_type, schema)
        if not outcome.ok:
            return outcome.failure

        ctx.body = outcome.value
        ctx.body_staged = True
        return self.state_commit

    def state_commit(self, ctx: EnforcementContext) -> StateResult:
        """Write every staged value back to the adapter (terminal state)."""
        for name, value in ctx.parameters.items():
            ctx.adapter.set_parameter_value(name, value)
        if ctx.body_staged:
            ctx.adapter.set_payload_body_value(ctx.body)
        ctx.committed = True
        return None
