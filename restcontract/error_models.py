"""
Error response models returned to clients when a request breaks its contract.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ContractViolation


class ErrorDetail(BaseModel):
    """A single violation."""

    message: str = Field(..., description="Human-readable description of the violation")
    code: int = Field(..., description="Code identifying the check that failed")


class ErrorResponse(BaseModel):
    """Standard error response model.

    Lists every violation found by the stage that rejected the request, so a
    client can fix all of them from a single response.
    """

    model_config = ConfigDict(
        json_schema_extra={
            "example": {
                "errors": [
                    {"message": "Id parameter must be greater than or equal to 1", "code": 43},
                    {"message": "Sort parameter must be one of asc, desc", "code": 42},
                ]
            }
        }
    )

    errors: List[ErrorDetail] = Field(
        ...,
        min_length=1,
        description="Violations, in the order they were found",
    )

    @classmethod
    def from_violation(cls, violation: ContractViolation) -> "ErrorResponse":
        """Create an ErrorResponse from a contract violation."""
        return cls(errors=[
            ErrorDetail(message=error.message, code=int(error.code))
            for error in violation.error_details()
        ])

    @classmethod
    def internal_error(cls, message: str = "Internal server error") -> "ErrorResponse":
        return cls(errors=[ErrorDetail(message=message, code=500)])
