"""
Common / shared Pydantic schemas used across multiple endpoints.

Defines the error envelopes so the OpenAPI document reflects the error
payloads the exception handlers actually return, plus the small ``{ok}``
acknowledgement many commands reply with.
"""

from typing import List

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Standard error envelope returned by every non-validation error handler."""

    error: str = Field(
        ..., description="Human-readable error description", examples=["Deal not found"]
    )


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(
        ...,
        description="Arrow-separated path to the invalid field",
        examples=["body -> amount"],
    )
    message: str = Field(
        ...,
        description="Explanation of the validation failure",
        examples=["Input should be greater than 0"],
    )


class ValidationErrorResponse(BaseModel):
    """Response body for 422 Unprocessable Entity (validation failure)."""

    error: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field validation failures")


class OkResponse(BaseModel):
    ok: bool = True
