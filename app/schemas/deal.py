"""
Pydantic schemas for Deal API request / response serialisation.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator

from app.models.deal import DealStatus


class DealBase(BaseModel):
    """Descriptive fields an operator may set on their own deal."""

    title: Optional[str] = Field(default=None, max_length=255, examples=["Main Street Bakery"])
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=64, examples=["small-business"])
    location: Optional[str] = Field(default=None, max_length=255)
    timeline: Optional[str] = Field(default=None, max_length=64)
    tags: Optional[List[str]] = None
    min_check: Optional[str] = Field(
        default=None,
        max_length=64,
        description="Free-text minimum check, e.g. ``$100k`` or ``250,000``",
        examples=["$25k"],
    )
    target_raise: Optional[Decimal] = Field(default=None, gt=0)

    @field_validator("title")
    @classmethod
    def validate_title_not_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("title must not be blank")
        return v.strip() if v is not None else v


class DealCreate(DealBase):
    """
    Schema for ``POST /deals``.

    ``status`` and ``operator_id`` are honoured for admins only; an operator's
    deal is always created ``pending`` and owned by the operator.
    """

    title: str = Field(..., min_length=1, max_length=255)
    status: Optional[DealStatus] = None
    operator_id: Optional[UUID] = None


class DealUpdate(DealBase):
    """Schema for ``PATCH /deals/{id}``.  Only fields present in the body are applied."""

    status: Optional[DealStatus] = None
    operator_id: Optional[UUID] = None


class DealResponse(BaseModel):
    id: UUID
    title: str
    description: Optional[str] = None
    category: Optional[str] = None
    location: Optional[str] = None
    timeline: Optional[str] = None
    tags: Optional[List[str]] = None
    status: DealStatus
    operator_id: Optional[UUID] = None
    min_check: Optional[str] = None
    target_raise: Optional[Decimal] = None
    total_committed: Decimal
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("target_raise", "total_committed")
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None


class DealEnvelope(BaseModel):
    deal: DealResponse


class DealDetailEnvelope(DealEnvelope):
    investor_count: int = Field(
        0, description="Commitments in committed, funded or completed status"
    )


class DealList(BaseModel):
    deals: List[DealResponse]
