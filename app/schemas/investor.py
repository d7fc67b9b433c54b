"""
Pydantic schema for the tiered-disclosure investor profile.

The identifying fields (``headline``, ``bio``, statistics, ...) exist only in
``full``/``self`` payloads.  The endpoint serialises with
``response_model_exclude_unset`` so a ``limited`` response never carries
those keys, not even as nulls.
"""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, field_serializer

from app.services.disclosure import DisclosureLevel


class InvestorView(BaseModel):
    id: UUID
    name: str
    verified: bool
    member_since: datetime
    check_size: Optional[str] = None
    timeline: Optional[str] = None
    involvement: Optional[str] = None
    categories: List[str] = []
    subcategories: List[str] = []
    tags: List[str] = []

    # full / self only
    headline: Optional[str] = None
    bio: Optional[str] = None
    verified_only: Optional[bool] = None
    deals_committed: Optional[int] = None
    total_invested: Optional[Decimal] = None

    @field_serializer("total_invested")
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None


class InvestorProfileResponse(BaseModel):
    level: DisclosureLevel
    investor: InvestorView
