"""
Pydantic schemas for deal interests (introduction requests).
"""

from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.interest import InterestStatus


class InterestCreate(BaseModel):
    """
    Schema for ``POST /interests``.

    ``deal_id`` and ``email`` are checked by the service so that a missing
    deal or malformed address is a 400 rather than a schema 422.
    """

    deal_id: Optional[UUID] = Field(default=None, alias="dealId")
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    message: Optional[str] = Field(default=None, max_length=5000)

    model_config = ConfigDict(populate_by_name=True)


class InterestResponse(BaseModel):
    id: UUID
    deal_id: UUID
    user_id: UUID
    name: Optional[str] = None
    email: Optional[str] = None
    message: Optional[str] = None
    status: InterestStatus
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class InterestEnvelope(BaseModel):
    ok: bool = True
    interest: InterestResponse
