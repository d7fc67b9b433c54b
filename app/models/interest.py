"""
Deal interest (introduction request) domain model.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class InterestStatus(str, Enum):
    """``pending`` moves once, to ``accepted`` or ``rejected``."""

    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DealInterest(SQLModel, table=True):
    __tablename__ = "deal_interests"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    deal_id: uuid.UUID = Field(foreign_key="deals.id", index=True, ondelete="CASCADE")
    user_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    name: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=320)
    message: Optional[str] = None
    user_agent: Optional[str] = Field(default=None, max_length=512)
    status: InterestStatus = Field(default=InterestStatus.PENDING, index=True)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
