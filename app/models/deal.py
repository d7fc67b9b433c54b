"""
Deal domain model.

A private deal listed by an operator (or directly by an admin) that
investors can request introductions to and commit capital against.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, CheckConstraint, DateTime
from sqlmodel import Field, SQLModel


class DealStatus(str, Enum):
    """Listing lifecycle. Operators create ``pending``; admins activate."""

    PENDING = "pending"
    ACTIVE = "active"
    INACTIVE = "inactive"


class Deal(SQLModel, table=True):
    """
    ``min_check`` is operator-entered free text ("$100k", "250,000"); it is
    parsed to a number only where a threshold is needed (KYC gating, minimum
    commitment, deal-alert matching).
    """

    __tablename__ = "deals"  # type: ignore[assignment]

    __table_args__ = (
        CheckConstraint("length(title) > 0", name="ck_deals_title_not_empty"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    title: str = Field(max_length=255)
    description: Optional[str] = None
    category: Optional[str] = Field(default=None, max_length=64, index=True)
    location: Optional[str] = Field(default=None, max_length=255)
    timeline: Optional[str] = Field(default=None, max_length=64)
    tags: Optional[List[str]] = Field(default=None, sa_type=JSON)  # type: ignore[arg-type]
    status: DealStatus = Field(default=DealStatus.PENDING, index=True)
    operator_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="profiles.id", index=True
    )
    min_check: Optional[str] = Field(default=None, max_length=64)
    target_raise: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    total_committed: Decimal = Field(default=Decimal("0"), max_digits=20, decimal_places=2)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    def __repr__(self) -> str:
        return f"<Deal id={self.id} title='{self.title}' status={self.status.value}>"
