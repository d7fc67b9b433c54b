"""
Investment commitment domain model.

An investor's pledge of an amount toward a deal. ``status`` tracks the
business lifecycle; ``funding_status`` tracks payment progress and is driven
by the escrow transaction currently linked through ``escrow_transaction_id``.
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import CheckConstraint, DateTime, Index
from sqlmodel import Field, SQLModel


class CommitmentStatus(str, Enum):
    """Business lifecycle of a commitment."""

    DRAFT = "draft"
    COMMITTED = "committed"
    FUNDED = "funded"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_COMMITMENT_STATUSES = frozenset(
    {CommitmentStatus.COMPLETED, CommitmentStatus.CANCELLED}
)

# Statuses that count as money actually pledged (investor stats, deal counts).
ACTIVE_COMMITMENT_STATUSES = (
    CommitmentStatus.COMMITTED,
    CommitmentStatus.FUNDED,
    CommitmentStatus.COMPLETED,
)

# Statuses that block a second commitment on the same deal.
OPEN_COMMITMENT_STATUSES = (
    CommitmentStatus.DRAFT,
    CommitmentStatus.COMMITTED,
    CommitmentStatus.FUNDED,
)


class FundingStatus(str, Enum):
    """Payment progress of a commitment."""

    NONE = "none"
    PENDING_PAYMENT = "pending_payment"
    FUNDED = "funded"
    REFUNDED = "refunded"


# A new payment may only be claimed from these; ``pending_payment`` means an
# intent is already in flight.
CLAIMABLE_FUNDING_STATUSES = (FundingStatus.NONE, FundingStatus.REFUNDED)


class InvestmentCommitment(SQLModel, table=True):
    """
    ``funding_version`` is bumped by every successful payment claim. The
    claim is a conditional UPDATE on the version read beforehand, so two
    concurrent create-payment-intent calls cannot both reach the provider.
    """

    __tablename__ = "investment_commitments"  # type: ignore[assignment]

    __table_args__ = (
        Index("ix_commitments_deal_investor", "deal_id", "investor_id"),
        CheckConstraint("amount > 0", name="ck_commitments_amount_positive"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    deal_id: uuid.UUID = Field(foreign_key="deals.id", index=True, ondelete="CASCADE")
    investor_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    status: CommitmentStatus = Field(default=CommitmentStatus.COMMITTED, index=True)
    funding_status: FundingStatus = Field(default=FundingStatus.NONE)
    funding_version: int = Field(default=0, nullable=False)
    escrow_transaction_id: Optional[uuid.UUID] = Field(default=None)
    notes: Optional[str] = None
    funded_date: Optional[datetime] = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<InvestmentCommitment id={self.id} deal={self.deal_id} "
            f"status={self.status.value} funding={self.funding_status.value}>"
        )
