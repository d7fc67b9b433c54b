"""
Escrow transaction domain model.

One payment-provider money movement tied to a commitment. ``payment_status``
and the refund/paid fields are written only by the provider confirmation
webhook (``app.services.webhook_service``).
"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class EscrowType(str, Enum):
    DEPOSIT = "deposit"
    REFUND = "refund"


class EscrowStatus(str, Enum):
    """Business-level status."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"


class PaymentStatus(str, Enum):
    """Provider-level status, mirrored from webhook events."""

    PENDING = "pending"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    REFUNDED = "refunded"
    PARTIALLY_REFUNDED = "partially_refunded"


class EscrowTransaction(SQLModel, table=True):
    __tablename__ = "escrow_transactions"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    commitment_id: uuid.UUID = Field(
        foreign_key="investment_commitments.id", index=True, ondelete="CASCADE"
    )
    type: EscrowType = Field(default=EscrowType.DEPOSIT)
    amount: Decimal = Field(max_digits=20, decimal_places=2)
    status: EscrowStatus = Field(default=EscrowStatus.PENDING)
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)
    stripe_payment_intent_id: Optional[str] = Field(
        default=None, max_length=255, unique=True, index=True
    )
    stripe_client_secret: Optional[str] = Field(default=None, max_length=255)
    payment_method: Optional[str] = Field(default=None, max_length=64)
    paid_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    refunded_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    refund_amount: Optional[Decimal] = Field(default=None, max_digits=20, decimal_places=2)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )

    def __repr__(self) -> str:
        return (
            f"<EscrowTransaction id={self.id} commitment={self.commitment_id} "
            f"payment_status={self.payment_status.value}>"
        )
