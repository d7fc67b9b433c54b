"""
Pydantic schemas for commitments, the payment lifecycle and admin review of
commitments / escrow.

Request bodies accept the camelCase keys browser clients send
(``commitmentId``) as well as snake_case.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_serializer

from app.models.commitment import CommitmentStatus, FundingStatus
from app.models.escrow import EscrowStatus, EscrowType, PaymentStatus


class CommitmentCreate(BaseModel):
    """Schema for ``POST /commitments``."""

    deal_id: UUID = Field(..., alias="dealId")
    amount: Decimal = Field(..., gt=0, examples=[50_000])
    notes: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class CommitmentCancel(BaseModel):
    """Schema for ``PATCH /commitments/{id}`` — investors may only cancel."""

    status: CommitmentStatus


class CommitmentResponse(BaseModel):
    id: UUID
    deal_id: UUID
    investor_id: UUID
    amount: Decimal
    status: CommitmentStatus
    funding_status: FundingStatus
    escrow_transaction_id: Optional[UUID] = None
    notes: Optional[str] = None
    funded_date: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("amount")
    @classmethod
    def serialize_decimal_as_number(cls, v: Decimal) -> float:
        return float(v)


class CommitmentEnvelope(BaseModel):
    commitment: CommitmentResponse


class AdminCommitmentAction(BaseModel):
    """Schema for ``PATCH /admin/investments/{id}``."""

    action: str = Field(..., description="One of fund, complete, cancel, flag")
    notes: Optional[str] = None


class AdminCommitmentActionResponse(BaseModel):
    ok: bool = True
    commitment: CommitmentResponse


# ── Payments ──


class PaymentIntentRequest(BaseModel):
    """Schema for ``POST /stripe/create-payment-intent``."""

    commitment_id: Optional[UUID] = Field(default=None, alias="commitmentId")

    model_config = ConfigDict(populate_by_name=True)


class PaymentIntentResponse(BaseModel):
    client_secret: str = Field(..., serialization_alias="clientSecret")


class RefundRequest(BaseModel):
    """Schema for ``POST /stripe/refund`` (admin only)."""

    escrow_transaction_id: Optional[UUID] = Field(default=None, alias="escrowTransactionId")
    amount_in_cents: Optional[int] = Field(default=None, gt=0, alias="amountInCents")
    reason: Optional[str] = None

    model_config = ConfigDict(populate_by_name=True)


class RefundResponse(BaseModel):
    ok: bool = True
    refund_id: str = Field(..., serialization_alias="refundId")


class WebhookAck(BaseModel):
    received: bool = True


# ── Admin listings ──


class DealSummary(BaseModel):
    id: UUID
    title: str
    category: Optional[str] = None
    min_check: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class InvestorSummary(BaseModel):
    id: UUID
    full_name: Optional[str] = None
    email: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CommitmentDetail(CommitmentResponse):
    deal: Optional[DealSummary] = None
    investor: Optional[InvestorSummary] = None


class CommitmentStats(BaseModel):
    total: int
    total_amount: float = Field(..., serialization_alias="totalAmount")
    by_status: Dict[str, int] = Field(..., serialization_alias="byStatus")
    large_count: int = Field(..., serialization_alias="largeCount")


class AdminCommitmentList(BaseModel):
    commitments: List[CommitmentDetail]
    stats: CommitmentStats


class CommitmentList(BaseModel):
    commitments: List[CommitmentDetail]


class EscrowCommitmentSummary(BaseModel):
    id: UUID
    amount: Decimal
    funding_status: FundingStatus
    deal_title: str = "Unknown"
    investor_name: str = "Unknown"
    investor_email: str = "Unknown"

    @field_serializer("amount")
    @classmethod
    def serialize_decimal_as_number(cls, v: Decimal) -> float:
        return float(v)


class EscrowItem(BaseModel):
    id: UUID
    commitment_id: UUID
    type: EscrowType
    amount: Decimal
    status: EscrowStatus
    payment_status: PaymentStatus
    stripe_payment_intent_id: Optional[str] = None
    payment_method: Optional[str] = None
    paid_at: Optional[datetime] = None
    refunded_at: Optional[datetime] = None
    refund_amount: Optional[Decimal] = None
    created_at: datetime
    commitment: Optional[EscrowCommitmentSummary] = None

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("amount", "refund_amount")
    @classmethod
    def serialize_decimal_as_number(cls, v: Optional[Decimal]) -> Optional[float]:
        return float(v) if v is not None else None


class EscrowList(BaseModel):
    transactions: List[EscrowItem]
