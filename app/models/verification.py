"""
Verification request domain model.

Accreditation (investor) or business (operator) verification. The
role-specific columns are filled according to ``role``.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from app.models.kyc import ReviewStatus
from app.models.profile import UserRole


class VerificationRequest(SQLModel, table=True):
    __tablename__ = "verification_requests"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    role: UserRole
    status: ReviewStatus = Field(default=ReviewStatus.PENDING, index=True)
    full_legal_name: str = Field(max_length=255)

    # Investor
    phone: Optional[str] = Field(default=None, max_length=32)
    accreditation_type: Optional[str] = Field(default=None, max_length=64)
    proof_description: Optional[str] = None
    self_certified: bool = False

    # Operator
    business_name: Optional[str] = Field(default=None, max_length=255)
    business_type: Optional[str] = Field(default=None, max_length=64)
    ein_registration: Optional[str] = Field(default=None, max_length=64)
    business_address: Optional[str] = Field(default=None, max_length=255)
    business_description: Optional[str] = None
    years_in_operation: Optional[str] = Field(default=None, max_length=16)

    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
