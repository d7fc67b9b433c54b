"""
KYC submission domain model.

One row per identity-review cycle. Only the admin review workflow sets
``reviewed_by``, ``reviewed_at``, ``rejection_reason``, ``risk_level`` and
``expires_at``.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class ReviewStatus(str, Enum):
    """Status of a KYC submission or verification request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class IdDocumentType(str, Enum):
    PASSPORT = "passport"
    DRIVERS_LICENSE = "drivers_license"
    NATIONAL_ID = "national_id"


class SourceOfFunds(str, Enum):
    EMPLOYMENT = "employment"
    BUSINESS = "business"
    INVESTMENTS = "investments"
    INHERITANCE = "inheritance"
    OTHER = "other"


class KycSubmission(SQLModel, table=True):
    """The raw tax id is never stored, only its SHA-256 digest."""

    __tablename__ = "kyc_submissions"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)

    full_legal_name: str = Field(max_length=255)
    date_of_birth: date
    nationality: str = Field(max_length=64)
    tax_id_type: Optional[str] = Field(default=None, max_length=32)
    tax_id_hash: Optional[str] = Field(default=None, max_length=64)

    address_line1: str = Field(max_length=255)
    address_line2: Optional[str] = Field(default=None, max_length=255)
    city: str = Field(max_length=128)
    state_province: str = Field(max_length=128)
    postal_code: str = Field(max_length=32)
    country: str = Field(max_length=64)

    id_document_type: IdDocumentType
    id_document_path: str = Field(max_length=512)
    selfie_path: Optional[str] = Field(default=None, max_length=512)

    source_of_funds: SourceOfFunds
    source_details: Optional[str] = None
    expected_investment_range: Optional[str] = Field(default=None, max_length=64)
    pep_status: bool = False
    pep_details: Optional[str] = None
    terms_accepted: bool = False
    declaration_signed: bool = False

    status: ReviewStatus = Field(default=ReviewStatus.PENDING, index=True)
    risk_level: Optional[RiskLevel] = None
    reviewed_by: Optional[uuid.UUID] = None
    reviewed_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    rejection_reason: Optional[str] = None
    expires_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
