"""
Profile domain models.

``profiles`` holds one row per identity-provider user and carries the role
used for authorization plus the denormalised verification/KYC status mirrors.
``investor_profiles`` holds the investor's self-described preferences shown
on the tiered-disclosure profile page.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class UserRole(str, Enum):
    """Closed set of platform roles."""

    INVESTOR = "investor"
    OPERATOR = "operator"
    ADMIN = "admin"


class VerificationStatus(str, Enum):
    """Mirror of the latest verification request outcome."""

    UNVERIFIED = "unverified"
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class KycStatus(str, Enum):
    """Mirror of the latest KYC submission outcome."""

    NONE = "none"
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    EXPIRED = "expired"


class Profile(SQLModel, table=True):
    """
    One row per user. ``id`` is the identity provider's user id.

    ``verification_status`` and ``kyc_status`` are written by the review
    workflows right after the primary submission row; there is no
    compensating rollback if this second write fails.
    """

    __tablename__ = "profiles"  # type: ignore[assignment]

    id: uuid.UUID = Field(primary_key=True)
    email: Optional[str] = Field(default=None, max_length=320, index=True)
    full_name: Optional[str] = Field(default=None, max_length=255)
    role: UserRole = Field(default=UserRole.INVESTOR, index=True)
    verification_status: VerificationStatus = Field(
        default=VerificationStatus.UNVERIFIED
    )
    kyc_status: KycStatus = Field(default=KycStatus.NONE)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )

    def __repr__(self) -> str:
        return f"<Profile id={self.id} role={self.role.value}>"


class InvestorProfile(SQLModel, table=True):
    """Investor preferences; the newest row per ``user_id`` wins."""

    __tablename__ = "investor_profiles"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    headline: Optional[str] = Field(default=None, max_length=255)
    bio: Optional[str] = None
    check_size: Optional[str] = Field(default=None, max_length=32)
    timeline: Optional[str] = Field(default=None, max_length=64)
    involvement: Optional[str] = Field(default=None, max_length=64)
    categories: List[str] = Field(default_factory=list, sa_type=JSON)  # type: ignore[arg-type]
    subcategories: List[str] = Field(default_factory=list, sa_type=JSON)  # type: ignore[arg-type]
    tags: List[str] = Field(default_factory=list, sa_type=JSON)  # type: ignore[arg-type]
    verified_only: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
