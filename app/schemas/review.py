"""
Pydantic schemas for KYC submissions, verification requests and their admin
review.

Submission bodies keep every field optional: the services check required
fields themselves and reply 400 with a message naming what is missing, the
same contract the web client already handles.
"""

from datetime import date, datetime
from typing import Dict, List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from app.models.kyc import IdDocumentType, ReviewStatus, RiskLevel, SourceOfFunds
from app.models.profile import KycStatus, UserRole


class ReviewAction(BaseModel):
    """Body of ``PATCH /admin/kyc/{id}`` and ``PATCH /admin/verifications/{id}``."""

    action: str = Field(..., description="approve or reject")
    risk_level: Optional[str] = Field(
        default=None, description="KYC only: low, medium or high (anything else → low)"
    )
    rejection_reason: Optional[str] = None


class ProfileSummary(BaseModel):
    id: UUID
    full_name: Optional[str] = None
    email: Optional[str] = None
    role: UserRole

    model_config = ConfigDict(from_attributes=True)


# ── KYC ──


class KycSubmit(BaseModel):
    """Schema for ``POST /kyc``.  Document paths reference already-uploaded files."""

    full_legal_name: Optional[str] = None
    date_of_birth: Optional[date] = None
    nationality: Optional[str] = None
    tax_id_type: Optional[str] = None
    tax_id: Optional[str] = Field(default=None, description="Hashed before storage")
    address_line1: Optional[str] = None
    address_line2: Optional[str] = None
    city: Optional[str] = None
    state_province: Optional[str] = None
    postal_code: Optional[str] = None
    country: Optional[str] = None
    id_document_type: Optional[str] = None
    id_document_path: Optional[str] = None
    selfie_path: Optional[str] = None
    source_of_funds: Optional[str] = None
    source_details: Optional[str] = None
    expected_investment_range: Optional[str] = None
    pep_status: bool = False
    pep_details: Optional[str] = None
    terms_accepted: bool = False
    declaration_signed: bool = False


class KycSubmissionResponse(BaseModel):
    id: UUID
    user_id: UUID
    full_legal_name: str
    date_of_birth: date
    nationality: str
    tax_id_type: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state_province: str
    postal_code: str
    country: str
    id_document_type: IdDocumentType
    id_document_path: str
    selfie_path: Optional[str] = None
    source_of_funds: SourceOfFunds
    source_details: Optional[str] = None
    expected_investment_range: Optional[str] = None
    pep_status: bool
    pep_details: Optional[str] = None
    status: ReviewStatus
    risk_level: Optional[RiskLevel] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    expires_at: Optional[datetime] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class KycStatusResponse(BaseModel):
    kyc_status: KycStatus
    submission: Optional[KycSubmissionResponse] = None


class KycListItem(KycSubmissionResponse):
    profile: Optional[ProfileSummary] = None


class KycList(BaseModel):
    submissions: List[KycListItem]
    stats: Optional[Dict[str, int]] = None


class KycReviewResponse(BaseModel):
    ok: bool = True
    submission: KycSubmissionResponse


# ── Verification ──


class VerificationSubmit(BaseModel):
    """Schema for ``POST /verify``; ``type`` selects the investor or operator field set."""

    type: Optional[str] = None
    full_legal_name: Optional[str] = None
    phone: Optional[str] = None
    accreditation_type: Optional[str] = None
    proof_description: Optional[str] = None
    self_certified: bool = False
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    ein_registration: Optional[str] = None
    business_address: Optional[str] = None
    business_description: Optional[str] = None
    years_in_operation: Optional[str] = None


class VerificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    role: UserRole
    status: ReviewStatus
    full_legal_name: str
    phone: Optional[str] = None
    accreditation_type: Optional[str] = None
    proof_description: Optional[str] = None
    self_certified: bool
    business_name: Optional[str] = None
    business_type: Optional[str] = None
    ein_registration: Optional[str] = None
    business_address: Optional[str] = None
    business_description: Optional[str] = None
    years_in_operation: Optional[str] = None
    reviewed_by: Optional[UUID] = None
    reviewed_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class VerificationListItem(VerificationResponse):
    profile: Optional[ProfileSummary] = None


class VerificationList(BaseModel):
    verifications: List[VerificationListItem]


class VerificationReviewResponse(BaseModel):
    ok: bool = True
    request: VerificationResponse


class SubmissionAccepted(BaseModel):
    """Reply to ``POST /kyc`` and ``POST /verify``."""

    ok: bool = True
    id: UUID
