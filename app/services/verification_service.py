"""
Account verification workflow (accreditation for investors, business
verification for operators).

Same shape as the KYC workflow: the request row is written first, then the
``profiles.verification_status`` mirror.
"""

import logging
from datetime import datetime, timezone
from typing import Optional
from uuid import UUID

from app.core.auth import CurrentUser
from app.core.email import email_template, escape
from app.core.exceptions import BadRequestException, NotFoundException
from app.models.kyc import ReviewStatus
from app.models.profile import UserRole, VerificationStatus
from app.models.verification import VerificationRequest
from app.repositories.profile_repo import ProfileRepository
from app.repositories.review_repo import VerificationRepository
from app.schemas.review import ReviewAction, VerificationSubmit
from app.services.kyc_service import REVIEW_OUTCOMES, with_profiles
from app.services.notifier import Notifier, lookup_for_notification, site_url

logger = logging.getLogger(__name__)

# Required fields per requested role, checked in order → first missing one is reported.
REQUIRED_FIELDS = {
    UserRole.INVESTOR: (
        ("full_legal_name", "Full legal name is required."),
        ("phone", "Phone number is required."),
        ("accreditation_type", "Accreditation type is required."),
        ("self_certified", "Self-certification is required."),
    ),
    UserRole.OPERATOR: (
        ("full_legal_name", "Full legal name is required."),
        ("business_name", "Business name is required."),
        ("business_type", "Business type is required."),
        ("business_description", "Business description is required."),
    ),
}

PROFILE_MIRROR = {
    ReviewStatus.APPROVED: VerificationStatus.VERIFIED,
    ReviewStatus.REJECTED: VerificationStatus.REJECTED,
}


def _text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class VerificationService:
    def __init__(
        self,
        verification_repo: VerificationRepository,
        profile_repo: ProfileRepository,
        notifier: Notifier,
    ):
        self._verification_repo = verification_repo
        self._profile_repo = profile_repo
        self._notifier = notifier

    async def submit(
        self, user: CurrentUser, request_in: VerificationSubmit
    ) -> VerificationRequest:
        if user.verification_status == VerificationStatus.PENDING:
            raise BadRequestException("You already have a pending verification request.")
        if user.verification_status == VerificationStatus.VERIFIED:
            raise BadRequestException("You are already verified.")

        if request_in.type not in (UserRole.INVESTOR.value, UserRole.OPERATOR.value):
            raise BadRequestException("type must be 'investor' or 'operator'")
        role = UserRole(request_in.type)

        data = request_in.model_dump()
        for field, message in REQUIRED_FIELDS[role]:
            value = data[field]
            if not (value.strip() if isinstance(value, str) else value):
                raise BadRequestException(message)

        if role is UserRole.INVESTOR:
            request = VerificationRequest(
                user_id=user.id,
                role=role,
                full_legal_name=request_in.full_legal_name.strip(),
                phone=request_in.phone.strip(),
                accreditation_type=request_in.accreditation_type.strip(),
                proof_description=_text(request_in.proof_description),
                self_certified=True,
            )
        elif role is UserRole.OPERATOR:
            request = VerificationRequest(
                user_id=user.id,
                role=role,
                full_legal_name=request_in.full_legal_name.strip(),
                business_name=request_in.business_name.strip(),
                business_type=request_in.business_type.strip(),
                ein_registration=_text(request_in.ein_registration),
                business_address=_text(request_in.business_address),
                business_description=request_in.business_description.strip(),
                years_in_operation=_text(request_in.years_in_operation),
            )
        else:
            raise ValueError(f"Unhandled role: {role!r}")

        request = await self._verification_repo.create(request)
        try:
            await self._profile_repo.set_fields(
                user.id, verification_status=VerificationStatus.PENDING
            )
        except Exception:
            logger.exception("Verification status mirror write failed for user %s", user.id)
        logger.info("Verification request %s (%s) from %s", request.id, role.value, user.id)

        self._notify_submitted(request)
        return request

    async def list_requests(self, status: Optional[str] = None) -> dict:
        """Pending requests by default; ``all`` returns every status."""
        status = status or ReviewStatus.PENDING.value
        if status == "all":
            status_filter = None
        else:
            try:
                status_filter = ReviewStatus(status)
            except ValueError:
                raise BadRequestException(f"Invalid status '{status}'")

        requests = await self._verification_repo.list_by_status(status_filter)
        profiles = await self._profile_repo.get_many([r.user_id for r in requests])
        return {"verifications": with_profiles(requests, profiles)}

    async def review(
        self, admin: CurrentUser, request_id: UUID, review_in: ReviewAction
    ) -> VerificationRequest:
        outcome = REVIEW_OUTCOMES.get(review_in.action)
        if outcome is None:
            raise BadRequestException("action must be 'approve' or 'reject'")

        request = await self._verification_repo.get(request_id)
        if not request:
            raise NotFoundException("Verification", request_id)

        request.status = outcome
        request.reviewed_by = admin.id
        request.reviewed_at = datetime.now(timezone.utc)
        request.rejection_reason = (
            _text(review_in.rejection_reason) if outcome == ReviewStatus.REJECTED else None
        )
        request = await self._verification_repo.update(request)
        logger.info("Verification %s %s by admin %s", request_id, outcome.value, admin.id)

        try:
            await self._profile_repo.set_fields(
                request.user_id, verification_status=PROFILE_MIRROR[outcome]
            )
        except Exception:
            logger.exception(
                "Verification status mirror write failed for user %s", request.user_id
            )

        await self._notify_reviewed(request)
        return request

    # ── Side effects ──

    def _notify_submitted(self, request: VerificationRequest) -> None:
        name = escape(request.full_legal_name)
        if request.role is UserRole.INVESTOR:
            subject = "New investor verification request"
            title = "Investor Verification Request"
            lines = [
                f"<strong>Name:</strong> {name}",
                f"<strong>Phone:</strong> {escape(request.phone)}",
                f"<strong>Accreditation:</strong> {escape(request.accreditation_type)}",
                f"<strong>Proof:</strong> {escape(request.proof_description)}"
                if request.proof_description
                else "",
            ]
            message = f"Investor {request.full_legal_name} submitted a verification request."
        elif request.role is UserRole.OPERATOR:
            subject = "New operator verification request"
            title = "Operator Verification Request"
            lines = [
                f"<strong>Name:</strong> {name}",
                f"<strong>Business:</strong> {escape(request.business_name)}",
                f"<strong>Type:</strong> {escape(request.business_type)}",
                f"<strong>Description:</strong> {escape(request.business_description)}",
            ]
            message = (
                f"Operator {request.full_legal_name} ({request.business_name}) "
                "submitted a verification request."
            )
        else:
            raise ValueError(f"Unhandled role: {request.role!r}")

        self._notifier.send_admin_email(
            subject,
            email_template(
                title=title,
                body="<br/>".join(line for line in lines if line),
                cta_text="Review Verifications",
                cta_url=site_url("/admin/verifications"),
            ),
        )
        self._notifier.notify_admins(
            "admin_verification_request",
            "New verification request",
            message,
            link="/admin/verifications",
        )

    async def _notify_reviewed(self, request: VerificationRequest) -> None:
        profile = await lookup_for_notification(self._profile_repo, request.user_id)
        if not profile or not profile.email:
            return
        name = escape(profile.full_name or "there")

        if request.status == ReviewStatus.APPROVED:
            self._notifier.send_email(
                profile.email,
                "Your DealBridge account has been verified",
                email_template(
                    title="Account Verified",
                    body=(
                        f"Congratulations {name}! Your account has been verified. "
                        "You now have full access to the platform."
                    ),
                    cta_text="Go to DealBridge",
                    cta_url=site_url("/"),
                ),
            )
            return

        resubmit_path = "/operator/verify" if request.role is UserRole.OPERATOR else "/verify"
        lines = [
            f"Hi {name}, unfortunately your verification request was not approved.",
            f"<strong>Reason:</strong> {escape(request.rejection_reason)}"
            if request.rejection_reason
            else "",
            "You can resubmit your verification with updated information.",
        ]
        self._notifier.send_email(
            profile.email,
            "Your DealBridge verification was not approved",
            email_template(
                title="Verification Not Approved",
                body="<br/><br/>".join(line for line in lines if line),
                cta_text="Resubmit Verification",
                cta_url=site_url(resubmit_path),
            ),
        )
