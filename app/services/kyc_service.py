"""
KYC workflow — submission by the user, review by an admin.

Each step writes the ``kyc_submissions`` row first and the
``profiles.kyc_status`` mirror second, as two independent commits.  Once the
submission row is committed nothing after it fails the request: a failed
mirror write or recipient lookup is logged and the mirror stays stale until
the next review.
"""

import hashlib
import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import List, Optional
from uuid import UUID

from app.core.auth import CurrentUser
from app.core.email import email_template, escape
from app.core.exceptions import BadRequestException, NotFoundException
from app.models.kyc import IdDocumentType, KycSubmission, ReviewStatus, RiskLevel, SourceOfFunds
from app.models.profile import KycStatus
from app.repositories.profile_repo import ProfileRepository
from app.repositories.review_repo import KycRepository
from app.schemas.review import KycSubmit, ReviewAction
from app.services.notifier import Notifier, lookup_for_notification, site_url

logger = logging.getLogger(__name__)

KYC_VALIDITY = timedelta(days=365)

REVIEW_OUTCOMES = {
    "approve": ReviewStatus.APPROVED,
    "reject": ReviewStatus.REJECTED,
}

_REQUIRED_FIELDS = (
    "full_legal_name",
    "date_of_birth",
    "nationality",
    "address_line1",
    "city",
    "state_province",
    "postal_code",
    "country",
    "id_document_type",
    "source_of_funds",
)


def hash_tax_id(raw: Optional[str]) -> Optional[str]:
    """SHA-256 hex digest of the trimmed tax id; the raw value is never stored."""
    raw = (raw or "").strip()
    return hashlib.sha256(raw.encode("utf-8")).hexdigest() if raw else None


def normalise_risk_level(value: Optional[str]) -> RiskLevel:
    try:
        return RiskLevel((value or "").strip().lower())
    except ValueError:
        return RiskLevel.LOW


def _text(value: Optional[str]) -> Optional[str]:
    value = (value or "").strip()
    return value or None


def with_profiles(rows: list, profiles: dict) -> List[dict]:
    """Attach each row's owning profile (or ``None``) under ``profile``."""
    result = []
    for row in rows:
        profile = profiles.get(row.user_id)
        result.append(
            {**row.model_dump(), "profile": profile.model_dump() if profile else None}
        )
    return result


class KycService:
    def __init__(
        self,
        kyc_repo: KycRepository,
        profile_repo: ProfileRepository,
        notifier: Notifier,
    ):
        self._kyc_repo = kyc_repo
        self._profile_repo = profile_repo
        self._notifier = notifier

    # ── User side ──

    async def get_own(self, user: CurrentUser) -> dict:
        submission = await self._kyc_repo.get_latest_for_user(user.id)
        return {"kyc_status": user.kyc_status, "submission": submission}

    async def submit(self, user: CurrentUser, kyc_in: KycSubmit) -> KycSubmission:
        if user.kyc_status == KycStatus.PENDING:
            raise BadRequestException("You already have a pending KYC submission.")
        if user.kyc_status == KycStatus.APPROVED:
            raise BadRequestException("Your KYC is already approved.")

        data = kyc_in.model_dump()
        for field in _REQUIRED_FIELDS:
            value = data.get(field)
            if value is None or (isinstance(value, str) and not value.strip()):
                raise BadRequestException("Missing required fields")
        if not kyc_in.terms_accepted or not kyc_in.declaration_signed:
            raise BadRequestException("You must accept the terms and sign the declaration")
        try:
            id_document_type = IdDocumentType(kyc_in.id_document_type.strip())
        except ValueError:
            raise BadRequestException("Invalid ID document type")
        try:
            source_of_funds = SourceOfFunds(kyc_in.source_of_funds.strip())
        except ValueError:
            raise BadRequestException("Invalid source of funds")
        if not _text(kyc_in.id_document_path):
            raise BadRequestException("ID document is required")

        submission = await self._kyc_repo.create(
            KycSubmission(
                user_id=user.id,
                full_legal_name=kyc_in.full_legal_name.strip(),
                date_of_birth=kyc_in.date_of_birth,
                nationality=kyc_in.nationality.strip(),
                tax_id_type=_text(kyc_in.tax_id_type),
                tax_id_hash=hash_tax_id(kyc_in.tax_id),
                address_line1=kyc_in.address_line1.strip(),
                address_line2=_text(kyc_in.address_line2),
                city=kyc_in.city.strip(),
                state_province=kyc_in.state_province.strip(),
                postal_code=kyc_in.postal_code.strip(),
                country=kyc_in.country.strip(),
                id_document_type=id_document_type,
                id_document_path=kyc_in.id_document_path.strip(),
                selfie_path=_text(kyc_in.selfie_path),
                source_of_funds=source_of_funds,
                source_details=_text(kyc_in.source_details),
                expected_investment_range=_text(kyc_in.expected_investment_range),
                pep_status=kyc_in.pep_status,
                pep_details=_text(kyc_in.pep_details),
                terms_accepted=True,
                declaration_signed=True,
            )
        )
        try:
            await self._profile_repo.set_fields(user.id, kyc_status=KycStatus.PENDING)
        except Exception:
            logger.exception("KYC status mirror write failed for user %s", user.id)
        logger.info("KYC submission %s received from %s", submission.id, user.id)

        self._notify_submitted(user, submission)
        return submission

    # ── Admin side ──

    async def list_submissions(self, status: Optional[str] = None) -> dict:
        """
        Submissions newest first, each with its owner's profile.  Unknown
        ``status`` values are ignored; stats are only computed when no
        ``status`` was given.
        """
        status_filter = None
        if status:
            try:
                status_filter = ReviewStatus(status)
            except ValueError:
                logger.debug("Ignoring unknown KYC status filter %r", status)

        submissions = await self._kyc_repo.list_by_status(status_filter)
        profiles = await self._profile_repo.get_many([s.user_id for s in submissions])
        rows = with_profiles(submissions, profiles)

        stats = None
        if not status:
            counts = Counter(s.status for s in submissions)
            stats = {s.value: counts.get(s, 0) for s in ReviewStatus}
        return {"submissions": rows, "stats": stats}

    async def review(
        self, admin: CurrentUser, submission_id: UUID, review_in: ReviewAction
    ) -> KycSubmission:
        outcome = REVIEW_OUTCOMES.get(review_in.action)
        if outcome is None:
            raise BadRequestException("action must be 'approve' or 'reject'")

        submission = await self._kyc_repo.get(submission_id)
        if not submission:
            raise NotFoundException("KYC submission", submission_id)

        now = datetime.now(timezone.utc)
        submission.status = outcome
        submission.reviewed_by = admin.id
        submission.reviewed_at = now
        if outcome == ReviewStatus.APPROVED:
            submission.risk_level = normalise_risk_level(review_in.risk_level)
            submission.expires_at = now + KYC_VALIDITY
            submission.rejection_reason = None
        else:
            submission.rejection_reason = _text(review_in.rejection_reason)
        submission = await self._kyc_repo.update(submission)
        logger.info(
            "KYC submission %s %s by admin %s", submission_id, outcome.value, admin.id
        )

        try:
            await self._profile_repo.set_fields(
                submission.user_id, kyc_status=KycStatus(outcome.value)
            )
        except Exception:
            logger.exception("KYC status mirror write failed for user %s", submission.user_id)

        await self._notify_reviewed(submission)
        return submission

    # ── Side effects ──

    def _notify_submitted(self, user: CurrentUser, submission: KycSubmission) -> None:
        self._notifier.send_admin_email(
            f"New KYC submission from {submission.full_legal_name}",
            email_template(
                title="New KYC Submission",
                body="<br/>".join(
                    [
                        f"<strong>Name:</strong> {escape(submission.full_legal_name)}",
                        f"<strong>Email:</strong> {escape(user.email)}",
                        f"<strong>Nationality:</strong> {escape(submission.nationality)}",
                        f"<strong>Source of Funds:</strong> {submission.source_of_funds.value}",
                    ]
                ),
                cta_text="Review in Compliance Dashboard",
                cta_url=site_url("/admin/compliance"),
            ),
        )
        self._notifier.send_email(
            user.email,
            "KYC submission received",
            email_template(
                title="KYC Submission Received",
                body=(
                    "Your KYC documents have been submitted successfully. Our compliance "
                    "team will review your submission and you'll be notified once the "
                    "review is complete."
                ),
                cta_text="Check Status",
                cta_url=site_url("/kyc"),
            ),
        )
        self._notifier.notify_admins(
            "admin_kyc_submission",
            "New KYC submission",
            f"{submission.full_legal_name} submitted KYC documents for review.",
            link="/admin/compliance",
        )

    async def _notify_reviewed(self, submission: KycSubmission) -> None:
        profile = await lookup_for_notification(self._profile_repo, submission.user_id)
        if not profile or not profile.email:
            return
        name = escape(profile.full_name or "there")

        if submission.status == ReviewStatus.APPROVED:
            self._notifier.send_email(
                profile.email,
                "Your KYC verification has been approved",
                email_template(
                    title="KYC Approved",
                    body=(
                        f"Congratulations {name}! Your KYC verification has been approved. "
                        "You now have full access to all deals on the platform."
                    ),
                    cta_text="Browse Deals",
                    cta_url=site_url("/deals"),
                ),
            )
            return

        lines = [
            f"Hi {name}, unfortunately your KYC submission was not approved.",
            f"<strong>Reason:</strong> {escape(submission.rejection_reason)}"
            if submission.rejection_reason
            else "",
            "You can resubmit your KYC with updated information.",
        ]
        self._notifier.send_email(
            profile.email,
            "Your KYC verification was not approved",
            email_template(
                title="KYC Not Approved",
                body="<br/><br/>".join(line for line in lines if line),
                cta_text="Resubmit KYC",
                cta_url=site_url("/kyc"),
            ),
        )
