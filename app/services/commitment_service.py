"""
Commitment service — the business half of the commitment state machine.

Lifecycle::

    draft → committed → funded → completed
                 ╰──────────┴──────→ cancelled

``completed`` and ``cancelled`` are terminal.  ``funded`` is normally reached
through the payment webhook; admins may also force it with the ``fund``
action (e.g. for a wire transfer outside the provider).
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from app.core.auth import CurrentUser
from app.core.email import email_template, escape, format_currency
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.models.commitment import (
    TERMINAL_COMMITMENT_STATUSES,
    CommitmentStatus,
    InvestmentCommitment,
)
from app.models.deal import Deal, DealStatus
from app.models.profile import KycStatus, UserRole, VerificationStatus
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.commitment import CommitmentCreate
from app.services.deal_service import parse_check_to_number
from app.services.notifier import Notifier, lookup_for_notification, site_url

logger = logging.getLogger(__name__)

LARGE_COMMITMENT = Decimal(100_000)
KYC_REQUIRED_MIN_CHECK = Decimal(100_000)

# Admin action → resulting status (``flag`` only annotates notes).
ADMIN_ACTIONS = {
    "fund": CommitmentStatus.FUNDED,
    "complete": CommitmentStatus.COMPLETED,
    "cancel": CommitmentStatus.CANCELLED,
    "flag": None,
}


def _dump(row) -> Optional[dict]:
    return row.model_dump() if row is not None else None


class CommitmentService:
    def __init__(
        self,
        commitment_repo: CommitmentRepository,
        deal_repo: DealRepository,
        profile_repo: ProfileRepository,
        notifier: Notifier,
    ):
        self._commitment_repo = commitment_repo
        self._deal_repo = deal_repo
        self._profile_repo = profile_repo
        self._notifier = notifier

    # ── Queries ──

    async def _with_relations(self, commitments: List[InvestmentCommitment]) -> List[dict]:
        deals = await self._deal_repo.get_many([c.deal_id for c in commitments])
        investors = await self._profile_repo.get_many([c.investor_id for c in commitments])
        return [
            {
                **c.model_dump(),
                "deal": _dump(deals.get(c.deal_id)),
                "investor": _dump(investors.get(c.investor_id)),
            }
            for c in commitments
        ]

    async def list_commitments(
        self,
        user: CurrentUser,
        deal_id: Optional[UUID] = None,
        status: Optional[CommitmentStatus] = None,
        show_all: bool = False,
    ) -> List[dict]:
        """
        Investors see their own commitments, operators those on their deals,
        admins their own unless ``show_all``.
        """
        repo = self._commitment_repo
        criteria = []
        if user.role is UserRole.INVESTOR:
            criteria.append(repo.model.investor_id == user.id)
        elif user.role is UserRole.OPERATOR:
            deals = await self._deal_repo.list_by_operator(user.id)
            if not deals:
                return []
            criteria.append(repo.model.deal_id.in_([d.id for d in deals]))
        elif user.role is UserRole.ADMIN:
            if not show_all:
                criteria.append(repo.model.investor_id == user.id)
        else:
            raise ValueError(f"Unhandled role: {user.role!r}")

        if deal_id is not None:
            criteria.append(repo.model.deal_id == deal_id)
        if status is not None:
            criteria.append(repo.model.status == status)
        commitments = await repo.list_where(*criteria, order_by=repo.model.created_at.desc())
        return await self._with_relations(commitments)

    async def admin_list_commitments(self) -> dict:
        commitments = await self._commitment_repo.list_newest_first()
        by_status = Counter(c.status.value for c in commitments)
        stats = {
            "total": len(commitments),
            "total_amount": float(sum((c.amount for c in commitments), Decimal("0"))),
            "by_status": {s.value: by_status.get(s.value, 0) for s in CommitmentStatus},
            "large_count": sum(1 for c in commitments if c.amount >= LARGE_COMMITMENT),
        }
        return {"commitments": await self._with_relations(commitments), "stats": stats}

    # ── Commands ──

    async def create_commitment(
        self, user: CurrentUser, commitment_in: CommitmentCreate
    ) -> InvestmentCommitment:
        """
        Validation sequence:
        1. Caller is an investor or admin with a verified account → 403.
        2. Deal exists (404) and is active (400).
        3. Deals with a minimum check of $100k+ require approved KYC → 403.
        4. Amount covers the deal's minimum check → 400.
        5. No other open commitment on the same deal → 409.
        """
        if user.role not in (UserRole.INVESTOR, UserRole.ADMIN):
            raise ForbiddenException("Investor or admin role required")
        if user.verification_status != VerificationStatus.VERIFIED:
            raise ForbiddenException("Account verification required")

        deal = await self._deal_repo.get(commitment_in.deal_id)
        if not deal:
            raise NotFoundException("Deal", commitment_in.deal_id)
        if deal.status != DealStatus.ACTIVE:
            raise BadRequestException("Deal is not active")

        min_check = parse_check_to_number(deal.min_check)
        if (
            min_check is not None
            and min_check >= KYC_REQUIRED_MIN_CHECK
            and user.kyc_status != KycStatus.APPROVED
        ):
            raise ForbiddenException("KYC approval required for this deal")
        if min_check is not None and commitment_in.amount < min_check:
            raise BadRequestException(f"Amount must be at least {format_currency(min_check)}")

        if await self._commitment_repo.find_open(deal.id, user.id):
            raise ConflictException("You already have an active commitment on this deal")

        commitment = InvestmentCommitment(
            deal_id=deal.id,
            investor_id=user.id,
            amount=commitment_in.amount,
            status=CommitmentStatus.COMMITTED,
            notes=commitment_in.notes or None,
        )
        try:
            created = await self._commitment_repo.create(commitment)
        except IntegrityError as exc:
            await self._commitment_repo.db.rollback()
            logger.warning("IntegrityError creating commitment on deal %s: %s", deal.id, exc)
            raise BadRequestException("Commitment could not be created")

        logger.info(
            "Created commitment %s: investor %s → deal %s (%s)",
            created.id,
            user.id,
            deal.id,
            format_currency(created.amount),
        )
        await self._notify_commitment_created(user, deal, created)
        return created

    async def cancel_commitment(
        self, user: CurrentUser, commitment_id: UUID, status: CommitmentStatus
    ) -> InvestmentCommitment:
        """The owning investor may cancel their own non-terminal commitment."""
        commitment = await self._commitment_repo.get(commitment_id)
        if not commitment:
            raise NotFoundException("Commitment", commitment_id)
        if commitment.investor_id != user.id:
            raise ForbiddenException()
        if status != CommitmentStatus.CANCELLED:
            raise BadRequestException("Investors can only cancel commitments")
        if commitment.status in TERMINAL_COMMITMENT_STATUSES:
            raise ConflictException(f"Commitment is already {commitment.status.value}")

        commitment.status = CommitmentStatus.CANCELLED
        updated = await self._commitment_repo.update(commitment)
        logger.info("Investor %s cancelled commitment %s", user.id, commitment_id)
        return updated

    async def apply_admin_action(
        self, commitment_id: UUID, action: str, notes: Optional[str] = None
    ) -> InvestmentCommitment:
        if action not in ADMIN_ACTIONS:
            raise BadRequestException(f"Invalid action '{action}'")

        commitment = await self._commitment_repo.get(commitment_id)
        if not commitment:
            raise NotFoundException("Commitment", commitment_id)

        new_status = ADMIN_ACTIONS[action]
        previous_status = commitment.status
        if new_status is None:
            commitment.notes = f"[FLAGGED] {notes or commitment.notes or ''}".strip()
        else:
            if previous_status in TERMINAL_COMMITMENT_STATUSES:
                raise ConflictException(f"Commitment is already {previous_status.value}")
            commitment.status = new_status
            if new_status == CommitmentStatus.FUNDED:
                commitment.funded_date = datetime.now(timezone.utc)
            if notes is not None:
                commitment.notes = notes

        updated = await self._commitment_repo.update(commitment)
        logger.info("Admin action '%s' on commitment %s", action, commitment_id)

        if new_status is not None and new_status != previous_status:
            await self._notify_status_change(updated, notes)
        return updated

    # ── Side effects ──

    async def _notify_commitment_created(
        self, user: CurrentUser, deal: Deal, commitment: InvestmentCommitment
    ) -> None:
        amount = format_currency(commitment.amount)
        title = escape(deal.title)

        self._notifier.send_email(
            user.email,
            f"Investment commitment confirmed: {deal.title}",
            email_template(
                title="Commitment Confirmed",
                body="<br/>".join(
                    [
                        f"Your investment commitment of <strong>{amount}</strong> in "
                        f"<strong>{title}</strong> has been recorded.",
                        "",
                        "Next steps:",
                        "1. Our team will review your commitment",
                        "2. You'll receive funding instructions when ready",
                        "3. Track your investments anytime in your portfolio",
                    ]
                ),
                cta_text="View Portfolio",
                cta_url=site_url("/portfolio"),
            ),
        )

        if deal.operator_id:
            operator = await lookup_for_notification(self._profile_repo, deal.operator_id)
            if operator and operator.email:
                new_total = (deal.total_committed or Decimal("0")) + commitment.amount
                self._notifier.send_email(
                    operator.email,
                    f"New investment commitment on {deal.title}",
                    email_template(
                        title="New Investment Commitment",
                        body=(
                            f"A new commitment of <strong>{amount}</strong> has been made on "
                            f"<strong>{title}</strong>.<br/>"
                            f"Total raised: <strong>{format_currency(new_total)}</strong>"
                        ),
                        cta_text="View Dashboard",
                        cta_url=site_url("/operator/dashboard"),
                    ),
                )

        if commitment.amount >= LARGE_COMMITMENT:
            self._notifier.send_admin_email(
                f"Large commitment: {amount} on {deal.title}",
                email_template(
                    title="Large Investment Commitment",
                    body=(
                        f"A commitment of <strong>{amount}</strong> has been made on "
                        f"<strong>{title}</strong>.<br/>"
                        f"Investor: {escape(user.full_name) or 'Unknown'} "
                        f"({escape(user.email) or 'Unknown'})"
                    ),
                    cta_text="Review in Admin",
                    cta_url=site_url("/admin/investments"),
                ),
            )

    async def _notify_status_change(
        self, commitment: InvestmentCommitment, notes: Optional[str]
    ) -> None:
        investor = await lookup_for_notification(self._profile_repo, commitment.investor_id)
        if not investor or not investor.email:
            return
        deal = await lookup_for_notification(self._deal_repo, commitment.deal_id)
        deal_title = deal.title if deal else "Deal"
        lines = [
            f"Your investment commitment in <strong>{escape(deal.title) if deal else 'a deal'}</strong> "
            "has been updated.",
            f"<strong>New status:</strong> {commitment.status.value}",
            f"<strong>Amount:</strong> {format_currency(commitment.amount)}",
            f"<strong>Notes:</strong> {escape(notes)}" if notes else "",
        ]
        self._notifier.send_email(
            investor.email,
            f"Investment status update: {deal_title}",
            email_template(
                title="Investment Status Update",
                body="<br/>".join(line for line in lines if line),
                cta_text="View Portfolio",
                cta_url=site_url("/portfolio"),
            ),
        )
