"""
Deal service — catalogue CRUD and investor deal alerts.

Role rules:
- Operators create deals as ``pending`` under their own id and may edit the
  descriptive fields of their own deals only.
- Admins create deals (``active`` unless told otherwise), edit any field and
  delete.
- A deal entering ``active`` fans out deal-alert emails to every investor
  whose preferences score at least ``ALERT_THRESHOLD``.

Alert fan-out runs on the delivery queue, never inside the request.
"""

import logging
import re
from decimal import Decimal
from typing import Callable, List, Optional, Tuple
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser
from app.core.email import email_template, escape
from app.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.db.session import AsyncSessionLocal
from app.models.deal import Deal, DealStatus
from app.models.profile import InvestorProfile, Profile, UserRole
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.profile_repo import InvestorProfileRepository, ProfileRepository
from app.schemas.deal import DealCreate, DealUpdate
from app.services.notifier import Notifier, site_url

logger = logging.getLogger(__name__)

ALERT_THRESHOLD = 2

_CHECK_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(k|m)?")
_CHECK_MULTIPLIERS = {"k": Decimal(1_000), "m": Decimal(1_000_000), None: Decimal(1)}

# Investor check-size buckets → (min, max) in dollars.
CHECK_SIZE_RANGES = {
    "<25k": (Decimal(0), Decimal(25_000)),
    "25-50k": (Decimal(25_000), Decimal(50_000)),
    "50-100k": (Decimal(50_000), Decimal(100_000)),
    "100-250k": (Decimal(100_000), Decimal(250_000)),
    "250-500k": (Decimal(250_000), Decimal(500_000)),
    "500k+": (Decimal(500_000), Decimal("Infinity")),
}


def parse_check_to_number(raw: Optional[str]) -> Optional[Decimal]:
    """
    Parse operator-entered check sizes: ``"$100k"`` → 100000,
    ``"1.5M"`` → 1500000, ``"250,000"`` → 250000.  Unparseable → ``None``.
    """
    if not raw:
        return None
    cleaned = re.sub(r"[$,\s]", "", raw).lower()
    match = _CHECK_PATTERN.match(cleaned)
    if not match:
        return None
    return Decimal(match.group(1)) * _CHECK_MULTIPLIERS[match.group(2)]


def check_size_aligns(deal_min_check: Optional[str], investor_check_size: Optional[str]) -> bool:
    deal_number = parse_check_to_number(deal_min_check)
    bucket = CHECK_SIZE_RANGES.get(investor_check_size or "")
    if deal_number is None or bucket is None:
        return False
    low, high = bucket
    return deal_number <= high and deal_number >= low / 2


def score_deal_for_investor(deal: Deal, investor: InvestorProfile) -> int:
    """+2 category match, +1 check-size alignment, +1 tag found in title/description."""
    score = 0

    investor_categories = [c.replace("_", "-") for c in investor.categories or []]
    if deal.category and deal.category in investor_categories:
        score += 2

    if check_size_aligns(deal.min_check, investor.check_size):
        score += 1

    haystack = f"{deal.title} {deal.description or ''}".lower()
    if any(tag.lower() in haystack for tag in investor.tags or [] if tag):
        score += 1

    return score


async def send_deal_alerts(
    deal: Deal,
    notifier: Notifier,
    session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
) -> int:
    """
    Delivery job: score every investor against ``deal`` and enqueue one alert
    email per match.  Returns the number of alerts enqueued.
    """
    async with session_factory() as session:
        investors = await InvestorProfileRepository(InvestorProfile, session).list_latest_per_user()
        profiles = await ProfileRepository(Profile, session).get_many(
            [inv.user_id for inv in investors]
        )

    lines = [
        f"<strong>{escape(deal.title)}</strong>",
        f"Category: {escape(deal.category)}" if deal.category else "",
        f"Location: {escape(deal.location)}" if deal.location else "",
        f"Min check: {escape(deal.min_check)}" if deal.min_check else "",
    ]
    html = email_template(
        title="New Deal Match",
        body="<br/>".join(line for line in lines if line),
        cta_text="View Deal",
        cta_url=site_url(f"/deals/{deal.id}"),
    )

    sent = 0
    for investor in investors:
        profile = profiles.get(investor.user_id)
        if profile is None or not profile.email:
            continue
        if score_deal_for_investor(deal, investor) < ALERT_THRESHOLD:
            continue
        notifier.send_email(
            profile.email, f"New deal matches your interests: {deal.title}", html
        )
        sent += 1
    logger.info("Deal %s matched %d investor(s) for alerts", deal.id, sent)
    return sent


class DealService:
    """Encapsulates CRUD + role rules for :class:`Deal`."""

    OPERATOR_EDITABLE = frozenset(
        {"title", "description", "category", "location", "timeline", "tags", "min_check", "target_raise"}
    )

    def __init__(
        self,
        deal_repo: DealRepository,
        commitment_repo: CommitmentRepository,
        notifier: Notifier,
    ):
        self._deal_repo = deal_repo
        self._commitment_repo = commitment_repo
        self._notifier = notifier

    # ── Queries ──

    async def list_deals(
        self, status: Optional[str] = None, operator_id: Optional[UUID] = None
    ) -> List[Deal]:
        """No status → active only; ``all`` → every status."""
        if status is None:
            status_filter: Optional[DealStatus] = DealStatus.ACTIVE
        elif status == "all":
            status_filter = None
        else:
            try:
                status_filter = DealStatus(status)
            except ValueError:
                raise BadRequestException(f"Invalid status '{status}'")
        return await self._deal_repo.list_deals(status=status_filter, operator_id=operator_id)

    async def get_deal(self, deal_id: UUID) -> Tuple[Deal, int]:
        deal = await self._deal_repo.get(deal_id)
        if not deal:
            raise NotFoundException("Deal", deal_id)
        investor_count = await self._commitment_repo.count_active_for_deal(deal_id)
        return deal, investor_count

    # ── Commands ──

    async def create_deal(self, user: CurrentUser, deal_in: DealCreate) -> Deal:
        fields = deal_in.model_dump(exclude={"status", "operator_id"})
        if user.role is UserRole.OPERATOR:
            deal = Deal(**fields, status=DealStatus.PENDING, operator_id=user.id)
        elif user.role is UserRole.ADMIN:
            deal = Deal(
                **fields,
                status=deal_in.status or DealStatus.ACTIVE,
                operator_id=deal_in.operator_id,
            )
        elif user.role is UserRole.INVESTOR:
            raise ForbiddenException("Only operators and admins can create deals")
        else:
            raise ValueError(f"Unhandled role: {user.role!r}")

        created = await self._deal_repo.create(deal)
        logger.info(
            "Created deal %s (%s) by %s %s",
            created.id,
            created.status.value,
            user.role.value,
            user.id,
        )

        if user.role is UserRole.OPERATOR:
            self._notify_admin_of_submission(created)
        elif created.status == DealStatus.ACTIVE:
            self._schedule_alerts(created)
        return created

    async def update_deal(self, user: CurrentUser, deal_id: UUID, deal_in: DealUpdate) -> Deal:
        changes = deal_in.model_dump(exclude_unset=True)
        deal = await self._deal_repo.get(deal_id)

        if user.role is UserRole.ADMIN:
            if not deal:
                raise NotFoundException("Deal", deal_id)
        elif user.role is UserRole.OPERATOR:
            if not deal or deal.operator_id != user.id:
                raise NotFoundException("Deal", deal_id)
            changes = {k: v for k, v in changes.items() if k in self.OPERATOR_EDITABLE}
        elif user.role is UserRole.INVESTOR:
            raise ForbiddenException()
        else:
            raise ValueError(f"Unhandled role: {user.role!r}")

        for required in ("title", "status"):
            if changes.get(required, "") is None:
                del changes[required]

        was_active = deal.status == DealStatus.ACTIVE
        for field, value in changes.items():
            setattr(deal, field, value)
        updated = await self._deal_repo.update(deal)

        if not was_active and updated.status == DealStatus.ACTIVE:
            logger.info("Deal %s activated by %s", updated.id, user.id)
            self._schedule_alerts(updated)
        return updated

    async def delete_deal(self, deal_id: UUID) -> None:
        deleted = await self._deal_repo.delete(deal_id)
        if not deleted:
            raise NotFoundException("Deal", deal_id)
        logger.info("Deleted deal %s", deal_id)

    # ── Side effects ──

    def _schedule_alerts(self, deal: Deal) -> None:
        self._notifier.schedule(f"deal-alerts:{deal.id}", send_deal_alerts, deal, self._notifier)

    def _notify_admin_of_submission(self, deal: Deal) -> None:
        lines = [
            "An operator has submitted a new deal for review.",
            f"<strong>Title:</strong> {escape(deal.title)}",
            f"<strong>Category:</strong> {escape(deal.category)}" if deal.category else "",
            f"<strong>Location:</strong> {escape(deal.location)}" if deal.location else "",
            f"<strong>Investment size:</strong> {escape(deal.min_check)}" if deal.min_check else "",
        ]
        self._notifier.send_admin_email(
            f"New deal submitted for review: {deal.title}",
            email_template(
                title="New Deal Submission",
                body="<br/>".join(line for line in lines if line),
                cta_text="Review in Admin",
                cta_url=site_url("/admin/deals"),
            ),
        )
