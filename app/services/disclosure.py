"""
Tiered disclosure of investor profiles.

How much of an investor's profile a viewer may see is a privacy boundary
computed here, server-side, from the viewer's identity and role:

* ``self``    — the investor viewing their own profile.
* ``full``    — an admin, or an operator with an accepted introduction from
  this investor on one of the operator's deals.
* ``limited`` — everyone else, including anonymous viewers.

A ``limited`` payload carries a pseudonym instead of the real name and no
bio or investment statistics.
"""

import logging
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import UUID

from app.core.auth import CurrentUser
from app.core.exceptions import NotFoundException
from app.models.profile import InvestorProfile, Profile, UserRole, VerificationStatus
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import InvestorProfileRepository, ProfileRepository

logger = logging.getLogger(__name__)


class DisclosureLevel(str, Enum):
    SELF = "self"
    FULL = "full"
    LIMITED = "limited"


def pseudonym(investor_id: UUID) -> str:
    """Stable anonymous display name derived from the investor id."""
    return f"Investor #{str(investor_id)[-4:].upper()}"


def resolve_disclosure_level(
    viewer: Optional[CurrentUser], investor_id: UUID, has_accepted_intro: bool
) -> DisclosureLevel:
    """
    ``has_accepted_intro`` is only consulted for operator viewers: it must be
    ``True`` iff an accepted interest links ``investor_id`` to one of the
    viewer's deals.
    """
    if viewer is None:
        return DisclosureLevel.LIMITED
    if viewer.id == investor_id:
        return DisclosureLevel.SELF

    role = viewer.role
    if role is UserRole.ADMIN:
        return DisclosureLevel.FULL
    if role is UserRole.OPERATOR:
        return DisclosureLevel.FULL if has_accepted_intro else DisclosureLevel.LIMITED
    if role is UserRole.INVESTOR:
        return DisclosureLevel.LIMITED
    raise ValueError(f"Unhandled role: {role!r}")


def build_investor_payload(
    level: DisclosureLevel,
    profile: Profile,
    investor_profile: InvestorProfile,
    deals_committed: int = 0,
    total_invested: Decimal = Decimal("0"),
) -> dict:
    """Assemble the response body for ``level``; statistics are ignored for ``limited``."""
    anonymous_name = pseudonym(profile.id)
    payload = {
        "id": profile.id,
        "name": anonymous_name,
        "verified": profile.verification_status == VerificationStatus.VERIFIED,
        "member_since": profile.created_at,
        "check_size": investor_profile.check_size,
        "timeline": investor_profile.timeline,
        "involvement": investor_profile.involvement,
        "categories": investor_profile.categories or [],
        "subcategories": investor_profile.subcategories or [],
        "tags": investor_profile.tags or [],
    }
    if level is DisclosureLevel.LIMITED:
        return payload

    payload.update(
        name=profile.full_name or anonymous_name,
        headline=investor_profile.headline,
        bio=investor_profile.bio,
        verified_only=investor_profile.verified_only,
        deals_committed=deals_committed,
        total_invested=total_invested,
    )
    return payload


class InvestorProfileService:
    """Read path for ``GET /investors/{id}``."""

    def __init__(
        self,
        profile_repo: ProfileRepository,
        investor_profile_repo: InvestorProfileRepository,
        deal_repo: DealRepository,
        interest_repo: InterestRepository,
        commitment_repo: CommitmentRepository,
    ):
        self._profile_repo = profile_repo
        self._investor_profile_repo = investor_profile_repo
        self._deal_repo = deal_repo
        self._interest_repo = interest_repo
        self._commitment_repo = commitment_repo

    async def _has_accepted_intro(self, operator_id: UUID, investor_id: UUID) -> bool:
        deals = await self._deal_repo.list_by_operator(operator_id)
        return await self._interest_repo.has_accepted_intro(
            investor_id, [deal.id for deal in deals]
        )

    async def get_investor(
        self, viewer: Optional[CurrentUser], investor_id: UUID
    ) -> dict:
        investor_profile = await self._investor_profile_repo.get_latest_for_user(investor_id)
        if investor_profile is None:
            raise NotFoundException("Investor")
        profile = await self._profile_repo.get(investor_id)
        if profile is None or profile.role != UserRole.INVESTOR:
            raise NotFoundException("Investor")

        has_intro = False
        if viewer is not None and viewer.role is UserRole.OPERATOR and viewer.id != investor_id:
            has_intro = await self._has_accepted_intro(viewer.id, investor_id)
        level = resolve_disclosure_level(viewer, investor_id, has_intro)

        deals_committed, total_invested = 0, Decimal("0")
        if level is not DisclosureLevel.LIMITED:
            deals_committed, total_invested = await self._commitment_repo.get_investor_stats(
                investor_id
            )

        logger.debug(
            "Investor %s viewed at level %s",
            investor_id,
            level.value,
            extra={"user_id": str(viewer.id) if viewer else None},
        )
        investor = build_investor_payload(
            level, profile, investor_profile, deals_committed, total_invested
        )
        return {"level": level, "investor": investor}
