"""
Unit tests for the tiered-disclosure resolver and InvestorProfileService.

Covers:
- resolve_disclosure_level for every viewer kind
- pseudonym formatting
- limited payloads never carry identifying keys
- the service only checks introductions for operator viewers and only
  loads statistics for non-limited levels
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import NotFoundException
from app.models.profile import UserRole
from app.services.disclosure import (
    DisclosureLevel,
    InvestorProfileService,
    build_investor_payload,
    pseudonym,
    resolve_disclosure_level,
)

from .conftest import (
    INTEREST_ID,
    INVESTOR_ID,
    OPERATOR_ID,
    make_admin,
    make_deal,
    make_investor_profile,
    make_operator,
    make_profile,
    make_user,
)

OTHER_INVESTOR_ID = INTEREST_ID

FULL_ONLY_KEYS = {"headline", "bio", "verified_only", "deals_committed", "total_invested"}


class TestResolveDisclosureLevel:
    def test_anonymous_viewer_is_limited(self):
        assert resolve_disclosure_level(None, INVESTOR_ID, True) is DisclosureLevel.LIMITED

    def test_investor_viewing_self(self):
        viewer = make_user()
        assert resolve_disclosure_level(viewer, INVESTOR_ID, False) is DisclosureLevel.SELF

    def test_admin_is_full(self):
        assert resolve_disclosure_level(make_admin(), INVESTOR_ID, False) is DisclosureLevel.FULL

    def test_operator_with_accepted_intro_is_full(self):
        level = resolve_disclosure_level(make_operator(), INVESTOR_ID, True)
        assert level is DisclosureLevel.FULL

    def test_operator_without_intro_is_limited(self):
        level = resolve_disclosure_level(make_operator(), INVESTOR_ID, False)
        assert level is DisclosureLevel.LIMITED

    def test_other_investor_is_limited_even_with_flag(self):
        viewer = make_user(id=OTHER_INVESTOR_ID)
        assert resolve_disclosure_level(viewer, INVESTOR_ID, True) is DisclosureLevel.LIMITED


def test_pseudonym_uses_last_four_characters_upper_cased():
    assert pseudonym(INTEREST_ID) == "Investor #ABCD"


class TestBuildInvestorPayload:
    def test_limited_payload_hides_identity(self):
        payload = build_investor_payload(
            DisclosureLevel.LIMITED, make_profile(), make_investor_profile()
        )
        assert payload["name"] == pseudonym(INVESTOR_ID)
        assert FULL_ONLY_KEYS.isdisjoint(payload)
        assert payload["verified"] is True
        assert payload["categories"] == ["small_business"]

    def test_full_payload_includes_name_and_statistics(self):
        payload = build_investor_payload(
            DisclosureLevel.FULL,
            make_profile(),
            make_investor_profile(),
            deals_committed=2,
            total_invested=Decimal("75000"),
        )
        assert payload["name"] == "Ada Investor"
        assert payload["deals_committed"] == 2
        assert payload["total_invested"] == Decimal("75000")
        assert FULL_ONLY_KEYS <= set(payload)

    def test_full_payload_falls_back_to_pseudonym_without_name(self):
        payload = build_investor_payload(
            DisclosureLevel.SELF, make_profile(full_name=None), make_investor_profile()
        )
        assert payload["name"] == pseudonym(INVESTOR_ID)


# ────────────────────────────────────────────────────────────────────────────
# InvestorProfileService
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def repos():
    profile_repo = AsyncMock()
    investor_profile_repo = AsyncMock()
    deal_repo = AsyncMock()
    interest_repo = AsyncMock()
    commitment_repo = AsyncMock()
    profile_repo.get.return_value = make_profile()
    investor_profile_repo.get_latest_for_user.return_value = make_investor_profile()
    commitment_repo.get_investor_stats.return_value = (3, Decimal("120000"))
    return profile_repo, investor_profile_repo, deal_repo, interest_repo, commitment_repo


@pytest.fixture()
def service(repos):
    return InvestorProfileService(*repos)


class TestGetInvestor:
    @pytest.mark.asyncio
    async def test_anonymous_gets_limited_without_stats(self, service, repos):
        _, _, deal_repo, interest_repo, commitment_repo = repos

        result = await service.get_investor(None, INVESTOR_ID)

        assert result["level"] is DisclosureLevel.LIMITED
        assert FULL_ONLY_KEYS.isdisjoint(result["investor"])
        deal_repo.list_by_operator.assert_not_awaited()
        interest_repo.has_accepted_intro.assert_not_awaited()
        commitment_repo.get_investor_stats.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_operator_with_accepted_intro_gets_full(self, service, repos):
        _, _, deal_repo, interest_repo, _ = repos
        deal = make_deal()
        deal_repo.list_by_operator.return_value = [deal]
        interest_repo.has_accepted_intro.return_value = True

        result = await service.get_investor(make_operator(), INVESTOR_ID)

        assert result["level"] is DisclosureLevel.FULL
        assert result["investor"]["deals_committed"] == 3
        deal_repo.list_by_operator.assert_awaited_once_with(OPERATOR_ID)
        interest_repo.has_accepted_intro.assert_awaited_once_with(INVESTOR_ID, [deal.id])

    @pytest.mark.asyncio
    async def test_operator_without_intro_gets_limited(self, service, repos):
        _, _, deal_repo, interest_repo, _ = repos
        deal_repo.list_by_operator.return_value = []
        interest_repo.has_accepted_intro.return_value = False

        result = await service.get_investor(make_operator(), INVESTOR_ID)

        assert result["level"] is DisclosureLevel.LIMITED

    @pytest.mark.asyncio
    async def test_admin_skips_intro_lookup(self, service, repos):
        _, _, _, interest_repo, _ = repos

        result = await service.get_investor(make_admin(), INVESTOR_ID)

        assert result["level"] is DisclosureLevel.FULL
        interest_repo.has_accepted_intro.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_investor_profile_is_404(self, service, repos):
        repos[1].get_latest_for_user.return_value = None

        with pytest.raises(NotFoundException) as exc_info:
            await service.get_investor(None, INVESTOR_ID)
        assert exc_info.value.message == "Investor not found"

    @pytest.mark.asyncio
    async def test_non_investor_role_is_404(self, service, repos):
        repos[0].get.return_value = make_profile(role=UserRole.OPERATOR)

        with pytest.raises(NotFoundException):
            await service.get_investor(make_admin(), INVESTOR_ID)
