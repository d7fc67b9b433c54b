"""
Unit tests for InterestService — intro requests and the single
pending → accepted | rejected transition.
"""

from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ForbiddenException,
    NotFoundException,
)
from app.models.interest import InterestStatus
from app.schemas.interest import InterestCreate
from app.services.interest_service import InterestService

from .conftest import (
    DEAL_ID,
    INTEREST_ID,
    INVESTOR_ID,
    make_deal,
    make_interest,
    make_operator,
    make_profile,
    make_user,
)


@pytest.fixture()
def interest_repo():
    repo = AsyncMock()
    repo.create.side_effect = lambda entity: entity
    repo.get.return_value = make_interest()
    repo.transition.return_value = True
    return repo


@pytest.fixture()
def deal_repo():
    repo = AsyncMock()
    repo.get.return_value = make_deal()
    return repo


@pytest.fixture()
def profile_repo():
    repo = AsyncMock()
    repo.get.return_value = make_profile()
    return repo


@pytest.fixture()
def service(interest_repo, deal_repo, profile_repo, notifier):
    return InterestService(interest_repo, deal_repo, profile_repo, notifier)


class TestCreateInterest:
    @pytest.mark.asyncio
    async def test_missing_deal_id_is_400(self, service):
        with pytest.raises(BadRequestException) as exc_info:
            await service.create_interest(make_user(), InterestCreate())
        assert exc_info.value.message == "deal_id is required"

    @pytest.mark.asyncio
    async def test_bad_email_is_400(self, service):
        with pytest.raises(BadRequestException) as exc_info:
            await service.create_interest(
                make_user(), InterestCreate(dealId=DEAL_ID, email="not an email")
            )
        assert exc_info.value.message == "email looks invalid"

    @pytest.mark.asyncio
    async def test_unknown_deal_is_404(self, service, deal_repo):
        deal_repo.get.return_value = None

        with pytest.raises(NotFoundException):
            await service.create_interest(make_user(), InterestCreate(dealId=DEAL_ID))

    @pytest.mark.asyncio
    async def test_create_trims_fields_and_notifies(self, service, notifier):
        interest = await service.create_interest(
            make_user(),
            InterestCreate(dealId=DEAL_ID, name="  Ada ", email=" ", message="Hello"),
            user_agent="x" * 600,
        )

        assert interest.status == InterestStatus.PENDING
        assert interest.user_id == INVESTOR_ID
        assert interest.name == "Ada"
        assert interest.email is None
        assert len(interest.user_agent) == 512

        to, subject, _ = notifier.send_email.call_args.args
        assert to == "investor@example.com"
        assert subject == "Your intro request was sent"
        assert notifier.send_admin_email.call_args.args[0] == "New intro request: Main Street Bakery"


class TestTransitions:
    @pytest.mark.asyncio
    async def test_unknown_interest_is_404(self, service, interest_repo):
        interest_repo.get.return_value = None

        with pytest.raises(NotFoundException):
            await service.accept(make_operator(), INTEREST_ID)

    @pytest.mark.asyncio
    async def test_non_owner_is_403(self, service, interest_repo):
        with pytest.raises(ForbiddenException):
            await service.accept(make_user(), INTEREST_ID)
        interest_repo.transition.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_already_decided_is_409(self, service, interest_repo):
        interest_repo.get.return_value = make_interest(status=InterestStatus.REJECTED)

        with pytest.raises(ConflictException) as exc_info:
            await service.accept(make_operator(), INTEREST_ID)
        assert exc_info.value.message == "Interest is already rejected"

    @pytest.mark.asyncio
    async def test_lost_race_reports_current_status(self, service, interest_repo, notifier):
        interest_repo.transition.return_value = False
        interest_repo.get.side_effect = [
            make_interest(),
            make_interest(status=InterestStatus.ACCEPTED),
        ]

        with pytest.raises(ConflictException) as exc_info:
            await service.reject(make_operator(), INTEREST_ID)
        assert exc_info.value.message == "Interest is already accepted"
        notifier.notify_user.assert_not_called()

    @pytest.mark.asyncio
    async def test_accept_notifies_and_emails_investor(self, service, interest_repo, notifier):
        interest = await service.accept(make_operator(), INTEREST_ID)

        assert interest.status == InterestStatus.ACCEPTED
        interest_repo.transition.assert_awaited_once_with(INTEREST_ID, InterestStatus.ACCEPTED)
        args = notifier.notify_user.call_args
        assert args.args[:3] == (INVESTOR_ID, "intro_accepted", "Introduction accepted!")
        assert args.kwargs["link"] == "/messages"
        assert notifier.send_email.call_args.args[1] == (
            "Your introduction to Main Street Bakery was accepted"
        )

    @pytest.mark.asyncio
    async def test_accept_survives_investor_lookup_failure(
        self, service, profile_repo, notifier
    ):
        profile_repo.get.side_effect = RuntimeError("db down")

        interest = await service.accept(make_operator(), INTEREST_ID)

        assert interest.status == InterestStatus.ACCEPTED
        notifier.notify_user.assert_called_once()
        notifier.send_email.assert_not_called()

    @pytest.mark.asyncio
    async def test_reject_notifies_without_email(self, service, notifier):
        interest = await service.reject(make_operator(), INTEREST_ID)

        assert interest.status == InterestStatus.REJECTED
        args = notifier.notify_user.call_args
        assert args.args[1] == "intro_rejected"
        assert args.kwargs["link"] == f"/deals/{DEAL_ID}"
        notifier.send_email.assert_not_called()
