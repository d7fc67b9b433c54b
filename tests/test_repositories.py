"""
Repository tests against a real (in-memory SQLite) database.

The service tests mock every repository, so the conditional UPDATEs and
aggregate queries are only exercised here: the payment claim and its
release, investor statistics, the accepted-introduction lookup behind
investor disclosure, and the messaging queries.
"""

import uuid
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401  (registers every table on the metadata)
from app.models.commitment import CommitmentStatus, FundingStatus, InvestmentCommitment
from app.models.conversation import Conversation, Message
from app.models.deal import Deal
from app.models.interest import DealInterest, InterestStatus
from app.models.profile import InvestorProfile, Profile, UserRole
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.conversation_repo import ConversationRepository, MessageRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import InvestorProfileRepository, ProfileRepository
from app.services.disclosure import DisclosureLevel, InvestorProfileService

from .conftest import (
    COMMITMENT_ID,
    DEAL_ID,
    INTEREST_ID,
    INVESTOR_ID,
    OPERATOR_ID,
    make_commitment,
    make_conversation,
    make_deal,
    make_interest,
    make_investor_profile,
    make_message,
    make_operator,
    make_profile,
)

OTHER_OPERATOR_ID = uuid.UUID("aaaaaaaa-aaaa-aaaa-aaaa-aaaaaaaaaaaa")
OTHER_DEAL_ID = uuid.UUID("bbbbbbbb-bbbb-bbbb-bbbb-bbbbbbbbbbbb")


@pytest_asyncio.fixture()
async def session():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    factory = async_sessionmaker(bind=engine, expire_on_commit=False)
    async with factory() as db:
        db.add_all(
            [
                make_profile(),
                make_profile(id=OPERATOR_ID, role=UserRole.OPERATOR, email="op@example.com"),
                make_profile(
                    id=OTHER_OPERATOR_ID, role=UserRole.OPERATOR, email="op2@example.com"
                ),
                make_deal(),
                make_deal(id=OTHER_DEAL_ID, title="Car Wash", operator_id=OTHER_OPERATOR_ID),
            ]
        )
        await db.commit()
        yield db

    await engine.dispose()


async def _add(db, *rows) -> None:
    db.add_all(list(rows))
    await db.commit()


async def _reload(db, model, id):
    return await db.get(model, id, populate_existing=True)


# ────────────────────────────────────────────────────────────────────────────
# Payment claim
# ────────────────────────────────────────────────────────────────────────────


class TestPaymentClaim:
    @pytest.mark.asyncio
    async def test_claim_moves_to_pending_and_bumps_version(self, session):
        await _add(session, make_commitment())
        repo = CommitmentRepository(InvestmentCommitment, session)

        assert await repo.claim_for_payment(COMMITMENT_ID, 0) is True

        row = await _reload(session, InvestmentCommitment, COMMITMENT_ID)
        assert row.funding_status == FundingStatus.PENDING_PAYMENT
        assert row.funding_version == 1

    @pytest.mark.asyncio
    async def test_second_caller_with_stale_version_loses(self, session):
        await _add(session, make_commitment())
        repo = CommitmentRepository(InvestmentCommitment, session)

        first = await repo.claim_for_payment(COMMITMENT_ID, 0)
        second = await repo.claim_for_payment(COMMITMENT_ID, 0)

        assert (first, second) == (True, False)
        row = await _reload(session, InvestmentCommitment, COMMITMENT_ID)
        assert row.funding_version == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [FundingStatus.PENDING_PAYMENT, FundingStatus.FUNDED]
    )
    async def test_in_flight_or_funded_is_not_claimable(self, session, status):
        await _add(session, make_commitment(funding_status=status, funding_version=3))
        repo = CommitmentRepository(InvestmentCommitment, session)

        assert await repo.claim_for_payment(COMMITMENT_ID, 3) is False

        row = await _reload(session, InvestmentCommitment, COMMITMENT_ID)
        assert (row.funding_status, row.funding_version) == (status, 3)

    @pytest.mark.asyncio
    async def test_refunded_is_claimable(self, session):
        await _add(
            session, make_commitment(funding_status=FundingStatus.REFUNDED, funding_version=2)
        )
        repo = CommitmentRepository(InvestmentCommitment, session)

        assert await repo.claim_for_payment(COMMITMENT_ID, 2) is True

    @pytest.mark.asyncio
    async def test_release_restores_previous_status(self, session):
        await _add(session, make_commitment())
        repo = CommitmentRepository(InvestmentCommitment, session)
        await repo.claim_for_payment(COMMITMENT_ID, 0)

        assert await repo.release_claim(COMMITMENT_ID, 1, FundingStatus.NONE) is True

        row = await _reload(session, InvestmentCommitment, COMMITMENT_ID)
        assert (row.funding_status, row.funding_version) == (FundingStatus.NONE, 1)

    @pytest.mark.asyncio
    async def test_release_is_skipped_after_a_newer_claim(self, session):
        await _add(session, make_commitment())
        repo = CommitmentRepository(InvestmentCommitment, session)
        await repo.claim_for_payment(COMMITMENT_ID, 0)
        await repo.release_claim(COMMITMENT_ID, 1, FundingStatus.NONE)
        await repo.claim_for_payment(COMMITMENT_ID, 1)

        # the first attempt's late release must not undo the second claim
        assert await repo.release_claim(COMMITMENT_ID, 1, FundingStatus.NONE) is False

        row = await _reload(session, InvestmentCommitment, COMMITMENT_ID)
        assert (row.funding_status, row.funding_version) == (FundingStatus.PENDING_PAYMENT, 2)


# ────────────────────────────────────────────────────────────────────────────
# Investor statistics
# ────────────────────────────────────────────────────────────────────────────


class TestInvestorStats:
    @pytest.mark.asyncio
    async def test_no_commitments_is_zero(self, session):
        repo = CommitmentRepository(InvestmentCommitment, session)

        assert await repo.get_investor_stats(INVESTOR_ID) == (0, Decimal("0"))

    @pytest.mark.asyncio
    async def test_only_active_statuses_count(self, session):
        await _add(
            session,
            make_commitment(amount=Decimal("50000.00")),
            make_commitment(
                id=uuid.uuid4(),
                deal_id=OTHER_DEAL_ID,
                amount=Decimal("25000.00"),
                status=CommitmentStatus.FUNDED,
            ),
            make_commitment(
                id=uuid.uuid4(), amount=Decimal("9999.00"), status=CommitmentStatus.CANCELLED
            ),
            make_commitment(
                id=uuid.uuid4(), amount=Decimal("1000.00"), status=CommitmentStatus.DRAFT
            ),
        )
        repo = CommitmentRepository(InvestmentCommitment, session)

        count, total = await repo.get_investor_stats(INVESTOR_ID)

        assert count == 2
        assert total == Decimal("75000")


# ────────────────────────────────────────────────────────────────────────────
# Accepted introductions and disclosure
# ────────────────────────────────────────────────────────────────────────────


class TestAcceptedIntro:
    @pytest.mark.asyncio
    async def test_accepted_interest_on_another_operators_deal_does_not_count(self, session):
        await _add(
            session, make_interest(deal_id=OTHER_DEAL_ID, status=InterestStatus.ACCEPTED)
        )
        repo = InterestRepository(DealInterest, session)

        assert await repo.has_accepted_intro(INVESTOR_ID, [DEAL_ID]) is False
        assert await repo.has_accepted_intro(INVESTOR_ID, [OTHER_DEAL_ID]) is True

    @pytest.mark.asyncio
    async def test_pending_interest_does_not_count(self, session):
        await _add(session, make_interest())
        repo = InterestRepository(DealInterest, session)

        assert await repo.has_accepted_intro(INVESTOR_ID, [DEAL_ID]) is False

    @pytest.mark.asyncio
    async def test_transition_happens_once(self, session):
        await _add(session, make_interest())
        repo = InterestRepository(DealInterest, session)

        assert await repo.transition(INTEREST_ID, InterestStatus.ACCEPTED) is True
        assert await repo.transition(INTEREST_ID, InterestStatus.REJECTED) is False

        row = await _reload(session, DealInterest, INTEREST_ID)
        assert row.status == InterestStatus.ACCEPTED

    @pytest.mark.asyncio
    async def test_disclosure_is_scoped_to_the_viewing_operators_deals(self, session):
        await _add(
            session,
            make_investor_profile(),
            make_interest(deal_id=OTHER_DEAL_ID, status=InterestStatus.ACCEPTED),
            make_commitment(),
        )
        service = InvestorProfileService(
            ProfileRepository(Profile, session),
            InvestorProfileRepository(InvestorProfile, session),
            DealRepository(Deal, session),
            InterestRepository(DealInterest, session),
            CommitmentRepository(InvestmentCommitment, session),
        )

        unrelated = await service.get_investor(make_operator(), INVESTOR_ID)
        introduced = await service.get_investor(
            make_operator(id=OTHER_OPERATOR_ID, email="op2@example.com"), INVESTOR_ID
        )

        assert unrelated["level"] is DisclosureLevel.LIMITED
        assert "total_invested" not in unrelated["investor"]
        assert introduced["level"] is DisclosureLevel.FULL
        assert introduced["investor"]["deals_committed"] == 1
        assert introduced["investor"]["total_invested"] == Decimal("50000")


# ────────────────────────────────────────────────────────────────────────────
# Messaging
# ────────────────────────────────────────────────────────────────────────────


class TestMessaging:
    @pytest.mark.asyncio
    async def test_participant_listing_puts_most_recent_first(self, session):
        now = datetime.now(timezone.utc)
        older = make_conversation()
        older.last_message_at = now - timedelta(days=1)
        newer = make_conversation(
            id=uuid.uuid4(), deal_id=OTHER_DEAL_ID, operator_id=OTHER_OPERATOR_ID
        )
        newer.last_message_at = now
        await _add(session, older, newer)
        repo = ConversationRepository(Conversation, session)

        as_investor = await repo.list_for_participant(INVESTOR_ID)
        as_operator = await repo.list_for_participant(OPERATOR_ID)
        everything = await repo.list_for_participant(None)

        assert [c.id for c in as_investor] == [newer.id, older.id]
        assert [c.id for c in as_operator] == [older.id]
        assert len(everything) == 2
        assert await repo.find_for(DEAL_ID, INVESTOR_ID) is not None
        assert await repo.find_for(DEAL_ID, OPERATOR_ID) is None

    @pytest.mark.asyncio
    async def test_unread_count_and_mark_read(self, session):
        conversation = make_conversation()
        await _add(
            session,
            conversation,
            make_message(sender_id=OPERATOR_ID),
            make_message(sender_id=OPERATOR_ID),
            make_message(sender_id=INVESTOR_ID),
        )
        repo = MessageRepository(Message, session)

        assert await repo.count_in([conversation.id], unread_not_from=INVESTOR_ID) == 2
        assert await repo.count_in([conversation.id]) == 3

        assert await repo.mark_read(conversation.id, INVESTOR_ID) == 2
        assert await repo.count_in([conversation.id], unread_not_from=INVESTOR_ID) == 0
        # the operator's view is untouched by the investor reading
        assert await repo.count_in([conversation.id], unread_not_from=OPERATOR_ID) == 1
