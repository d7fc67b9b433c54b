"""
Shared pytest fixtures for unit tests.

All tests run with ``USE_SQLITE=true`` and mocked dependencies so that
no real database, identity provider, payment provider or email API is
needed.
"""

import os

os.environ.setdefault("USE_SQLITE", "true")

import uuid  # noqa: E402
from datetime import date, datetime, timezone  # noqa: E402
from decimal import Decimal  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from app.core.auth import CurrentUser  # noqa: E402
from app.models.commitment import (  # noqa: E402
    CommitmentStatus,
    FundingStatus,
    InvestmentCommitment,
)
from app.models.conversation import Conversation, Message  # noqa: E402
from app.models.deal import Deal, DealStatus  # noqa: E402
from app.models.escrow import EscrowStatus, EscrowTransaction, PaymentStatus  # noqa: E402
from app.models.interest import DealInterest, InterestStatus  # noqa: E402
from app.models.kyc import (  # noqa: E402
    IdDocumentType,
    KycSubmission,
    ReviewStatus,
    SourceOfFunds,
)
from app.models.profile import (  # noqa: E402
    InvestorProfile,
    KycStatus,
    Profile,
    UserRole,
    VerificationStatus,
)

# ────────────────────────────────────────────────────────────────────────────
# Factory helpers — create domain objects with sensible defaults
# ────────────────────────────────────────────────────────────────────────────

INVESTOR_ID = uuid.UUID("11111111-1111-1111-1111-111111111111")
OPERATOR_ID = uuid.UUID("22222222-2222-2222-2222-222222222222")
ADMIN_ID = uuid.UUID("33333333-3333-3333-3333-333333333333")
DEAL_ID = uuid.UUID("44444444-4444-4444-4444-444444444444")
COMMITMENT_ID = uuid.UUID("55555555-5555-5555-5555-555555555555")
ESCROW_ID = uuid.UUID("66666666-6666-6666-6666-666666666666")
INTEREST_ID = uuid.UUID("77777777-7777-7777-7777-77777777abcd")
SUBMISSION_ID = uuid.UUID("88888888-8888-8888-8888-888888888888")
CONVERSATION_ID = uuid.UUID("99999999-9999-9999-9999-999999999999")


def make_user(
    *,
    id: uuid.UUID = INVESTOR_ID,
    role: UserRole = UserRole.INVESTOR,
    email: str | None = "investor@example.com",
    full_name: str | None = "Ada Investor",
    verification_status: VerificationStatus = VerificationStatus.VERIFIED,
    kyc_status: KycStatus = KycStatus.NONE,
) -> CurrentUser:
    """Create an authenticated caller with sensible test defaults."""
    return CurrentUser(
        id=id,
        email=email,
        role=role,
        full_name=full_name,
        verification_status=verification_status,
        kyc_status=kyc_status,
    )


def make_operator(**overrides) -> CurrentUser:
    defaults = {"id": OPERATOR_ID, "role": UserRole.OPERATOR, "email": "op@example.com"}
    return make_user(**{**defaults, **overrides})


def make_admin(**overrides) -> CurrentUser:
    defaults = {"id": ADMIN_ID, "role": UserRole.ADMIN, "email": "admin@example.com"}
    return make_user(**{**defaults, **overrides})


def make_profile(
    *,
    id: uuid.UUID = INVESTOR_ID,
    role: UserRole = UserRole.INVESTOR,
    email: str | None = "investor@example.com",
    full_name: str | None = "Ada Investor",
    verification_status: VerificationStatus = VerificationStatus.VERIFIED,
    kyc_status: KycStatus = KycStatus.NONE,
) -> Profile:
    return Profile(
        id=id,
        role=role,
        email=email,
        full_name=full_name,
        verification_status=verification_status,
        kyc_status=kyc_status,
        created_at=datetime(2025, 1, 10, tzinfo=timezone.utc),
    )


def make_investor_profile(
    *,
    user_id: uuid.UUID = INVESTOR_ID,
    check_size: str | None = "50-100k",
    categories: list | None = None,
    tags: list | None = None,
) -> InvestorProfile:
    return InvestorProfile(
        user_id=user_id,
        headline="Angel investor",
        bio="Backs main-street businesses.",
        check_size=check_size,
        timeline="3-6 months",
        involvement="passive",
        categories=categories if categories is not None else ["small_business"],
        subcategories=["bakery"],
        tags=tags if tags is not None else ["bakery"],
        verified_only=False,
    )


def make_deal(
    *,
    id: uuid.UUID = DEAL_ID,
    title: str = "Main Street Bakery",
    status: DealStatus = DealStatus.ACTIVE,
    operator_id: uuid.UUID | None = OPERATOR_ID,
    min_check: str | None = "$25k",
    category: str | None = "small-business",
    description: str | None = "Neighbourhood bakery expanding to a second site",
) -> Deal:
    """Create a Deal domain object with sensible test defaults."""
    return Deal(
        id=id,
        title=title,
        status=status,
        operator_id=operator_id,
        min_check=min_check,
        category=category,
        description=description,
        location="Austin, TX",
        total_committed=Decimal("0"),
        created_at=datetime.now(timezone.utc),
    )


def make_commitment(
    *,
    id: uuid.UUID = COMMITMENT_ID,
    deal_id: uuid.UUID = DEAL_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    amount: Decimal = Decimal("50000.00"),
    status: CommitmentStatus = CommitmentStatus.COMMITTED,
    funding_status: FundingStatus = FundingStatus.NONE,
    funding_version: int = 0,
    escrow_transaction_id: uuid.UUID | None = None,
    notes: str | None = None,
) -> InvestmentCommitment:
    """Create an InvestmentCommitment domain object with sensible test defaults."""
    return InvestmentCommitment(
        id=id,
        deal_id=deal_id,
        investor_id=investor_id,
        amount=amount,
        status=status,
        funding_status=funding_status,
        funding_version=funding_version,
        escrow_transaction_id=escrow_transaction_id,
        notes=notes,
        created_at=datetime.now(timezone.utc),
    )


def make_escrow(
    *,
    id: uuid.UUID = ESCROW_ID,
    commitment_id: uuid.UUID = COMMITMENT_ID,
    amount: Decimal = Decimal("50000.00"),
    payment_status: PaymentStatus = PaymentStatus.PENDING,
    status: EscrowStatus = EscrowStatus.PENDING,
    stripe_payment_intent_id: str | None = "pi_123",
    stripe_client_secret: str | None = "pi_123_secret_abc",
) -> EscrowTransaction:
    return EscrowTransaction(
        id=id,
        commitment_id=commitment_id,
        amount=amount,
        payment_status=payment_status,
        status=status,
        stripe_payment_intent_id=stripe_payment_intent_id,
        stripe_client_secret=stripe_client_secret,
        created_at=datetime.now(timezone.utc),
    )


def make_interest(
    *,
    id: uuid.UUID = INTEREST_ID,
    deal_id: uuid.UUID = DEAL_ID,
    user_id: uuid.UUID = INVESTOR_ID,
    status: InterestStatus = InterestStatus.PENDING,
) -> DealInterest:
    return DealInterest(
        id=id,
        deal_id=deal_id,
        user_id=user_id,
        name="Ada",
        email="ada@example.com",
        message="Keen to learn more",
        status=status,
        created_at=datetime.now(timezone.utc),
    )


def make_conversation(
    *,
    id: uuid.UUID = CONVERSATION_ID,
    deal_id: uuid.UUID = DEAL_ID,
    investor_id: uuid.UUID = INVESTOR_ID,
    operator_id: uuid.UUID | None = OPERATOR_ID,
) -> Conversation:
    now = datetime.now(timezone.utc)
    return Conversation(
        id=id,
        deal_id=deal_id,
        investor_id=investor_id,
        operator_id=operator_id,
        last_message_at=now,
        created_at=now,
    )


def make_message(
    *,
    conversation_id: uuid.UUID = CONVERSATION_ID,
    sender_id: uuid.UUID = INVESTOR_ID,
    content: str = "Is the second site leased yet?",
    read: bool = False,
    created_at: datetime | None = None,
) -> Message:
    return Message(
        id=uuid.uuid4(),
        conversation_id=conversation_id,
        sender_id=sender_id,
        content=content,
        read=read,
        created_at=created_at or datetime.now(timezone.utc),
    )


def make_kyc_submission(
    *,
    id: uuid.UUID = SUBMISSION_ID,
    user_id: uuid.UUID = INVESTOR_ID,
    status: ReviewStatus = ReviewStatus.PENDING,
) -> KycSubmission:
    return KycSubmission(
        id=id,
        user_id=user_id,
        full_legal_name="Ada Lovelace",
        date_of_birth=date(1990, 12, 10),
        nationality="GB",
        address_line1="1 High Street",
        city="London",
        state_province="London",
        postal_code="N1 1AA",
        country="GB",
        id_document_type=IdDocumentType.PASSPORT,
        id_document_path=f"{user_id}/passport.pdf",
        source_of_funds=SourceOfFunds.EMPLOYMENT,
        terms_accepted=True,
        declaration_signed=True,
        status=status,
        created_at=datetime.now(timezone.utc),
    )


# ────────────────────────────────────────────────────────────────────────────
# Pytest fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def mock_db():
    """A mocked AsyncSession that tracks add/commit/refresh/rollback calls."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.commit = AsyncMock()
    session.refresh = AsyncMock()
    session.rollback = AsyncMock()
    session.execute = AsyncMock()
    session.get = AsyncMock()
    session.merge = AsyncMock()
    session.delete = AsyncMock()
    return session


@pytest.fixture()
def notifier():
    """
    A Notifier stand-in.  Every scheduling method is synchronous on the real
    class, so a plain MagicMock records the calls without awaiting anything.
    """
    return MagicMock()
