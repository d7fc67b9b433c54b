"""
Unit tests for EscrowService — payment intents and refunds.

All repositories and the payment gateway are mocked.  Tests cover:
- create_payment_intent: validation order, funded → 409, pending escrow
  reuse, in-flight payment → 409, lost claim → 409, provider failure
  releases the claim, happy path
- refund: validation and provider call
- list_transactions: commitment summary with "Unknown" fallbacks
"""

from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ExternalServiceError,
    ForbiddenException,
    NotFoundException,
)
from app.core.payments import PaymentIntentResult, to_cents
from app.models.commitment import FundingStatus
from app.models.escrow import EscrowStatus, EscrowType, PaymentStatus
from app.services.escrow_service import EscrowService

from .conftest import (
    COMMITMENT_ID,
    DEAL_ID,
    ESCROW_ID,
    OPERATOR_ID,
    make_commitment,
    make_deal,
    make_escrow,
    make_profile,
    make_user,
)

# ────────────────────────────────────────────────────────────────────────────
# Fixtures
# ────────────────────────────────────────────────────────────────────────────


@pytest.fixture()
def commitment_repo():
    repo = AsyncMock()
    repo.get.return_value = make_commitment()
    repo.claim_for_payment.return_value = True
    repo.update.side_effect = lambda entity: entity
    return repo


@pytest.fixture()
def escrow_repo():
    repo = AsyncMock()
    repo.create.side_effect = lambda entity: entity
    return repo


@pytest.fixture()
def deal_repo():
    repo = AsyncMock()
    repo.get.return_value = make_deal()
    return repo


@pytest.fixture()
def profile_repo():
    return AsyncMock()


@pytest.fixture()
def gateway():
    gw = AsyncMock()
    gw.create_payment_intent.return_value = PaymentIntentResult(
        id="pi_new", client_secret="pi_new_secret"
    )
    gw.refund.return_value = "re_123"
    return gw


@pytest.fixture()
def service(commitment_repo, escrow_repo, deal_repo, profile_repo, gateway):
    return EscrowService(commitment_repo, escrow_repo, deal_repo, profile_repo, gateway)


def test_to_cents_rounds_half_up():
    assert to_cents(Decimal("50000")) == 5_000_000
    assert to_cents(Decimal("10.005")) == 1001


# ────────────────────────────────────────────────────────────────────────────
# create_payment_intent
# ────────────────────────────────────────────────────────────────────────────


class TestCreatePaymentIntent:
    @pytest.mark.asyncio
    async def test_missing_commitment_id_is_400(self, service):
        with pytest.raises(BadRequestException) as exc_info:
            await service.create_payment_intent(make_user(), None)
        assert exc_info.value.message == "commitmentId required"

    @pytest.mark.asyncio
    async def test_unknown_commitment_is_404(self, service, commitment_repo):
        commitment_repo.get.return_value = None

        with pytest.raises(NotFoundException):
            await service.create_payment_intent(make_user(), COMMITMENT_ID)

    @pytest.mark.asyncio
    async def test_other_investors_commitment_is_403(self, service, commitment_repo):
        commitment_repo.get.return_value = make_commitment(investor_id=OPERATOR_ID)

        with pytest.raises(ForbiddenException):
            await service.create_payment_intent(make_user(), COMMITMENT_ID)

    @pytest.mark.asyncio
    async def test_funded_commitment_is_409_and_never_charged(
        self, service, commitment_repo, gateway
    ):
        commitment_repo.get.return_value = make_commitment(funding_status=FundingStatus.FUNDED)

        with pytest.raises(ConflictException) as exc_info:
            await service.create_payment_intent(make_user(), COMMITMENT_ID)
        assert exc_info.value.message == "Commitment already funded"
        commitment_repo.claim_for_payment.assert_not_awaited()
        gateway.create_payment_intent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pending_escrow_returns_existing_secret(
        self, service, commitment_repo, escrow_repo, gateway
    ):
        commitment_repo.get.return_value = make_commitment(
            funding_status=FundingStatus.PENDING_PAYMENT,
            funding_version=1,
            escrow_transaction_id=ESCROW_ID,
        )
        escrow_repo.get.return_value = make_escrow()

        secret = await service.create_payment_intent(make_user(), COMMITMENT_ID)

        assert secret == "pi_123_secret_abc"
        commitment_repo.claim_for_payment.assert_not_awaited()
        gateway.create_payment_intent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_failed_escrow_is_not_reused(
        self, service, commitment_repo, escrow_repo, gateway
    ):
        commitment_repo.get.return_value = make_commitment(escrow_transaction_id=ESCROW_ID)
        escrow_repo.get.return_value = make_escrow(payment_status=PaymentStatus.FAILED)

        secret = await service.create_payment_intent(make_user(), COMMITMENT_ID)

        assert secret == "pi_new_secret"
        gateway.create_payment_intent.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_pending_payment_without_reusable_escrow_is_409(
        self, service, commitment_repo, gateway
    ):
        commitment_repo.get.return_value = make_commitment(
            funding_status=FundingStatus.PENDING_PAYMENT, funding_version=1
        )

        with pytest.raises(ConflictException) as exc_info:
            await service.create_payment_intent(make_user(), COMMITMENT_ID)
        assert exc_info.value.message == "A payment for this commitment is already in progress"
        commitment_repo.claim_for_payment.assert_not_awaited()
        gateway.create_payment_intent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_pending_payment_with_failed_escrow_is_409(
        self, service, commitment_repo, escrow_repo, gateway
    ):
        commitment_repo.get.return_value = make_commitment(
            funding_status=FundingStatus.PENDING_PAYMENT,
            funding_version=1,
            escrow_transaction_id=ESCROW_ID,
        )
        escrow_repo.get.return_value = make_escrow(payment_status=PaymentStatus.FAILED)

        with pytest.raises(ConflictException):
            await service.create_payment_intent(make_user(), COMMITMENT_ID)
        gateway.create_payment_intent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lost_claim_is_409_before_provider_call(
        self, service, commitment_repo, gateway
    ):
        commitment_repo.claim_for_payment.return_value = False

        with pytest.raises(ConflictException) as exc_info:
            await service.create_payment_intent(make_user(), COMMITMENT_ID)
        assert "already in progress" in exc_info.value.message
        commitment_repo.claim_for_payment.assert_awaited_once_with(COMMITMENT_ID, 0)
        gateway.create_payment_intent.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_provider_failure_releases_claim(
        self, service, commitment_repo, escrow_repo, gateway
    ):
        gateway.create_payment_intent.side_effect = ExternalServiceError("Stripe", "card declined")

        with pytest.raises(ExternalServiceError):
            await service.create_payment_intent(make_user(), COMMITMENT_ID)
        commitment_repo.release_claim.assert_awaited_once_with(
            COMMITMENT_ID, 1, FundingStatus.NONE
        )
        escrow_repo.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_creates_and_links_escrow(
        self, service, commitment_repo, escrow_repo, gateway
    ):
        secret = await service.create_payment_intent(make_user(), COMMITMENT_ID)

        assert secret == "pi_new_secret"

        kwargs = gateway.create_payment_intent.await_args.kwargs
        assert kwargs["amount_cents"] == 5_000_000
        assert kwargs["idempotency_key"] == f"commitment-{COMMITMENT_ID}-v1"
        assert kwargs["metadata"]["commitment_id"] == str(COMMITMENT_ID)
        assert kwargs["metadata"]["deal_id"] == str(DEAL_ID)
        assert kwargs["metadata"]["type"] == "escrow_deposit"
        assert kwargs["description"] == "Investment commitment: Main Street Bakery"

        escrow = escrow_repo.create.await_args.args[0]
        assert escrow.type == EscrowType.DEPOSIT
        assert escrow.status == EscrowStatus.PENDING
        assert escrow.payment_status == PaymentStatus.PENDING
        assert escrow.stripe_payment_intent_id == "pi_new"

        updated = commitment_repo.update.await_args.args[0]
        assert updated.escrow_transaction_id == escrow.id
        assert updated.funding_status == FundingStatus.PENDING_PAYMENT
        assert updated.funding_version == 1


# ────────────────────────────────────────────────────────────────────────────
# refund
# ────────────────────────────────────────────────────────────────────────────


class TestRefund:
    @pytest.mark.asyncio
    async def test_missing_id_is_400(self, service):
        with pytest.raises(BadRequestException) as exc_info:
            await service.refund(None)
        assert exc_info.value.message == "escrowTransactionId required"

    @pytest.mark.asyncio
    async def test_unknown_escrow_is_404(self, service, escrow_repo):
        escrow_repo.get.return_value = None

        with pytest.raises(NotFoundException):
            await service.refund(ESCROW_ID)

    @pytest.mark.asyncio
    async def test_no_payment_reference_is_400(self, service, escrow_repo):
        escrow_repo.get.return_value = make_escrow(
            stripe_payment_intent_id=None, payment_status=PaymentStatus.SUCCEEDED
        )

        with pytest.raises(BadRequestException) as exc_info:
            await service.refund(ESCROW_ID)
        assert exc_info.value.message == "No Stripe payment to refund"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status", [PaymentStatus.PENDING, PaymentStatus.FAILED, PaymentStatus.REFUNDED]
    )
    async def test_only_succeeded_payments_refund(self, service, escrow_repo, gateway, status):
        escrow_repo.get.return_value = make_escrow(payment_status=status)

        with pytest.raises(BadRequestException) as exc_info:
            await service.refund(ESCROW_ID)
        assert exc_info.value.message == "Payment must be succeeded to refund"
        gateway.refund.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_success_returns_refund_id_without_local_writes(
        self, service, escrow_repo, gateway
    ):
        escrow_repo.get.return_value = make_escrow(payment_status=PaymentStatus.SUCCEEDED)

        refund_id = await service.refund(ESCROW_ID, amount_in_cents=1000, reason="duplicate")

        assert refund_id == "re_123"
        gateway.refund.assert_awaited_once_with("pi_123", amount_cents=1000, reason="duplicate")
        escrow_repo.update.assert_not_awaited()


# ────────────────────────────────────────────────────────────────────────────
# list_transactions
# ────────────────────────────────────────────────────────────────────────────


class TestListTransactions:
    @pytest.mark.asyncio
    async def test_attaches_commitment_summary(
        self, service, escrow_repo, commitment_repo, deal_repo, profile_repo
    ):
        commitment = make_commitment()
        escrow_repo.list_newest_first.return_value = [make_escrow()]
        commitment_repo.get_many.return_value = {commitment.id: commitment}
        deal_repo.get_many.return_value = {}
        profile_repo.get_many.return_value = {commitment.investor_id: make_profile()}

        [item] = await service.list_transactions()

        assert "stripe_client_secret" not in item
        assert item["commitment"]["deal_title"] == "Unknown"
        assert item["commitment"]["investor_name"] == "Ada Investor"
        assert item["commitment"]["investor_email"] == "investor@example.com"
