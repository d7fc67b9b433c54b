"""
Escrow service — the payment half of the commitment state machine.

Creating a payment intent
    1. The commitment must exist, belong to the caller and not be funded.
    2. A still-pending escrow is reused: its client secret is returned and no
       second provider intent is created.  A commitment that is
       ``pending_payment`` without such an escrow has an intent in flight
       and gets a 409.
    3. Otherwise the commitment is **claimed** with a conditional UPDATE on
       ``funding_version``, allowed only from ``none`` or ``refunded``.  Of
       two concurrent requests exactly one wins the claim; the other gets a
       409 before any provider call is made.
    4. The provider intent is created with an idempotency key bound to the
       claimed version, the escrow row is inserted and linked.

Refunds
    Admin-initiated; only a ``succeeded`` payment can be refunded.  The local
    ledger is NOT touched here: the provider's ``charge.refunded`` webhook
    (``webhook_service``) is the sole writer of refund state.
"""

import logging
from typing import List, Optional
from uuid import UUID

from app.core.auth import CurrentUser
from app.core.exceptions import (
    BadRequestException,
    ConflictException,
    ExternalServiceError,
    ForbiddenException,
    NotFoundException,
)
from app.core.payments import PaymentGateway, to_cents
from app.models.commitment import FundingStatus
from app.models.escrow import EscrowStatus, EscrowTransaction, EscrowType, PaymentStatus
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.escrow_repo import EscrowRepository
from app.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)


class EscrowService:
    def __init__(
        self,
        commitment_repo: CommitmentRepository,
        escrow_repo: EscrowRepository,
        deal_repo: DealRepository,
        profile_repo: ProfileRepository,
        gateway: PaymentGateway,
    ):
        self._commitment_repo = commitment_repo
        self._escrow_repo = escrow_repo
        self._deal_repo = deal_repo
        self._profile_repo = profile_repo
        self._gateway = gateway

    async def create_payment_intent(
        self, user: CurrentUser, commitment_id: Optional[UUID]
    ) -> str:
        """Return the client secret the browser uses to confirm payment."""
        if commitment_id is None:
            raise BadRequestException("commitmentId required")

        commitment = await self._commitment_repo.get(commitment_id)
        if not commitment:
            raise NotFoundException("Commitment", commitment_id)
        if commitment.investor_id != user.id:
            raise ForbiddenException()
        if commitment.funding_status == FundingStatus.FUNDED:
            raise ConflictException("Commitment already funded")

        if commitment.escrow_transaction_id:
            existing = await self._escrow_repo.get(commitment.escrow_transaction_id)
            if (
                existing
                and existing.payment_status == PaymentStatus.PENDING
                and existing.stripe_client_secret
            ):
                logger.info(
                    "Reusing pending escrow %s for commitment %s", existing.id, commitment_id
                )
                return existing.stripe_client_secret

        if commitment.funding_status == FundingStatus.PENDING_PAYMENT:
            raise ConflictException("A payment for this commitment is already in progress")

        previous_status = commitment.funding_status
        seen_version = commitment.funding_version
        if not await self._commitment_repo.claim_for_payment(commitment_id, seen_version):
            logger.warning(
                "Lost payment claim on commitment %s at version %d", commitment_id, seen_version
            )
            raise ConflictException("A payment for this commitment is already in progress")
        claimed_version = seen_version + 1
        commitment.funding_status = FundingStatus.PENDING_PAYMENT
        commitment.funding_version = claimed_version

        deal = await self._deal_repo.get(commitment.deal_id)
        deal_title = deal.title if deal else "Deal"
        try:
            intent = await self._gateway.create_payment_intent(
                amount_cents=to_cents(commitment.amount),
                metadata={
                    "investor_id": str(user.id),
                    "deal_id": str(commitment.deal_id),
                    "commitment_id": str(commitment_id),
                    "deal_title": deal_title,
                    "type": "escrow_deposit",
                },
                description=f"Investment commitment: {deal_title}",
                idempotency_key=f"commitment-{commitment_id}-v{claimed_version}",
                receipt_email=user.email,
            )
        except ExternalServiceError:
            await self._commitment_repo.release_claim(
                commitment_id, claimed_version, previous_status
            )
            raise

        escrow = await self._escrow_repo.create(
            EscrowTransaction(
                commitment_id=commitment_id,
                type=EscrowType.DEPOSIT,
                amount=commitment.amount,
                status=EscrowStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                stripe_payment_intent_id=intent.id,
                stripe_client_secret=intent.client_secret,
            )
        )
        commitment.escrow_transaction_id = escrow.id
        await self._commitment_repo.update(commitment)

        logger.info(
            "Created payment intent %s (escrow %s) for commitment %s",
            intent.id,
            escrow.id,
            commitment_id,
            extra={"user_id": str(user.id)},
        )
        return intent.client_secret

    async def refund(
        self,
        escrow_transaction_id: Optional[UUID],
        amount_in_cents: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> str:
        """Issue a provider refund and return its id; local state is unchanged."""
        if escrow_transaction_id is None:
            raise BadRequestException("escrowTransactionId required")

        escrow = await self._escrow_repo.get(escrow_transaction_id)
        if not escrow:
            raise NotFoundException("Escrow transaction", escrow_transaction_id)
        if not escrow.stripe_payment_intent_id:
            raise BadRequestException("No Stripe payment to refund")
        if escrow.payment_status != PaymentStatus.SUCCEEDED:
            raise BadRequestException("Payment must be succeeded to refund")

        refund_id = await self._gateway.refund(
            escrow.stripe_payment_intent_id, amount_cents=amount_in_cents, reason=reason
        )
        logger.info(
            "Requested refund %s for escrow %s (%s cents)",
            refund_id,
            escrow.id,
            amount_in_cents if amount_in_cents else "full",
        )
        return refund_id

    async def list_transactions(self) -> List[dict]:
        """Admin escrow view: transactions newest first with a commitment summary."""
        escrows = await self._escrow_repo.list_newest_first()
        commitments = await self._commitment_repo.get_many([e.commitment_id for e in escrows])
        deals = await self._deal_repo.get_many([c.deal_id for c in commitments.values()])
        profiles = await self._profile_repo.get_many(
            [c.investor_id for c in commitments.values()]
        )

        transactions = []
        for escrow in escrows:
            item = escrow.model_dump(exclude={"stripe_client_secret"})
            commitment = commitments.get(escrow.commitment_id)
            if commitment is not None:
                deal = deals.get(commitment.deal_id)
                investor = profiles.get(commitment.investor_id)
                item["commitment"] = {
                    "id": commitment.id,
                    "amount": commitment.amount,
                    "funding_status": commitment.funding_status,
                    "deal_title": deal.title if deal else "Unknown",
                    "investor_name": (investor.full_name if investor else None) or "Unknown",
                    "investor_email": (investor.email if investor else None) or "Unknown",
                }
            transactions.append(item)
        return transactions
