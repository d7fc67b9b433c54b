"""
Payment endpoints.

- POST /stripe/create-payment-intent  — Start (or resume) funding a commitment
- POST /stripe/refund                 — Admin refund of a succeeded payment
- POST /stripe/webhook                — Provider event callback (signature-verified)
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, require_roles
from app.core.payments import PaymentGateway, get_payment_gateway
from app.db.session import get_db
from app.models.commitment import InvestmentCommitment
from app.models.deal import Deal
from app.models.escrow import EscrowTransaction
from app.models.profile import Profile, UserRole
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.escrow_repo import EscrowRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.commitment import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    RefundRequest,
    RefundResponse,
    WebhookAck,
)
from app.schemas.common import ErrorResponse
from app.services.escrow_service import EscrowService
from app.services.notifier import Notifier, get_notifier
from app.services.webhook_service import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter()


def get_escrow_service(
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
) -> EscrowService:
    """Shared with the admin router."""
    return EscrowService(
        CommitmentRepository(InvestmentCommitment, db),
        EscrowRepository(EscrowTransaction, db),
        DealRepository(Deal, db),
        ProfileRepository(Profile, db),
        gateway,
    )


def _get_webhook_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> WebhookService:
    return WebhookService(
        EscrowRepository(EscrowTransaction, db),
        CommitmentRepository(InvestmentCommitment, db),
        DealRepository(Deal, db),
        ProfileRepository(Profile, db),
        notifier,
    )


@router.post(
    "/create-payment-intent",
    response_model=PaymentIntentResponse,
    summary="Create a payment intent for a commitment",
    description=(
        "Returns the client secret used to confirm payment in the browser.  A "
        "still-pending payment is reused rather than charged twice."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "commitmentId missing"},
        403: {"model": ErrorResponse, "description": "Not the caller's commitment"},
        404: {"model": ErrorResponse, "description": "Commitment not found"},
        409: {"model": ErrorResponse, "description": "Already funded or payment in progress"},
        502: {"model": ErrorResponse, "description": "Payment provider error"},
    },
)
async def create_payment_intent(
    body: PaymentIntentRequest,
    user: CurrentUser = Depends(get_current_user),
    service: EscrowService = Depends(get_escrow_service),
) -> dict:
    client_secret = await service.create_payment_intent(user, body.commitment_id)
    return {"client_secret": client_secret}


@router.post(
    "/refund",
    response_model=RefundResponse,
    summary="Refund an escrow payment (admin)",
    description=(
        "Issues the refund with the provider only.  The escrow ledger is updated "
        "when the provider's ``charge.refunded`` event arrives."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Payment not refundable"},
        404: {"model": ErrorResponse, "description": "Escrow transaction not found"},
        502: {"model": ErrorResponse, "description": "Payment provider error"},
    },
)
async def refund(
    body: RefundRequest,
    _admin: CurrentUser = Depends(require_roles(UserRole.ADMIN)),
    service: EscrowService = Depends(get_escrow_service),
) -> dict:
    refund_id = await service.refund(
        body.escrow_transaction_id, amount_in_cents=body.amount_in_cents, reason=body.reason
    )
    return {"ok": True, "refund_id": refund_id}


@router.post(
    "/webhook",
    response_model=WebhookAck,
    summary="Payment provider webhook",
    responses={400: {"model": ErrorResponse, "description": "Missing or invalid signature"}},
)
async def webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    service: WebhookService = Depends(_get_webhook_service),
) -> dict:
    payload = await request.body()
    event = gateway.parse_webhook(payload, stripe_signature)
    await service.handle_event(event)
    return {"received": True}
