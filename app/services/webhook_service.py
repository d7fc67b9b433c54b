"""
Payment confirmation handler.

The provider's webhook is the only writer of escrow ``payment_status``,
``paid_at``, ``refunded_at`` and ``refund_amount``, and the normal path by
which a commitment becomes ``funded``.  Handled events:

- ``payment_intent.succeeded``      → escrow succeeded, commitment funded
- ``payment_intent.payment_failed`` → escrow failed, funding released
- ``charge.refunded``               → escrow (partially) refunded; a full
  refund cancels the commitment
- ``charge.dispute.created``        → admin alert

A handler error is logged and swallowed: the endpoint still acknowledges the
event so the provider does not redeliver it forever.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import UUID

from app.core.email import email_template, escape, format_currency
from app.models.commitment import CommitmentStatus, FundingStatus, InvestmentCommitment
from app.models.escrow import EscrowStatus, PaymentStatus
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.escrow_repo import EscrowRepository
from app.repositories.profile_repo import ProfileRepository
from app.services.notifier import Notifier, site_url

logger = logging.getLogger(__name__)

Event = Dict[str, Any]


def _parse_uuid(value: Optional[str]) -> Optional[UUID]:
    try:
        return UUID(str(value)) if value else None
    except ValueError:
        return None


class WebhookService:
    def __init__(
        self,
        escrow_repo: EscrowRepository,
        commitment_repo: CommitmentRepository,
        deal_repo: DealRepository,
        profile_repo: ProfileRepository,
        notifier: Notifier,
    ):
        self._escrow_repo = escrow_repo
        self._commitment_repo = commitment_repo
        self._deal_repo = deal_repo
        self._profile_repo = profile_repo
        self._notifier = notifier
        self._handlers = {
            "payment_intent.succeeded": self._payment_succeeded,
            "payment_intent.payment_failed": self._payment_failed,
            "charge.refunded": self._charge_refunded,
            "charge.dispute.created": self._dispute_created,
        }

    async def handle_event(self, event: Event) -> bool:
        """Dispatch ``event``.  Returns ``True`` when a handler ran successfully."""
        event_type = event.get("type", "")
        handler = self._handlers.get(event_type)
        if handler is None:
            logger.debug("Ignoring webhook event %s", event_type)
            return False
        try:
            await handler(event["data"]["object"])
        except Exception:
            logger.exception("Webhook %s (%s) processing failed", event_type, event.get("id"))
            return False
        logger.info("Processed webhook %s (%s)", event_type, event.get("id"))
        return True

    # ── Handlers ──

    async def _payment_succeeded(self, intent: Dict[str, Any]) -> None:
        now = datetime.now(timezone.utc)
        escrow = await self._escrow_repo.get_by_payment_intent(intent["id"])
        if escrow:
            escrow.payment_status = PaymentStatus.SUCCEEDED
            escrow.status = EscrowStatus.COMPLETED
            escrow.paid_at = now
            escrow.payment_method = (intent.get("payment_method_types") or ["card"])[0]
            await self._escrow_repo.update(escrow)

        commitment = await self._commitment_for(intent, escrow.commitment_id if escrow else None)
        if commitment is None:
            logger.warning("payment_intent.succeeded %s matched no commitment", intent["id"])
            return
        commitment.funding_status = FundingStatus.FUNDED
        commitment.status = CommitmentStatus.FUNDED
        commitment.funded_date = now
        commitment = await self._commitment_repo.update(commitment)

        await self._email_investor(
            commitment,
            subject="Payment confirmed: {amount} for {deal}",
            title="Payment Confirmed",
            lines=[
                "Your payment of <strong>{amount}</strong> for <strong>{deal_html}</strong> "
                "has been received.",
                "",
                "Your funds are now held securely in escrow. You'll be notified when the "
                "funds are released to the operator.",
            ],
        )

    async def _payment_failed(self, intent: Dict[str, Any]) -> None:
        escrow = await self._escrow_repo.get_by_payment_intent(intent["id"])
        if escrow:
            escrow.payment_status = PaymentStatus.FAILED
            escrow.status = EscrowStatus.FAILED
            await self._escrow_repo.update(escrow)

        commitment = await self._commitment_for(intent, escrow.commitment_id if escrow else None)
        if commitment is not None and commitment.funding_status != FundingStatus.FUNDED:
            commitment.funding_status = FundingStatus.NONE
            await self._commitment_repo.update(commitment)

    async def _charge_refunded(self, charge: Dict[str, Any]) -> None:
        intent_ref = charge.get("payment_intent")
        intent_id = intent_ref.get("id") if isinstance(intent_ref, dict) else intent_ref
        if not intent_id:
            return
        escrow = await self._escrow_repo.get_by_payment_intent(intent_id)
        if not escrow:
            logger.warning("charge.refunded for unknown payment intent %s", intent_id)
            return

        full_refund = charge.get("amount_refunded") == charge.get("amount")
        escrow.payment_status = (
            PaymentStatus.REFUNDED if full_refund else PaymentStatus.PARTIALLY_REFUNDED
        )
        escrow.refunded_at = datetime.now(timezone.utc)
        escrow.refund_amount = Decimal(charge.get("amount_refunded") or 0) / 100
        await self._escrow_repo.update(escrow)
        if not full_refund:
            return

        commitment = await self._commitment_repo.get(escrow.commitment_id)
        if commitment is None:
            return
        commitment.funding_status = FundingStatus.REFUNDED
        commitment.status = CommitmentStatus.CANCELLED
        commitment = await self._commitment_repo.update(commitment)

        await self._email_investor(
            commitment,
            subject="Refund processed: {deal}",
            title="Refund Processed",
            lines=[
                "Your payment of <strong>{amount}</strong> for <strong>{deal_html}</strong> "
                "has been refunded.",
                "",
                "The refund should appear in your account within 5-10 business days.",
            ],
        )

    async def _dispute_created(self, dispute: Dict[str, Any]) -> None:
        logger.error("Payment dispute created: %s", dispute.get("id"))
        amount = Decimal(dispute.get("amount") or 0) / 100
        self._notifier.send_admin_email(
            f"Payment dispute opened: {dispute.get('id')}",
            email_template(
                title="Payment Dispute Alert",
                body="<br/>".join(
                    [
                        "A payment dispute has been opened.",
                        f"<strong>Dispute ID:</strong> {escape(dispute.get('id'))}",
                        f"<strong>Amount:</strong> {format_currency(amount)}",
                        f"<strong>Reason:</strong> {escape(dispute.get('reason')) or 'Unknown'}",
                        "",
                        "Please review this dispute in the Stripe Dashboard immediately.",
                    ]
                ),
                cta_text="Open Stripe Dashboard",
                cta_url="https://dashboard.stripe.com/disputes",
            ),
        )

    # ── Helpers ──

    async def _commitment_for(
        self, intent: Dict[str, Any], fallback_id: Optional[UUID]
    ) -> Optional[InvestmentCommitment]:
        metadata = intent.get("metadata") or {}
        commitment_id = _parse_uuid(metadata.get("commitment_id")) or fallback_id
        if commitment_id is None:
            return None
        return await self._commitment_repo.get(commitment_id)

    async def _email_investor(
        self, commitment: InvestmentCommitment, subject: str, title: str, lines: list
    ) -> None:
        profile = await self._profile_repo.get(commitment.investor_id)
        if not profile or not profile.email:
            return
        deal = await self._deal_repo.get(commitment.deal_id)
        values = {
            "amount": format_currency(commitment.amount),
            "deal": deal.title if deal else "Deal",
            "deal_html": escape(deal.title) if deal else "a deal",
        }
        self._notifier.send_email(
            profile.email,
            subject.format(**values),
            email_template(
                title=title,
                body="<br/>".join(line.format(**values) for line in lines),
                cta_text="View Portfolio",
                cta_url=site_url("/portfolio"),
            ),
        )
