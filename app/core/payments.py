"""
Payment provider gateway (Stripe).

Wraps the synchronous ``stripe`` SDK behind a small async interface. SDK
calls run in a worker thread so they never block the event loop; the API key
is passed per call rather than set on the module, so several gateways (e.g.
a test double and the real one) can coexist in one process.

Provider errors surface as :class:`ExternalServiceError` (502).
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Any, Dict, Optional

import stripe

from app.core.config import settings
from app.core.exceptions import BadRequestException, ExternalServiceError

logger = logging.getLogger(__name__)


def to_cents(amount: Decimal) -> int:
    """Dollar amount → integer cents, rounding half up."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class PaymentIntentResult:
    id: str
    client_secret: str


class PaymentGateway:
    """
    Parameters
    ----------
    secret_key : str
        Stripe secret API key.
    webhook_secret : str
        Signing secret used to verify webhook payloads.
    currency : str
        ISO currency code for every payment intent.
    """

    def __init__(self, secret_key: str, webhook_secret: str, currency: str = "usd"):
        self._secret_key = secret_key
        self._webhook_secret = webhook_secret
        self._currency = currency

    async def create_payment_intent(
        self,
        amount_cents: int,
        metadata: Dict[str, str],
        description: str,
        idempotency_key: str,
        receipt_email: Optional[str] = None,
    ) -> PaymentIntentResult:
        params: Dict[str, Any] = {
            "amount": amount_cents,
            "currency": self._currency,
            "metadata": metadata,
            "description": description,
        }
        if receipt_email:
            params["receipt_email"] = receipt_email
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                api_key=self._secret_key,
                idempotency_key=idempotency_key,
                **params,
            )
        except stripe.StripeError as exc:
            logger.error("Stripe PaymentIntent.create failed: %s", exc)
            raise ExternalServiceError("Stripe", exc.user_message or str(exc))
        return PaymentIntentResult(id=intent["id"], client_secret=intent["client_secret"])

    async def refund(
        self,
        payment_intent_id: str,
        amount_cents: Optional[int] = None,
        reason: Optional[str] = None,
    ) -> str:
        """Refund all (or ``amount_cents`` of) a payment intent.  Returns the refund id."""
        params: Dict[str, Any] = {
            "payment_intent": payment_intent_id,
            "reason": "requested_by_customer",
        }
        if amount_cents:
            params["amount"] = amount_cents
        if reason:
            params["metadata"] = {"reason": reason}
        try:
            refund = await asyncio.to_thread(
                stripe.Refund.create, api_key=self._secret_key, **params
            )
        except stripe.StripeError as exc:
            logger.error("Stripe Refund.create failed for %s: %s", payment_intent_id, exc)
            raise ExternalServiceError("Stripe", exc.user_message or str(exc))
        return refund["id"]

    def parse_webhook(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """
        Verify the ``Stripe-Signature`` header and decode the event.

        Raises :class:`BadRequestException` on a missing or invalid signature
        and on a body that is not UTF-8 JSON.
        """
        if not signature or not self._webhook_secret:
            raise BadRequestException("Missing Stripe signature")
        try:
            stripe.Webhook.construct_event(payload, signature, self._webhook_secret)
        except stripe.SignatureVerificationError as exc:
            logger.warning("Rejected webhook with invalid signature: %s", exc)
            raise BadRequestException("Invalid Stripe signature")
        except ValueError as exc:
            logger.warning("Rejected malformed webhook payload: %s", exc)
            raise BadRequestException("Invalid webhook payload")
        # handlers work on plain dicts, not StripeObject
        return json.loads(payload)


@lru_cache
def get_payment_gateway() -> PaymentGateway:
    """Process-wide payment gateway (FastAPI dependency)."""
    return PaymentGateway(
        secret_key=settings.STRIPE_SECRET_KEY,
        webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
        currency=settings.STRIPE_CURRENCY,
    )
