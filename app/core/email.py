"""
Transactional email via the Resend HTTP API.

``EmailClient.send`` is never awaited by a request handler directly; callers
enqueue it on the outbound delivery queue (``app.core.outbox``), which
retries failures.  A non-2xx response therefore raises so the queue sees it.
When ``RESEND_API_KEY`` is empty the send is skipped with a warning, which
keeps local and test runs free of network calls.
"""

import html
import logging
from decimal import ROUND_HALF_UP, Decimal
from functools import lru_cache
from typing import Optional, Union

import httpx

from app.core.config import settings
from app.core.resilience import email_circuit_breaker

logger = logging.getLogger(__name__)


def format_currency(amount: Union[Decimal, int, float, str]) -> str:
    """Whole-dollar USD formatting: ``50000`` → ``$50,000``."""
    value = Decimal(str(amount)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if value < 0:
        return f"-${-value:,}"
    return f"${value:,}"


def email_template(
    title: str,
    body: str,
    cta_text: Optional[str] = None,
    cta_url: Optional[str] = None,
) -> str:
    """
    Render the single HTML layout every platform email uses.

    ``body`` is trusted HTML assembled by the caller; interpolated user input
    must be escaped with :func:`escape` first.
    """
    cta_block = ""
    if cta_text and cta_url:
        cta_block = (
            f'<a href="{cta_url}" style="display:inline-block;margin-top:24px;'
            "padding:12px 28px;background:#fff;color:#000;border-radius:8px;"
            f'text-decoration:none;font-weight:600;font-size:14px;">{cta_text}</a>'
        )
    return f"""<!DOCTYPE html>
<html>
<head><meta charset="utf-8"/></head>
<body style="margin:0;padding:0;background:#000;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;">
  <table width="100%" cellpadding="0" cellspacing="0" style="background:#000;padding:40px 20px;">
    <tr><td align="center">
      <table width="100%" style="max-width:520px;background:#0a0a0a;border:1px solid #27272a;border-radius:12px;padding:40px;">
        <tr><td>
          <h1 style="margin:0 0 16px;font-size:22px;color:#fff;">{title}</h1>
          <div style="color:#a1a1aa;font-size:15px;line-height:1.6;">{body}</div>
          {cta_block}
        </td></tr>
      </table>
      <p style="margin-top:24px;font-size:12px;color:#52525b;">Dealbridge &mdash; Private deal flow for investors</p>
    </td></tr>
  </table>
</body>
</html>"""


def escape(value: Optional[str]) -> str:
    return html.escape(value or "")


class EmailClient:
    """Async Resend client routed through ``email_circuit_breaker``."""

    def __init__(
        self,
        api_key: str,
        api_url: str,
        sender: str,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self._api_key = api_key
        self._api_url = api_url
        self._sender = sender
        self._client = client or httpx.AsyncClient(timeout=10.0)

    @property
    def enabled(self) -> bool:
        return bool(self._api_key)

    async def send(self, to: str, subject: str, html_body: str) -> bool:
        """
        Send one email.  Returns ``False`` when sending is disabled.

        Raises ``httpx.HTTPStatusError`` on a non-2xx provider response.
        """
        if not self.enabled:
            logger.warning("RESEND_API_KEY not set — skipping email '%s' to %s", subject, to)
            return False

        async def _post() -> None:
            response = await self._client.post(
                self._api_url,
                headers={"Authorization": f"Bearer {self._api_key}"},
                json={"from": self._sender, "to": to, "subject": subject, "html": html_body},
            )
            if response.is_error:
                logger.error("Resend error %d: %s", response.status_code, response.text)
            response.raise_for_status()

        await email_circuit_breaker.call(_post)
        logger.info("Sent email '%s' to %s", subject, to)
        return True

    async def close(self) -> None:
        await self._client.aclose()


@lru_cache
def get_email_client() -> EmailClient:
    """Process-wide email client (FastAPI dependency)."""
    return EmailClient(
        api_key=settings.RESEND_API_KEY,
        api_url=settings.RESEND_API_URL,
        sender=settings.EMAIL_FROM,
    )
