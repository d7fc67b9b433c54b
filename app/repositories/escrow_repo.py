"""
Escrow repository — data-access layer for ``escrow_transactions``.
"""

from typing import List, Optional

from app.models.escrow import EscrowTransaction
from app.repositories.base import BaseRepository


class EscrowRepository(BaseRepository[EscrowTransaction]):
    """Concrete repository for :class:`EscrowTransaction` entities."""

    async def get_by_payment_intent(self, payment_intent_id: str) -> Optional[EscrowTransaction]:
        """Webhook events reference the escrow by provider payment-intent id."""
        return await self.first_where(
            self.model.stripe_payment_intent_id == payment_intent_id
        )

    async def list_newest_first(self) -> List[EscrowTransaction]:
        return await self.list_where(order_by=self.model.created_at.desc())
