"""
Interest repository — data-access layer for ``deal_interests``.
"""

from typing import List, Sequence
from uuid import UUID

from app.models.interest import DealInterest, InterestStatus
from app.repositories.base import BaseRepository


class InterestRepository(BaseRepository[DealInterest]):
    """Concrete repository for :class:`DealInterest` entities."""

    async def has_accepted_intro(self, investor_id: UUID, deal_ids: Sequence[UUID]) -> bool:
        """
        True when ``investor_id`` has an accepted interest on any of
        ``deal_ids`` (the viewing operator's deals).
        """
        if not deal_ids:
            return False
        accepted = await self.count(
            self.model.user_id == investor_id,
            self.model.deal_id.in_(list(deal_ids)),
            self.model.status == InterestStatus.ACCEPTED,
        )
        return accepted > 0

    async def list_by_user(self, user_id: UUID) -> List[DealInterest]:
        return await self.list_where(
            self.model.user_id == user_id, order_by=self.model.created_at.desc()
        )

    async def list_by_deals(self, deal_ids: Sequence[UUID]) -> List[DealInterest]:
        if not deal_ids:
            return []
        return await self.list_where(
            self.model.deal_id.in_(list(deal_ids)),
            order_by=self.model.created_at.desc(),
        )

    async def transition(
        self, interest_id: UUID, to_status: InterestStatus
    ) -> bool:
        """
        Move a ``pending`` interest to ``to_status`` in one conditional UPDATE.
        Returns ``False`` when the interest was no longer pending.
        """
        updated = await self.update_where(
            {"status": to_status},
            self.model.id == interest_id,
            self.model.status == InterestStatus.PENDING,
        )
        return updated > 0
