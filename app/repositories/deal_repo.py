"""
Deal repository — data-access layer for the ``deals`` table.
"""

from typing import List, Optional
from uuid import UUID

from app.models.deal import Deal, DealStatus
from app.repositories.base import BaseRepository


class DealRepository(BaseRepository[Deal]):
    """Concrete repository for :class:`Deal` entities."""

    async def list_deals(
        self,
        status: Optional[DealStatus] = None,
        operator_id: Optional[UUID] = None,
    ) -> List[Deal]:
        """
        Return deals newest first.  ``status=None`` disables the status
        filter; callers decide the default (active-only for the catalogue).
        """
        criteria = []
        if status is not None:
            criteria.append(self.model.status == status)
        if operator_id is not None:
            criteria.append(self.model.operator_id == operator_id)
        return await self.list_where(*criteria, order_by=self.model.created_at.desc())

    async def list_by_operator(self, operator_id: UUID) -> List[Deal]:
        return await self.list_deals(operator_id=operator_id)
