"""
Notification repository — data-access layer for ``notifications``.

Every inbox query is scoped by ``user_id``; ``mark_read`` and
``delete_for_user`` never touch another user's rows even when given their
ids.
"""

from typing import List, Optional, Sequence
from uuid import UUID

from app.models.notification import Notification
from app.repositories.base import BaseRepository


class NotificationRepository(BaseRepository[Notification]):
    """Concrete repository for :class:`Notification` entities."""

    async def list_for_user(
        self,
        user_id: UUID,
        limit: int = 20,
        offset: int = 0,
        unread_only: bool = False,
    ) -> List[Notification]:
        criteria = [self.model.user_id == user_id]
        if unread_only:
            criteria.append(self.model.read.is_(False))
        return await self.list_where(
            *criteria,
            order_by=self.model.created_at.desc(),
            skip=offset,
            limit=limit,
        )

    async def count_unread(self, user_id: UUID) -> int:
        return await self.count(self.model.user_id == user_id, self.model.read.is_(False))

    def _scope(self, user_id: UUID, ids: Optional[Sequence[UUID]]) -> list:
        criteria = [self.model.user_id == user_id]
        if ids is not None:
            criteria.append(self.model.id.in_(list(ids)))
        return criteria

    async def mark_read(self, user_id: UUID, ids: Optional[Sequence[UUID]] = None) -> int:
        """Mark ``ids`` (or, with ``ids=None``, every notification) as read."""
        return await self.update_where({"read": True}, *self._scope(user_id, ids))

    async def delete_for_user(self, user_id: UUID, ids: Optional[Sequence[UUID]] = None) -> int:
        return await self.delete_where(*self._scope(user_id, ids))
