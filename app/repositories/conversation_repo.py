"""
Conversation / message repositories — data-access layer for
``conversations`` and ``messages``.
"""

from datetime import datetime
from typing import List, Optional, Sequence
from uuid import UUID

from sqlalchemy import or_

from app.models.conversation import Conversation, Message
from app.repositories.base import BaseRepository


class ConversationRepository(BaseRepository[Conversation]):
    """Concrete repository for :class:`Conversation` entities."""

    async def find_for(self, deal_id: UUID, investor_id: UUID) -> Optional[Conversation]:
        return await self.first_where(
            self.model.deal_id == deal_id,
            self.model.investor_id == investor_id,
        )

    async def list_for_participant(self, user_id: Optional[UUID]) -> List[Conversation]:
        """
        Conversations ``user_id`` takes part in, most recently active first.
        ``None`` lists every conversation (admin view).
        """
        criteria = []
        if user_id is not None:
            criteria.append(
                or_(self.model.investor_id == user_id, self.model.operator_id == user_id)
            )
        return await self.list_where(
            *criteria,
            order_by=self.model.last_message_at.desc().nulls_last(),
        )

    async def list_for_investor(self, investor_id: UUID) -> List[Conversation]:
        return await self.list_where(
            self.model.investor_id == investor_id,
            order_by=self.model.created_at.desc(),
        )

    async def list_for_deals(self, deal_ids: Sequence[UUID]) -> List[Conversation]:
        if not deal_ids:
            return []
        return await self.list_where(self.model.deal_id.in_(list(deal_ids)))

    async def touch(self, conversation_id: UUID, at: datetime) -> bool:
        updated = await self.update_where(
            {"last_message_at": at}, self.model.id == conversation_id
        )
        return updated > 0


class MessageRepository(BaseRepository[Message]):
    """Concrete repository for :class:`Message` entities."""

    async def list_for_conversation(self, conversation_id: UUID) -> List[Message]:
        """Oldest first, the order a thread is read in."""
        return await self.list_where(
            self.model.conversation_id == conversation_id,
            order_by=self.model.created_at.asc(),
        )

    async def list_in(self, conversation_ids: Sequence[UUID]) -> List[Message]:
        """Newest first across several conversations."""
        if not conversation_ids:
            return []
        return await self.list_where(
            self.model.conversation_id.in_(list(conversation_ids)),
            order_by=self.model.created_at.desc(),
        )

    async def count_in(
        self,
        conversation_ids: Sequence[UUID],
        unread_not_from: Optional[UUID] = None,
    ) -> int:
        """
        Count messages in ``conversation_ids``.  With ``unread_not_from`` only
        unread messages sent by somebody else are counted.
        """
        if not conversation_ids:
            return 0
        criteria = [self.model.conversation_id.in_(list(conversation_ids))]
        if unread_not_from is not None:
            criteria.append(self.model.sender_id != unread_not_from)
            criteria.append(self.model.read.is_(False))
        return await self.count(*criteria)

    async def mark_read(self, conversation_id: UUID, reader_id: UUID) -> int:
        """Mark every unread message the other party sent as read."""
        return await self.update_where(
            {"read": True},
            self.model.conversation_id == conversation_id,
            self.model.sender_id != reader_id,
            self.model.read.is_(False),
        )
