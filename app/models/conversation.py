"""
Conversation / message models.

A conversation is one investor talking to the operator of one deal; there is
at most one per ``(deal_id, investor_id)`` pair.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint
from sqlmodel import Field, SQLModel


class Conversation(SQLModel, table=True):
    __tablename__ = "conversations"  # type: ignore[assignment]

    __table_args__ = (
        UniqueConstraint("deal_id", "investor_id", name="uq_conversations_deal_investor"),
    )

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    deal_id: uuid.UUID = Field(foreign_key="deals.id", index=True, ondelete="CASCADE")
    investor_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    operator_id: Optional[uuid.UUID] = Field(
        default=None, foreign_key="profiles.id", index=True
    )
    last_message_at: Optional[datetime] = Field(
        default=None, sa_type=DateTime(timezone=True)  # type: ignore[arg-type]
    )
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )


class Message(SQLModel, table=True):
    __tablename__ = "messages"  # type: ignore[assignment]

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    conversation_id: uuid.UUID = Field(
        foreign_key="conversations.id", index=True, ondelete="CASCADE"
    )
    sender_id: uuid.UUID = Field(foreign_key="profiles.id")
    content: str
    read: bool = False
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
