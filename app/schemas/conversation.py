"""
Pydantic schemas for conversations and messages.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ConversationStart(BaseModel):
    """
    Schema for ``POST /conversations``.

    Both fields are checked by the service so that a missing deal or blank
    message is a 400 rather than a schema 422.
    """

    deal_id: Optional[UUID] = None
    message: Optional[str] = Field(default=None, max_length=10_000)


class MessageSend(BaseModel):
    content: Optional[str] = Field(default=None, max_length=10_000)


class MessageResponse(BaseModel):
    id: UUID
    conversation_id: UUID
    sender_id: UUID
    content: str
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class OtherUser(BaseModel):
    id: Optional[UUID] = None
    name: str


class LastMessage(BaseModel):
    content: str
    created_at: datetime
    sender_id: UUID


class ConversationSummary(BaseModel):
    id: UUID
    deal_id: UUID
    deal_title: str
    other_user: OtherUser
    last_message: Optional[LastMessage] = None
    unread_count: int = 0
    created_at: datetime


class ConversationList(BaseModel):
    conversations: List[ConversationSummary]


class ConversationRef(BaseModel):
    id: UUID


class ConversationStarted(BaseModel):
    conversation: ConversationRef
    message: MessageResponse


class ThreadHeader(BaseModel):
    id: UUID
    deal_id: UUID
    deal_title: str
    investor_id: UUID
    operator_id: Optional[UUID] = None
    other_user: OtherUser


class Thread(BaseModel):
    conversation: ThreadHeader
    messages: List[MessageResponse]


class MessageEnvelope(BaseModel):
    message: MessageResponse


class UnreadCount(BaseModel):
    count: int
