"""
Pydantic schemas for the notification inbox and the internal send endpoint.
"""

from datetime import datetime
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class NotificationResponse(BaseModel):
    id: UUID
    user_id: UUID
    type: str
    title: str
    message: str
    link: Optional[str] = None
    read: bool
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class NotificationInbox(BaseModel):
    notifications: List[NotificationResponse]
    unread_count: int = Field(..., serialization_alias="unreadCount")


class NotificationSelection(BaseModel):
    """
    Body of ``PATCH /notifications/read`` and ``DELETE /notifications``:
    either ``{"all": true}`` or ``{"notificationIds": [...]}``.
    """

    all: bool = False
    notification_ids: Optional[List[UUID]] = Field(default=None, alias="notificationIds")

    model_config = ConfigDict(populate_by_name=True)


class NotificationSend(BaseModel):
    """Schema for ``POST /notifications/send`` (internal callers)."""

    user_id: Optional[UUID] = Field(default=None, alias="userId")
    type: Optional[str] = Field(default=None, max_length=64)
    title: Optional[str] = Field(default=None, max_length=255)
    message: Optional[str] = None
    link: Optional[str] = Field(default=None, max_length=512)

    model_config = ConfigDict(populate_by_name=True)
