"""
In-app notification domain model.
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel


class Notification(SQLModel, table=True):
    """Only the recipient may mark a notification read or delete it."""

    __tablename__ = "notifications"  # type: ignore[assignment]

    # Covers the inbox query and the unread counter.
    __table_args__ = (Index("ix_notifications_user_read", "user_id", "read"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    user_id: uuid.UUID = Field(foreign_key="profiles.id", index=True)
    type: str = Field(max_length=64)
    title: str = Field(max_length=255)
    message: str
    link: Optional[str] = Field(default=None, max_length=512)
    read: bool = Field(default=False)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        nullable=False,
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
        index=True,
    )
