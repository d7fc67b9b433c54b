"""
Notification inbox and the internal send endpoint.

Every inbox operation is scoped to the caller's own rows.
"""

import logging
import secrets
from typing import Optional

from app.core.auth import CurrentUser
from app.core.config import settings
from app.core.exceptions import BadRequestException, UnauthorizedException
from app.models.notification import Notification
from app.repositories.notification_repo import NotificationRepository
from app.schemas.notification import NotificationSelection, NotificationSend

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100


def _selected_ids(selection: NotificationSelection):
    """``None`` selects every notification; otherwise the explicit id list."""
    if selection.all:
        return None
    if selection.notification_ids:
        return selection.notification_ids
    raise BadRequestException("Provide notificationIds or all: true")


def check_internal_secret(authorization: Optional[str]) -> None:
    """401 unless ``authorization`` is ``Bearer <INTERNAL_API_SECRET>``."""
    secret = settings.INTERNAL_API_SECRET
    if not secret or not authorization:
        raise UnauthorizedException()
    if not secrets.compare_digest(authorization, f"Bearer {secret}"):
        raise UnauthorizedException()


class NotificationService:
    def __init__(self, notification_repo: NotificationRepository):
        self._repo = notification_repo

    async def inbox(
        self, user: CurrentUser, limit: int = 20, offset: int = 0, unread_only: bool = False
    ) -> dict:
        limit = max(1, min(limit, MAX_PAGE_SIZE))
        notifications = await self._repo.list_for_user(
            user.id, limit=limit, offset=max(offset, 0), unread_only=unread_only
        )
        unread_count = await self._repo.count_unread(user.id)
        return {"notifications": notifications, "unread_count": unread_count}

    async def mark_read(self, user: CurrentUser, selection: NotificationSelection) -> int:
        updated = await self._repo.mark_read(user.id, _selected_ids(selection))
        logger.debug("Marked %d notification(s) read for %s", updated, user.id)
        return updated

    async def delete(self, user: CurrentUser, selection: NotificationSelection) -> int:
        deleted = await self._repo.delete_for_user(user.id, _selected_ids(selection))
        logger.debug("Deleted %d notification(s) for %s", deleted, user.id)
        return deleted

    async def send(self, notification_in: NotificationSend) -> Notification:
        if not (
            notification_in.user_id
            and notification_in.type
            and notification_in.title
            and notification_in.message
        ):
            raise BadRequestException("userId, type, title, and message are required")
        notification = await self._repo.create(
            Notification(
                user_id=notification_in.user_id,
                type=notification_in.type,
                title=notification_in.title,
                message=notification_in.message,
                link=notification_in.link,
            )
        )
        logger.info(
            "Internal notification %s (%s) sent to %s",
            notification.id,
            notification.type,
            notification.user_id,
        )
        return notification
