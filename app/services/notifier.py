"""
Fire-and-forget side effects.

Workflows call :class:`Notifier` to schedule in-app notifications and
emails.  Nothing is executed in the request: each call enqueues a job on the
outbound delivery queue and returns immediately.  Jobs open their own
database session because the request's session is closed by the time the
worker runs them.
"""

import logging
from typing import Callable, Optional
from uuid import UUID

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.email import EmailClient, get_email_client
from app.core.outbox import DeliveryQueue, get_delivery_queue
from app.db.session import AsyncSessionLocal
from app.models.notification import Notification
from app.models.profile import Profile
from app.repositories.notification_repo import NotificationRepository
from app.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)


class Notifier:
    def __init__(
        self,
        queue: DeliveryQueue,
        email_client: EmailClient,
        session_factory: Callable[[], AsyncSession] = AsyncSessionLocal,
    ):
        self._queue = queue
        self._email = email_client
        self._session_factory = session_factory

    # ── In-app ──

    def notify_user(
        self,
        user_id: UUID,
        type: str,
        title: str,
        message: str,
        link: Optional[str] = None,
    ) -> None:
        self._queue.enqueue(
            f"notification:{type}",
            self._insert_for_user,
            user_id,
            type,
            title,
            message,
            link,
        )

    def notify_admins(
        self, type: str, title: str, message: str, link: Optional[str] = None
    ) -> None:
        """One notification row per admin profile; no-op when there are none."""
        self._queue.enqueue(
            f"admin-notification:{type}", self._insert_for_admins, type, title, message, link
        )

    async def _insert_for_user(
        self, user_id: UUID, type: str, title: str, message: str, link: Optional[str]
    ) -> None:
        async with self._session_factory() as session:
            await NotificationRepository(Notification, session).create(
                Notification(user_id=user_id, type=type, title=title, message=message, link=link)
            )

    async def _insert_for_admins(
        self, type: str, title: str, message: str, link: Optional[str]
    ) -> None:
        async with self._session_factory() as session:
            admin_ids = await ProfileRepository(Profile, session).get_admin_ids()
            if not admin_ids:
                return
            await NotificationRepository(Notification, session).create_many(
                [
                    Notification(user_id=admin_id, type=type, title=title, message=message, link=link)
                    for admin_id in admin_ids
                ]
            )

    # ── Email ──

    def send_email(self, to: Optional[str], subject: str, html: str) -> None:
        if not to:
            logger.debug("No recipient for email '%s' — skipped", subject)
            return
        self._queue.enqueue(f"email:{subject}", self._email.send, to, subject, html)

    def send_admin_email(self, subject: str, html: str) -> None:
        self.send_email(settings.ADMIN_EMAIL, subject, html)

    # ── Arbitrary jobs ──

    def schedule(self, name: str, func: Callable, *args, **kwargs) -> None:
        self._queue.enqueue(name, func, *args, **kwargs)


def get_notifier(
    queue: DeliveryQueue = Depends(get_delivery_queue),
    email_client: EmailClient = Depends(get_email_client),
) -> Notifier:
    return Notifier(queue=queue, email_client=email_client)


def site_url(path: str) -> str:
    return f"{settings.SITE_URL.rstrip('/')}{path}"


async def lookup_for_notification(repo, entity_id: UUID):
    """
    ``repo.get(entity_id)``, or ``None`` when the read fails.

    Used for reads that only feed a notification and run after the
    workflow's own write has committed; the caller skips the message.
    """
    try:
        return await repo.get(entity_id)
    except Exception:
        logger.exception("Notification lookup failed for %s; message skipped", entity_id)
        return None
