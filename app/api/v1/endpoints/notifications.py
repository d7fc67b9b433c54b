"""
Notification inbox endpoints.

- GET    /notifications        — Caller's inbox plus unread count
- PATCH  /notifications/read   — Mark selected (or all) as read
- DELETE /notifications        — Delete selected (or all)
- POST   /notifications/send   — Internal: insert a notification for any user
"""

from typing import Optional

from fastapi import APIRouter, Depends, Header, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.db.session import get_db
from app.models.notification import Notification
from app.repositories.notification_repo import NotificationRepository
from app.schemas.common import ErrorResponse, OkResponse
from app.schemas.notification import NotificationInbox, NotificationSelection, NotificationSend
from app.services.notification_service import NotificationService, check_internal_secret

router = APIRouter()

_SELECTION_ERRORS = {
    400: {"model": ErrorResponse, "description": "Neither notificationIds nor all given"},
}


def _get_notification_service(db: AsyncSession = Depends(get_db)) -> NotificationService:
    return NotificationService(NotificationRepository(Notification, db))


@router.get("", response_model=NotificationInbox, summary="List own notifications")
async def list_notifications(
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    unread: bool = Query(False, description="Only unread notifications"),
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(_get_notification_service),
) -> dict:
    return await service.inbox(user, limit=limit, offset=offset, unread_only=unread)


@router.patch(
    "/read",
    response_model=OkResponse,
    summary="Mark notifications read",
    responses=_SELECTION_ERRORS,
)
async def mark_read(
    selection: NotificationSelection,
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(_get_notification_service),
) -> dict:
    await service.mark_read(user, selection)
    return {"ok": True}


@router.delete(
    "",
    response_model=OkResponse,
    summary="Delete notifications",
    responses=_SELECTION_ERRORS,
)
async def delete_notifications(
    selection: NotificationSelection,
    user: CurrentUser = Depends(get_current_user),
    service: NotificationService = Depends(_get_notification_service),
) -> dict:
    await service.delete(user, selection)
    return {"ok": True}


@router.post(
    "/send",
    response_model=OkResponse,
    summary="Send a notification (internal)",
    description="Requires ``Authorization: Bearer <INTERNAL_API_SECRET>``.",
    responses={
        400: {"model": ErrorResponse, "description": "Missing fields"},
        401: {"model": ErrorResponse, "description": "Bad or missing shared secret"},
    },
)
async def send_notification(
    notification_in: NotificationSend,
    authorization: Optional[str] = Header(None),
    service: NotificationService = Depends(_get_notification_service),
) -> dict:
    check_internal_secret(authorization)
    await service.send(notification_in)
    return {"ok": True}
