"""
Messaging endpoints.

- GET  /conversations                 — Caller's conversations (all for admins)
- POST /conversations                 — Open a conversation about a deal
- GET  /conversations/unread          — Unread message count (0 when anonymous)
- GET  /conversations/{id}/messages   — Thread; marks the other party's messages read
- POST /conversations/{id}/messages   — Post to a thread
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, get_optional_user
from app.db.session import get_db
from app.models.conversation import Conversation, Message
from app.models.deal import Deal
from app.models.interest import DealInterest
from app.models.profile import Profile
from app.repositories.conversation_repo import ConversationRepository, MessageRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.common import ErrorResponse
from app.schemas.conversation import (
    ConversationList,
    ConversationStart,
    ConversationStarted,
    MessageEnvelope,
    MessageSend,
    Thread,
    UnreadCount,
)
from app.services.conversation_service import ConversationService
from app.services.notifier import Notifier, get_notifier

router = APIRouter()

_THREAD_ERRORS = {
    403: {"model": ErrorResponse, "description": "Caller is not a participant"},
    404: {"model": ErrorResponse, "description": "Conversation not found"},
}


def _get_conversation_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> ConversationService:
    return ConversationService(
        ConversationRepository(Conversation, db),
        MessageRepository(Message, db),
        DealRepository(Deal, db),
        InterestRepository(DealInterest, db),
        ProfileRepository(Profile, db),
        notifier,
    )


@router.get("", response_model=ConversationList, summary="List own conversations")
async def list_conversations(
    user: CurrentUser = Depends(get_current_user),
    service: ConversationService = Depends(_get_conversation_service),
) -> dict:
    return {"conversations": await service.list_conversations(user)}


@router.post(
    "",
    response_model=ConversationStarted,
    status_code=201,
    summary="Message a deal's operator",
    responses={
        400: {"model": ErrorResponse, "description": "Missing deal or message"},
        403: {"model": ErrorResponse, "description": "Unverified or no accepted introduction"},
        404: {"model": ErrorResponse, "description": "Deal not found"},
    },
)
async def start_conversation(
    start_in: ConversationStart,
    user: CurrentUser = Depends(get_current_user),
    service: ConversationService = Depends(_get_conversation_service),
) -> dict:
    conversation, message = await service.start_conversation(user, start_in)
    return {"conversation": {"id": conversation.id}, "message": message}


@router.get("/unread", response_model=UnreadCount, summary="Unread message count")
async def unread_count(
    user: Optional[CurrentUser] = Depends(get_optional_user),
    service: ConversationService = Depends(_get_conversation_service),
) -> dict:
    return {"count": await service.unread_count(user)}


@router.get(
    "/{conversation_id}/messages",
    response_model=Thread,
    summary="Read a conversation",
    responses=_THREAD_ERRORS,
)
async def get_thread(
    conversation_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: ConversationService = Depends(_get_conversation_service),
) -> dict:
    return await service.get_thread(user, conversation_id)


@router.post(
    "/{conversation_id}/messages",
    response_model=MessageEnvelope,
    status_code=201,
    summary="Send a message",
    responses={**_THREAD_ERRORS, 400: {"model": ErrorResponse, "description": "Blank content"}},
)
async def send_message(
    conversation_id: UUID,
    message_in: MessageSend,
    user: CurrentUser = Depends(get_current_user),
    service: ConversationService = Depends(_get_conversation_service),
) -> dict:
    return {"message": await service.send_message(user, conversation_id, message_in.content)}
