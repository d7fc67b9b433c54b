"""
Investor ↔ operator messaging.

An investor may open a conversation about a deal only once the deal's
operator has accepted their introduction request; admins may open one on any
deal.  After that both participants (and admins) can post to the thread.

Reading a thread as a participant marks the other party's messages read.
The ``last_message_at`` touch and all notifications run after the message is
committed and never fail the request.
"""

import logging
from collections import Counter
from datetime import datetime, timezone
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import IntegrityError

from app.core.auth import CurrentUser
from app.core.email import email_template, escape
from app.core.exceptions import BadRequestException, ForbiddenException, NotFoundException
from app.models.conversation import Conversation, Message
from app.models.profile import UserRole, VerificationStatus
from app.repositories.conversation_repo import ConversationRepository, MessageRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.conversation import ConversationStart
from app.services.notifier import Notifier, lookup_for_notification, site_url

logger = logging.getLogger(__name__)

EMAIL_PREVIEW_CHARS = 200
ADMIN_PREVIEW_CHARS = 100


def preview(content: str, limit: int = EMAIL_PREVIEW_CHARS) -> str:
    return content[:limit] + ("..." if len(content) > limit else "")


def display_name(profile) -> str:
    if profile is None:
        return "Unknown"
    return profile.full_name or profile.email or "Unknown"


class ConversationService:
    def __init__(
        self,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
        deal_repo: DealRepository,
        interest_repo: InterestRepository,
        profile_repo: ProfileRepository,
        notifier: Notifier,
    ):
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo
        self._deal_repo = deal_repo
        self._interest_repo = interest_repo
        self._profile_repo = profile_repo
        self._notifier = notifier

    # ── Queries ──

    async def list_conversations(self, user: CurrentUser) -> List[dict]:
        """
        Caller's conversations (every conversation for admins), each with the
        deal title, the other participant, the latest message and the
        caller's unread count.
        """
        is_admin = user.role is UserRole.ADMIN
        conversations = await self._conversation_repo.list_for_participant(
            None if is_admin else user.id
        )
        if not conversations:
            return []

        deals = await self._deal_repo.get_many([c.deal_id for c in conversations])
        participant_ids = {c.investor_id for c in conversations}
        participant_ids.update(c.operator_id for c in conversations if c.operator_id)
        profiles = await self._profile_repo.get_many(list(participant_ids))
        messages = await self._message_repo.list_in([c.id for c in conversations])

        latest = {}
        unread: Counter = Counter()
        for message in messages:
            latest.setdefault(message.conversation_id, message)
            if not is_admin and message.sender_id != user.id and not message.read:
                unread[message.conversation_id] += 1

        result = []
        for conversation in conversations:
            other_id = _other_party(conversation, user.id)
            deal = deals.get(conversation.deal_id)
            last = latest.get(conversation.id)
            result.append(
                {
                    "id": conversation.id,
                    "deal_id": conversation.deal_id,
                    "deal_title": deal.title if deal else "Unknown deal",
                    "other_user": {"id": other_id, "name": display_name(profiles.get(other_id))},
                    "last_message": (
                        {
                            "content": last.content,
                            "created_at": last.created_at,
                            "sender_id": last.sender_id,
                        }
                        if last
                        else None
                    ),
                    "unread_count": unread[conversation.id],
                    "created_at": conversation.created_at,
                }
            )
        return result

    async def get_thread(self, user: CurrentUser, conversation_id: UUID) -> dict:
        conversation, is_participant = await self._accessible(user, conversation_id)

        messages = await self._message_repo.list_for_conversation(conversation.id)
        if is_participant:
            marked = await self._message_repo.mark_read(conversation.id, user.id)
            if marked:
                logger.debug(
                    "Marked %d message(s) read in %s for %s", marked, conversation.id, user.id
                )

        deal = await self._deal_repo.get(conversation.deal_id)
        other_id = _other_party(conversation, user.id)
        other = await self._profile_repo.get(other_id) if other_id else None
        return {
            "conversation": {
                "id": conversation.id,
                "deal_id": conversation.deal_id,
                "deal_title": deal.title if deal else "Unknown deal",
                "investor_id": conversation.investor_id,
                "operator_id": conversation.operator_id,
                "other_user": {"id": other_id, "name": display_name(other)},
            },
            "messages": messages,
        }

    async def unread_count(self, user: Optional[CurrentUser]) -> int:
        """Unread messages sent to the caller by others; 0 for anonymous callers."""
        if user is None:
            return 0
        conversations = await self._conversation_repo.list_for_participant(user.id)
        return await self._message_repo.count_in(
            [c.id for c in conversations], unread_not_from=user.id
        )

    # ── Commands ──

    async def start_conversation(
        self, user: CurrentUser, start_in: ConversationStart
    ) -> Tuple[Conversation, Message]:
        """
        Open (or reuse) the caller's conversation about a deal and post the
        first message.

        Validation sequence:
        1. Caller's account is verified → 403.
        2. ``deal_id`` and a non-blank ``message`` are given → 400.
        3. Deal exists (404), has an operator (400) and that operator is not
           the caller (400).
        4. Non-admins hold an accepted introduction on the deal → 403.
        """
        if user.verification_status != VerificationStatus.VERIFIED:
            raise ForbiddenException("Account verification required.")
        if start_in.deal_id is None:
            raise BadRequestException("deal_id is required")
        content = (start_in.message or "").strip()
        if not content:
            raise BadRequestException("message is required")

        deal = await self._deal_repo.get(start_in.deal_id)
        if not deal:
            raise NotFoundException("Deal", start_in.deal_id)
        if not deal.operator_id:
            raise BadRequestException("Deal has no operator")
        if deal.operator_id == user.id:
            raise BadRequestException("Cannot message yourself")
        if user.role is not UserRole.ADMIN and not await self._interest_repo.has_accepted_intro(
            user.id, [deal.id]
        ):
            raise ForbiddenException(
                "The operator must accept your introduction before you can message them"
            )

        conversation = await self._conversation_repo.find_for(deal.id, user.id)
        if conversation is None:
            conversation = await self._create_conversation(deal.id, user.id, deal.operator_id)

        message = await self._post(conversation, user, content)

        operator = await lookup_for_notification(self._profile_repo, deal.operator_id)
        if operator and operator.email:
            sender = escape(user.full_name or user.email)
            self._notifier.send_email(
                operator.email,
                f"New message from {user.full_name or user.email} about {deal.title}",
                email_template(
                    title="New Message",
                    body=(
                        f"<strong>{sender}</strong> sent you a message about "
                        f"<strong>{escape(deal.title)}</strong>.<br/><br/>"
                        f'"{escape(preview(content))}"'
                    ),
                    cta_text="View Conversation",
                    cta_url=site_url(f"/messages/{conversation.id}"),
                ),
            )
        return conversation, message

    async def send_message(
        self, user: CurrentUser, conversation_id: UUID, content: Optional[str]
    ) -> Message:
        conversation, _ = await self._accessible(user, conversation_id)
        content = (content or "").strip()
        if not content:
            raise BadRequestException("content is required")

        message = await self._post(conversation, user, content)
        await self._notify_message(user, conversation, content)
        return message

    # ── Helpers ──

    async def _accessible(
        self, user: CurrentUser, conversation_id: UUID
    ) -> Tuple[Conversation, bool]:
        """The conversation and whether the caller takes part in it; admins may read any."""
        conversation = await self._conversation_repo.get(conversation_id)
        if not conversation:
            raise NotFoundException("Conversation", conversation_id)
        is_participant = user.id in (conversation.investor_id, conversation.operator_id)
        if not is_participant and user.role is not UserRole.ADMIN:
            raise ForbiddenException()
        return conversation, is_participant

    async def _create_conversation(
        self, deal_id: UUID, investor_id: UUID, operator_id: UUID
    ) -> Conversation:
        try:
            conversation = await self._conversation_repo.create(
                Conversation(
                    deal_id=deal_id,
                    investor_id=investor_id,
                    operator_id=operator_id,
                    last_message_at=datetime.now(timezone.utc),
                )
            )
        except IntegrityError:
            # a concurrent request opened it first
            await self._conversation_repo.db.rollback()
            conversation = await self._conversation_repo.find_for(deal_id, investor_id)
            if conversation is None:
                raise
            return conversation
        logger.info(
            "Conversation %s opened by %s on deal %s", conversation.id, investor_id, deal_id
        )
        return conversation

    async def _post(self, conversation: Conversation, user: CurrentUser, content: str) -> Message:
        message = await self._message_repo.create(
            Message(conversation_id=conversation.id, sender_id=user.id, content=content)
        )
        try:
            await self._conversation_repo.touch(conversation.id, message.created_at)
        except Exception:
            logger.exception("last_message_at update failed for conversation %s", conversation.id)
        return message

    async def _notify_message(
        self, user: CurrentUser, conversation: Conversation, content: str
    ) -> None:
        sender_name = user.full_name or user.email or "Someone"
        deal = await lookup_for_notification(self._deal_repo, conversation.deal_id)
        about_html = f" about <strong>{escape(deal.title)}</strong>" if deal else ""
        link = f"/messages/{conversation.id}"

        recipients = [
            uid
            for uid in (conversation.investor_id, conversation.operator_id)
            if uid and uid != user.id
        ]
        for recipient_id in recipients:
            self._notifier.notify_user(
                recipient_id,
                "message_received",
                f"New message from {sender_name}",
                preview(content),
                link=link,
            )
            recipient = await lookup_for_notification(self._profile_repo, recipient_id)
            if recipient and recipient.email:
                self._notifier.send_email(
                    recipient.email,
                    f"New message from {sender_name}",
                    email_template(
                        title="New Message",
                        body=(
                            f"<strong>{escape(sender_name)}</strong> sent you a message"
                            f'{about_html}.<br/><br/>"{escape(preview(content))}"'
                        ),
                        cta_text="View Conversation",
                        cta_url=site_url(link),
                    ),
                )

        if user.role is not UserRole.ADMIN:
            about = f' about "{deal.title}"' if deal else ""
            self._notifier.notify_admins(
                "message_received",
                f"New message from {sender_name}",
                f"{sender_name} sent a message{about}: {preview(content, ADMIN_PREVIEW_CHARS)}",
                link=link,
            )


def _other_party(conversation: Conversation, user_id: UUID) -> Optional[UUID]:
    if conversation.investor_id == user_id:
        return conversation.operator_id
    return conversation.investor_id
