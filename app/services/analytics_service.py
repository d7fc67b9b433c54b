"""
Dashboard analytics for investors, operators and admins.

Read-only aggregates over interests, conversations and messages.  Counts are
computed in Python from the caller's own rows, which stay small per user.
The admin dashboard aggregates every row, bucketed by UTC day over the last
30 days.
"""

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Optional
from uuid import UUID

from app.models.deal import Deal, DealStatus
from app.models.kyc import ReviewStatus
from app.models.profile import Profile
from app.repositories.conversation_repo import ConversationRepository, MessageRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.review_repo import VerificationRepository

logger = logging.getLogger(__name__)

RECENT_ACTIVITY_LIMIT = 5

GROWTH_WINDOW_DAYS = 30
TOP_DEALS_LIMIT = 5
ADMIN_ACTIVITY_LIMIT = 10
# newest rows taken from each source before merging
ADMIN_ACTIVITY_SOURCE_LIMIT = 5


class AnalyticsService:
    def __init__(
        self,
        deal_repo: DealRepository,
        interest_repo: InterestRepository,
        conversation_repo: ConversationRepository,
        message_repo: MessageRepository,
    ):
        self._deal_repo = deal_repo
        self._interest_repo = interest_repo
        self._conversation_repo = conversation_repo
        self._message_repo = message_repo

    async def investor_summary(self, investor_id: UUID) -> dict:
        interests = await self._interest_repo.list_by_user(investor_id)
        conversations = await self._conversation_repo.list_for_investor(investor_id)
        unread = await self._message_repo.count_in(
            [c.id for c in conversations], unread_not_from=investor_id
        )
        deals = await self._deal_repo.get_many([i.deal_id for i in interests])

        activity = [
            {
                "type": "intro",
                "description": "Intro requested for "
                + (deals[i.deal_id].title if i.deal_id in deals else "a deal"),
                "created_at": i.created_at,
            }
            for i in interests
        ]
        activity.extend(
            {
                "type": "conversation",
                "description": "Conversation started",
                "created_at": c.created_at,
            }
            for c in conversations
        )
        activity.sort(key=lambda item: item["created_at"], reverse=True)

        return {
            "intros_sent": len(interests),
            "active_conversations": len(conversations),
            "unread_messages": unread,
            "recent_activity": activity[:RECENT_ACTIVITY_LIMIT],
        }

    async def operator_summary(self, operator_id: UUID) -> dict:
        deals = await self._deal_repo.list_by_operator(operator_id)
        deal_ids = [d.id for d in deals]

        interests = await self._interest_repo.list_by_deals(deal_ids)
        conversations = await self._conversation_repo.list_for_deals(deal_ids)
        total_messages = await self._message_repo.count_in([c.id for c in conversations])

        interests_by_deal = Counter(i.deal_id for i in interests)
        conversations_by_deal = Counter(c.deal_id for c in conversations)
        statuses = Counter(d.status for d in deals)

        return {
            "total_interests": len(interests),
            "total_conversations": len(conversations),
            "total_messages": total_messages,
            "deal_performance": [
                {
                    "id": d.id,
                    "title": d.title,
                    "status": d.status,
                    "interest_count": interests_by_deal[d.id],
                    "conversation_count": conversations_by_deal[d.id],
                }
                for d in deals
            ],
            "status_breakdown": {s.value: statuses[s] for s in DealStatus},
        }


class AdminAnalyticsService:
    """Platform-wide aggregates for the admin dashboard."""

    def __init__(
        self,
        profile_repo: ProfileRepository,
        deal_repo: DealRepository,
        interest_repo: InterestRepository,
        conversation_repo: ConversationRepository,
        verification_repo: VerificationRepository,
    ):
        self._profile_repo = profile_repo
        self._deal_repo = deal_repo
        self._interest_repo = interest_repo
        self._conversation_repo = conversation_repo
        self._verification_repo = verification_repo

    async def summary(self, now: Optional[datetime] = None) -> dict:
        now = now or datetime.now(timezone.utc)
        days = [
            (now - timedelta(days=GROWTH_WINDOW_DAYS - 1 - i)).date()
            for i in range(GROWTH_WINDOW_DAYS)
        ]
        window = set(days)

        profiles = await self._profile_repo.list_where(order_by=Profile.created_at.desc())
        deals = await self._deal_repo.list_where(order_by=Deal.created_at.desc())
        interests = await self._interest_repo.list_where()
        total_conversations = await self._conversation_repo.count()
        verifications = await self._verification_repo.list_by_status(None)

        recent_profiles = [p for p in profiles if p.created_at.date() in window]
        recent_deals = [d for d in deals if d.created_at.date() in window]

        signups = Counter(p.created_at.date() for p in recent_profiles)
        created = Counter(d.created_at.date() for d in recent_deals)
        approved = Counter(
            d.created_at.date() for d in recent_deals if d.status == DealStatus.ACTIVE
        )
        deal_statuses = Counter(d.status for d in deals)
        review_statuses = Counter(v.status for v in verifications)

        titles = {d.id: d.title for d in deals}
        interest_counts = Counter(i.deal_id for i in interests)
        categories = Counter(d.category or "Uncategorized" for d in deals)

        activity = [
            {"type": "user", "description": "New user signed up", "created_at": p.created_at}
            for p in recent_profiles[:ADMIN_ACTIVITY_SOURCE_LIMIT]
        ]
        activity.extend(
            {"type": "deal", "description": f"Deal created: {d.title}", "created_at": d.created_at}
            for d in recent_deals[:ADMIN_ACTIVITY_SOURCE_LIMIT]
        )
        activity.extend(
            {
                "type": "verification",
                "description": f"Verification {v.status.value}",
                "created_at": v.created_at,
            }
            for v in verifications[:ADMIN_ACTIVITY_SOURCE_LIMIT]
        )
        activity.sort(key=lambda item: item["created_at"], reverse=True)

        return {
            "overview": {
                "total_users": len(profiles),
                "total_deals": len(deals),
                "active_deals": deal_statuses[DealStatus.ACTIVE],
                "pending_deals": deal_statuses[DealStatus.PENDING],
                "total_conversations": total_conversations,
                "total_intros": len(interests),
            },
            "user_growth": [{"date": day, "count": signups[day]} for day in days],
            "deal_activity": [
                {"date": day, "created": created[day], "approved": approved[day]} for day in days
            ],
            "verification_stats": {s.value: review_statuses[s] for s in ReviewStatus},
            "top_deals": [
                {"id": deal_id, "title": titles.get(deal_id, "Unknown"), "interest_count": count}
                for deal_id, count in interest_counts.most_common(TOP_DEALS_LIMIT)
            ],
            "category_breakdown": [
                {"category": category, "count": count}
                for category, count in categories.most_common()
            ],
            "recent_activity": activity[:ADMIN_ACTIVITY_LIMIT],
        }
