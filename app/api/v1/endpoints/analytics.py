"""
Dashboard analytics.

- GET /investor/analytics  — Intro and conversation activity for the caller
- GET /operator/analytics  — Interest and conversation totals per deal
- GET /admin/analytics     — Platform totals, 30-day growth and top deals
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, require_roles
from app.db.session import get_db
from app.models.conversation import Conversation, Message
from app.models.deal import Deal
from app.models.interest import DealInterest
from app.models.profile import Profile, UserRole
from app.models.verification import VerificationRequest
from app.repositories.conversation_repo import ConversationRepository, MessageRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.review_repo import VerificationRepository
from app.schemas.analytics import AdminAnalytics, InvestorAnalytics, OperatorAnalytics
from app.services.analytics_service import AdminAnalyticsService, AnalyticsService

router = APIRouter()


def _get_analytics_service(db: AsyncSession = Depends(get_db)) -> AnalyticsService:
    return AnalyticsService(
        DealRepository(Deal, db),
        InterestRepository(DealInterest, db),
        ConversationRepository(Conversation, db),
        MessageRepository(Message, db),
    )


@router.get(
    "/investor/analytics",
    response_model=InvestorAnalytics,
    summary="Investor dashboard analytics",
)
async def investor_analytics(
    user: CurrentUser = Depends(get_current_user),
    service: AnalyticsService = Depends(_get_analytics_service),
) -> dict:
    return await service.investor_summary(user.id)


@router.get(
    "/operator/analytics",
    response_model=OperatorAnalytics,
    summary="Operator dashboard analytics",
)
async def operator_analytics(
    user: CurrentUser = Depends(require_roles(UserRole.OPERATOR, UserRole.ADMIN)),
    service: AnalyticsService = Depends(_get_analytics_service),
) -> dict:
    return await service.operator_summary(user.id)


def _get_admin_analytics_service(db: AsyncSession = Depends(get_db)) -> AdminAnalyticsService:
    return AdminAnalyticsService(
        ProfileRepository(Profile, db),
        DealRepository(Deal, db),
        InterestRepository(DealInterest, db),
        ConversationRepository(Conversation, db),
        VerificationRepository(VerificationRequest, db),
    )


@router.get(
    "/admin/analytics",
    response_model=AdminAnalytics,
    summary="Admin dashboard analytics",
)
async def admin_analytics(
    user: CurrentUser = Depends(require_roles(UserRole.ADMIN)),
    service: AdminAnalyticsService = Depends(_get_admin_analytics_service),
) -> dict:
    return await service.summary()
