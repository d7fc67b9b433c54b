"""
Pydantic schemas for the investor, operator and admin analytics dashboards.

Keys are served in camelCase, the shape the dashboards consume.
"""

from datetime import date, datetime
from typing import Dict, List
from uuid import UUID

from pydantic import BaseModel, Field

from app.models.deal import DealStatus


class ActivityItem(BaseModel):
    type: str
    description: str
    created_at: datetime


class InvestorAnalytics(BaseModel):
    intros_sent: int = Field(..., serialization_alias="introsSent")
    active_conversations: int = Field(..., serialization_alias="activeConversations")
    unread_messages: int = Field(..., serialization_alias="unreadMessages")
    recent_activity: List[ActivityItem] = Field(..., serialization_alias="recentActivity")


class DealPerformance(BaseModel):
    id: UUID
    title: str
    status: DealStatus
    interest_count: int = Field(..., serialization_alias="interestCount")
    conversation_count: int = Field(..., serialization_alias="conversationCount")


class StatusBreakdown(BaseModel):
    active: int = 0
    pending: int = 0
    inactive: int = 0


class OperatorAnalytics(BaseModel):
    total_interests: int = Field(..., serialization_alias="totalInterests")
    total_conversations: int = Field(..., serialization_alias="totalConversations")
    total_messages: int = Field(..., serialization_alias="totalMessages")
    deal_performance: List[DealPerformance] = Field(..., serialization_alias="dealPerformance")
    status_breakdown: StatusBreakdown = Field(..., serialization_alias="statusBreakdown")


class PlatformOverview(BaseModel):
    total_users: int = Field(..., serialization_alias="totalUsers")
    total_deals: int = Field(..., serialization_alias="totalDeals")
    active_deals: int = Field(..., serialization_alias="activeDeals")
    pending_deals: int = Field(..., serialization_alias="pendingDeals")
    total_conversations: int = Field(..., serialization_alias="totalConversations")
    total_intros: int = Field(..., serialization_alias="totalIntros")


class DailyCount(BaseModel):
    date: date
    count: int


class DailyDealActivity(BaseModel):
    date: date
    created: int
    approved: int


class TopDeal(BaseModel):
    id: UUID
    title: str
    interest_count: int = Field(..., serialization_alias="interestCount")


class CategoryCount(BaseModel):
    category: str
    count: int


class AdminAnalytics(BaseModel):
    overview: PlatformOverview
    user_growth: List[DailyCount] = Field(..., serialization_alias="userGrowth")
    deal_activity: List[DailyDealActivity] = Field(..., serialization_alias="dealActivity")
    verification_stats: Dict[str, int] = Field(..., serialization_alias="verificationStats")
    top_deals: List[TopDeal] = Field(..., serialization_alias="topDeals")
    category_breakdown: List[CategoryCount] = Field(..., serialization_alias="categoryBreakdown")
    recent_activity: List[ActivityItem] = Field(..., serialization_alias="recentActivity")
