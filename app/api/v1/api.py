"""
V1 API router aggregation.

All versioned endpoint routers are mounted here under a common prefix.
The top-level ``main.py`` mounts this router at ``/api/v1``.
"""

from fastapi import APIRouter

from app.api.v1.endpoints import (
    admin,
    analytics,
    commitments,
    conversations,
    deals,
    interests,
    investors,
    kyc,
    notifications,
    payments,
    verify,
)

api_router = APIRouter()

api_router.include_router(deals.router, prefix="/deals", tags=["Deals"])
api_router.include_router(commitments.router, prefix="/commitments", tags=["Commitments"])
api_router.include_router(payments.router, prefix="/stripe", tags=["Payments"])
api_router.include_router(interests.router, prefix="/interests", tags=["Interests"])
api_router.include_router(
    conversations.router, prefix="/conversations", tags=["Conversations"]
)
api_router.include_router(investors.router, prefix="/investors", tags=["Investors"])
api_router.include_router(notifications.router, prefix="/notifications", tags=["Notifications"])
api_router.include_router(kyc.router, prefix="/kyc", tags=["KYC"])
api_router.include_router(verify.router, prefix="/verify", tags=["Verification"])
api_router.include_router(admin.router, prefix="/admin", tags=["Admin"])

# Analytics routes carry their own role prefix (/investor/..., /admin/...)
# so the router is mounted at the root of the v1 prefix.
api_router.include_router(analytics.router, tags=["Analytics"])
