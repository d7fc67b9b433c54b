"""
Introduction (interest) endpoints.

- POST  /interests                — Investor requests an introduction to a deal
- PATCH /interests/{id}/accept    — Owning operator accepts
- PATCH /interests/{id}/reject    — Owning operator declines
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.db.session import get_db
from app.models.deal import Deal
from app.models.interest import DealInterest
from app.models.profile import Profile
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.common import ErrorResponse
from app.schemas.interest import InterestCreate, InterestEnvelope
from app.services.interest_service import InterestService
from app.services.notifier import Notifier, get_notifier

router = APIRouter()

_TRANSITION_ERRORS = {
    403: {"model": ErrorResponse, "description": "Caller does not own the deal"},
    404: {"model": ErrorResponse, "description": "Interest not found"},
    409: {"model": ErrorResponse, "description": "Interest is no longer pending"},
}


def _get_interest_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> InterestService:
    return InterestService(
        InterestRepository(DealInterest, db),
        DealRepository(Deal, db),
        ProfileRepository(Profile, db),
        notifier,
    )


@router.post(
    "",
    response_model=InterestEnvelope,
    status_code=201,
    summary="Request an introduction",
    responses={
        400: {"model": ErrorResponse, "description": "Missing deal or invalid email"},
        404: {"model": ErrorResponse, "description": "Deal not found"},
    },
)
async def create_interest(
    interest_in: InterestCreate,
    user_agent: Optional[str] = Header(None),
    user: CurrentUser = Depends(get_current_user),
    service: InterestService = Depends(_get_interest_service),
) -> dict:
    interest = await service.create_interest(user, interest_in, user_agent=user_agent)
    return {"ok": True, "interest": interest}


@router.patch(
    "/{interest_id}/accept",
    response_model=InterestEnvelope,
    summary="Accept an introduction request",
    responses=_TRANSITION_ERRORS,
)
async def accept_interest(
    interest_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: InterestService = Depends(_get_interest_service),
) -> dict:
    return {"ok": True, "interest": await service.accept(user, interest_id)}


@router.patch(
    "/{interest_id}/reject",
    response_model=InterestEnvelope,
    summary="Decline an introduction request",
    responses=_TRANSITION_ERRORS,
)
async def reject_interest(
    interest_id: UUID,
    user: CurrentUser = Depends(get_current_user),
    service: InterestService = Depends(_get_interest_service),
) -> dict:
    return {"ok": True, "interest": await service.reject(user, interest_id)}
