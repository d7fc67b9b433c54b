"""
Commitment API endpoints.

- GET   /commitments        — Commitments visible to the caller
- POST  /commitments        — Commit capital to an active deal
- PATCH /commitments/{id}   — Investor cancels their own commitment
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.db.session import get_db
from app.models.commitment import CommitmentStatus, InvestmentCommitment
from app.models.deal import Deal
from app.models.profile import Profile
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.profile_repo import ProfileRepository
from app.schemas.commitment import (
    CommitmentCancel,
    CommitmentCreate,
    CommitmentEnvelope,
    CommitmentList,
)
from app.schemas.common import ErrorResponse, ValidationErrorResponse
from app.services.commitment_service import CommitmentService
from app.services.notifier import Notifier, get_notifier

router = APIRouter()


def get_commitment_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> CommitmentService:
    """Shared with the admin router."""
    return CommitmentService(
        CommitmentRepository(InvestmentCommitment, db),
        DealRepository(Deal, db),
        ProfileRepository(Profile, db),
        notifier,
    )


@router.get(
    "",
    response_model=CommitmentList,
    summary="List commitments",
    description=(
        "Investors see their own commitments and operators those on their deals.  "
        "Admins see their own unless ``all=true``."
    ),
)
async def list_commitments(
    deal_id: Optional[UUID] = Query(None),
    status: Optional[CommitmentStatus] = Query(None),
    show_all: bool = Query(False, alias="all"),
    user: CurrentUser = Depends(get_current_user),
    service: CommitmentService = Depends(get_commitment_service),
) -> dict:
    commitments = await service.list_commitments(
        user, deal_id=deal_id, status=status, show_all=show_all
    )
    return {"commitments": commitments}


@router.post(
    "",
    response_model=CommitmentEnvelope,
    status_code=201,
    summary="Commit capital to a deal",
    responses={
        400: {"model": ErrorResponse, "description": "Deal inactive or amount below minimum"},
        403: {"model": ErrorResponse, "description": "Role, verification or KYC requirement"},
        404: {"model": ErrorResponse, "description": "Deal not found"},
        409: {"model": ErrorResponse, "description": "Open commitment already exists"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_commitment(
    commitment_in: CommitmentCreate,
    user: CurrentUser = Depends(get_current_user),
    service: CommitmentService = Depends(get_commitment_service),
) -> dict:
    return {"commitment": await service.create_commitment(user, commitment_in)}


@router.patch(
    "/{commitment_id}",
    response_model=CommitmentEnvelope,
    summary="Cancel own commitment",
    responses={
        403: {"model": ErrorResponse, "description": "Not the caller's commitment"},
        404: {"model": ErrorResponse, "description": "Commitment not found"},
        409: {"model": ErrorResponse, "description": "Commitment already terminal"},
    },
)
async def cancel_commitment(
    commitment_id: UUID,
    body: CommitmentCancel,
    user: CurrentUser = Depends(get_current_user),
    service: CommitmentService = Depends(get_commitment_service),
) -> dict:
    return {"commitment": await service.cancel_commitment(user, commitment_id, body.status)}
