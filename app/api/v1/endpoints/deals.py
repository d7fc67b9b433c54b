"""
Deal API endpoints.

- GET    /deals             — Public catalogue (active by default)
- GET    /deals/{id}        — Public deal detail with investor count
- POST   /deals             — Create a deal (operator or admin)
- PATCH  /deals/{id}        — Update a deal (admin, or owning operator)
- DELETE /deals/{id}        — Delete a deal (admin)
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user, require_roles
from app.db.session import get_db
from app.models.commitment import InvestmentCommitment
from app.models.deal import Deal
from app.models.profile import UserRole
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.schemas.common import ErrorResponse, OkResponse, ValidationErrorResponse
from app.schemas.deal import DealCreate, DealDetailEnvelope, DealEnvelope, DealList, DealUpdate
from app.services.deal_service import DealService
from app.services.notifier import Notifier, get_notifier

router = APIRouter()


def _get_deal_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> DealService:
    """Build a DealService wired to the current request's DB session."""
    return DealService(
        DealRepository(Deal, db),
        CommitmentRepository(InvestmentCommitment, db),
        notifier,
    )


@router.get(
    "",
    response_model=DealList,
    summary="List deals",
    description=(
        "Newest first.  Without ``status`` only active deals are returned; "
        "``status=all`` returns every status."
    ),
    responses={400: {"model": ErrorResponse, "description": "Invalid status"}},
)
async def list_deals(
    status: Optional[str] = Query(None, description="pending, active, inactive or all"),
    operator_id: Optional[UUID] = Query(None),
    service: DealService = Depends(_get_deal_service),
) -> dict:
    return {"deals": await service.list_deals(status=status, operator_id=operator_id)}


@router.get(
    "/{deal_id}",
    response_model=DealDetailEnvelope,
    summary="Get a deal",
    responses={404: {"model": ErrorResponse, "description": "Deal not found"}},
)
async def get_deal(
    deal_id: UUID,
    service: DealService = Depends(_get_deal_service),
) -> dict:
    deal, investor_count = await service.get_deal(deal_id)
    return {"deal": deal, "investor_count": investor_count}


@router.post(
    "",
    response_model=DealEnvelope,
    status_code=201,
    summary="Create a deal",
    description="Operators create ``pending`` deals for admin review; admins may publish directly.",
    responses={
        403: {"model": ErrorResponse, "description": "Investors cannot create deals"},
        422: {"model": ValidationErrorResponse, "description": "Validation error"},
    },
)
async def create_deal(
    deal_in: DealCreate,
    user: CurrentUser = Depends(get_current_user),
    service: DealService = Depends(_get_deal_service),
) -> dict:
    return {"deal": await service.create_deal(user, deal_in)}


@router.patch(
    "/{deal_id}",
    response_model=DealEnvelope,
    summary="Update a deal",
    description=(
        "Admins may change any field.  Operators may change the descriptive "
        "fields of their own deals; ``status`` and ``operator_id`` are ignored."
    ),
    responses={
        403: {"model": ErrorResponse, "description": "Investors cannot edit deals"},
        404: {"model": ErrorResponse, "description": "Deal not found"},
    },
)
async def update_deal(
    deal_id: UUID,
    deal_in: DealUpdate,
    user: CurrentUser = Depends(get_current_user),
    service: DealService = Depends(_get_deal_service),
) -> dict:
    return {"deal": await service.update_deal(user, deal_id, deal_in)}


@router.delete(
    "/{deal_id}",
    response_model=OkResponse,
    summary="Delete a deal",
    responses={404: {"model": ErrorResponse, "description": "Deal not found"}},
)
async def delete_deal(
    deal_id: UUID,
    _admin: CurrentUser = Depends(require_roles(UserRole.ADMIN)),
    service: DealService = Depends(_get_deal_service),
) -> dict:
    await service.delete_deal(deal_id)
    return {"ok": True}
