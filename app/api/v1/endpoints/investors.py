"""
Investor profile endpoint.

- GET /investors/{id}  — Tiered-disclosure investor profile

Anonymous callers are allowed and always get the ``limited`` view.
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_optional_user
from app.db.session import get_db
from app.models.commitment import InvestmentCommitment
from app.models.deal import Deal
from app.models.interest import DealInterest
from app.models.profile import InvestorProfile, Profile
from app.repositories.commitment_repo import CommitmentRepository
from app.repositories.deal_repo import DealRepository
from app.repositories.interest_repo import InterestRepository
from app.repositories.profile_repo import InvestorProfileRepository, ProfileRepository
from app.schemas.common import ErrorResponse
from app.schemas.investor import InvestorProfileResponse
from app.services.disclosure import InvestorProfileService

router = APIRouter()


def _get_investor_profile_service(
    db: AsyncSession = Depends(get_db),
) -> InvestorProfileService:
    return InvestorProfileService(
        ProfileRepository(Profile, db),
        InvestorProfileRepository(InvestorProfile, db),
        DealRepository(Deal, db),
        InterestRepository(DealInterest, db),
        CommitmentRepository(InvestmentCommitment, db),
    )


@router.get(
    "/{investor_id}",
    response_model=InvestorProfileResponse,
    response_model_exclude_unset=True,
    summary="Get an investor profile",
    description=(
        "``self`` and ``full`` views include the investor's name, bio and "
        "commitment statistics.  The ``limited`` view is pseudonymous and "
        "omits those keys entirely.  Operators get ``full`` only for investors "
        "whose introduction to one of their deals they accepted."
    ),
    responses={404: {"model": ErrorResponse, "description": "Investor not found"}},
)
async def get_investor(
    investor_id: UUID,
    viewer: Optional[CurrentUser] = Depends(get_optional_user),
    service: InvestorProfileService = Depends(_get_investor_profile_service),
) -> dict:
    return await service.get_investor(viewer, investor_id)
