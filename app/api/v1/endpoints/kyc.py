"""
KYC endpoints for the signed-in user.

- GET  /kyc  — Current KYC status and latest submission
- POST /kyc  — Submit KYC for review
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.db.session import get_db
from app.models.kyc import KycSubmission
from app.models.profile import Profile
from app.repositories.profile_repo import ProfileRepository
from app.repositories.review_repo import KycRepository
from app.schemas.common import ErrorResponse
from app.schemas.review import KycStatusResponse, KycSubmit, SubmissionAccepted
from app.services.kyc_service import KycService
from app.services.notifier import Notifier, get_notifier

router = APIRouter()


def get_kyc_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> KycService:
    """Shared with the admin router."""
    return KycService(KycRepository(KycSubmission, db), ProfileRepository(Profile, db), notifier)


@router.get("", response_model=KycStatusResponse, summary="Get own KYC status")
async def get_kyc(
    user: CurrentUser = Depends(get_current_user),
    service: KycService = Depends(get_kyc_service),
) -> dict:
    return await service.get_own(user)


@router.post(
    "",
    response_model=SubmissionAccepted,
    status_code=201,
    summary="Submit KYC",
    description=(
        "Document fields reference files already uploaded to storage.  The tax "
        "id is hashed before it is stored."
    ),
    responses={400: {"model": ErrorResponse, "description": "Invalid or duplicate submission"}},
)
async def submit_kyc(
    kyc_in: KycSubmit,
    user: CurrentUser = Depends(get_current_user),
    service: KycService = Depends(get_kyc_service),
) -> dict:
    submission = await service.submit(user, kyc_in)
    return {"ok": True, "id": submission.id}
