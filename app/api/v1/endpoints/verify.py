"""
Account verification endpoint.

- POST /verify  — Submit an investor accreditation or operator business
  verification request
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.auth import CurrentUser, get_current_user
from app.db.session import get_db
from app.models.profile import Profile
from app.models.verification import VerificationRequest
from app.repositories.profile_repo import ProfileRepository
from app.repositories.review_repo import VerificationRepository
from app.schemas.common import ErrorResponse
from app.schemas.review import SubmissionAccepted, VerificationSubmit
from app.services.notifier import Notifier, get_notifier
from app.services.verification_service import VerificationService

router = APIRouter()


def get_verification_service(
    db: AsyncSession = Depends(get_db),
    notifier: Notifier = Depends(get_notifier),
) -> VerificationService:
    """Shared with the admin router."""
    return VerificationService(
        VerificationRepository(VerificationRequest, db),
        ProfileRepository(Profile, db),
        notifier,
    )


@router.post(
    "",
    response_model=SubmissionAccepted,
    status_code=201,
    summary="Request account verification",
    responses={400: {"model": ErrorResponse, "description": "Invalid or duplicate request"}},
)
async def submit_verification(
    request_in: VerificationSubmit,
    user: CurrentUser = Depends(get_current_user),
    service: VerificationService = Depends(get_verification_service),
) -> dict:
    request = await service.submit(user, request_in)
    return {"ok": True, "id": request.id}
