"""
Admin review surfaces.  Every route requires the ``admin`` role.

- GET   /admin/investments          — All commitments with stats
- PATCH /admin/investments/{id}     — fund / complete / cancel / flag
- GET   /admin/escrow               — Escrow ledger
- GET   /admin/kyc                  — KYC submissions (+ stats when unfiltered)
- PATCH /admin/kyc/{id}             — Approve / reject a KYC submission
- GET   /admin/verifications        — Verification requests (pending by default)
- PATCH /admin/verifications/{id}   — Approve / reject a verification request
"""

from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from app.api.v1.endpoints.commitments import get_commitment_service
from app.api.v1.endpoints.kyc import get_kyc_service
from app.api.v1.endpoints.payments import get_escrow_service
from app.api.v1.endpoints.verify import get_verification_service
from app.core.auth import CurrentUser, require_roles
from app.models.profile import UserRole
from app.schemas.commitment import (
    AdminCommitmentAction,
    AdminCommitmentActionResponse,
    AdminCommitmentList,
    EscrowList,
)
from app.schemas.common import ErrorResponse
from app.schemas.review import (
    KycList,
    KycReviewResponse,
    ReviewAction,
    VerificationList,
    VerificationReviewResponse,
)
from app.services.commitment_service import CommitmentService
from app.services.escrow_service import EscrowService
from app.services.kyc_service import KycService
from app.services.verification_service import VerificationService

require_admin = require_roles(UserRole.ADMIN)

router = APIRouter(dependencies=[Depends(require_admin)])

_REVIEW_ERRORS = {
    400: {"model": ErrorResponse, "description": "action must be approve or reject"},
    404: {"model": ErrorResponse, "description": "Not found"},
}


# ── Commitments ──


@router.get("/investments", response_model=AdminCommitmentList, summary="List all commitments")
async def list_investments(
    service: CommitmentService = Depends(get_commitment_service),
) -> dict:
    return await service.admin_list_commitments()


@router.patch(
    "/investments/{commitment_id}",
    response_model=AdminCommitmentActionResponse,
    summary="Apply an admin action to a commitment",
    responses={
        400: {"model": ErrorResponse, "description": "Unknown action"},
        404: {"model": ErrorResponse, "description": "Commitment not found"},
        409: {"model": ErrorResponse, "description": "Commitment already terminal"},
    },
)
async def update_investment(
    commitment_id: UUID,
    body: AdminCommitmentAction,
    service: CommitmentService = Depends(get_commitment_service),
) -> dict:
    commitment = await service.apply_admin_action(commitment_id, body.action, body.notes)
    return {"ok": True, "commitment": commitment}


# ── Escrow ──


@router.get("/escrow", response_model=EscrowList, summary="List escrow transactions")
async def list_escrow(service: EscrowService = Depends(get_escrow_service)) -> dict:
    return {"transactions": await service.list_transactions()}


# ── KYC ──


@router.get("/kyc", response_model=KycList, summary="List KYC submissions")
async def list_kyc(
    status: Optional[str] = Query(None, description="pending, approved, rejected or expired"),
    service: KycService = Depends(get_kyc_service),
) -> dict:
    return await service.list_submissions(status)


@router.patch(
    "/kyc/{submission_id}",
    response_model=KycReviewResponse,
    summary="Review a KYC submission",
    responses=_REVIEW_ERRORS,
)
async def review_kyc(
    submission_id: UUID,
    body: ReviewAction,
    admin: CurrentUser = Depends(require_admin),
    service: KycService = Depends(get_kyc_service),
) -> dict:
    return {"ok": True, "submission": await service.review(admin, submission_id, body)}


# ── Verifications ──


@router.get(
    "/verifications",
    response_model=VerificationList,
    summary="List verification requests",
    responses={400: {"model": ErrorResponse, "description": "Invalid status"}},
)
async def list_verifications(
    status: Optional[str] = Query(None, description="Defaults to pending; ``all`` for every status"),
    service: VerificationService = Depends(get_verification_service),
) -> dict:
    return await service.list_requests(status)


@router.patch(
    "/verifications/{request_id}",
    response_model=VerificationReviewResponse,
    summary="Review a verification request",
    responses=_REVIEW_ERRORS,
)
async def review_verification(
    request_id: UUID,
    body: ReviewAction,
    admin: CurrentUser = Depends(require_admin),
    service: VerificationService = Depends(get_verification_service),
) -> dict:
    return {"ok": True, "request": await service.review(admin, request_id, body)}
