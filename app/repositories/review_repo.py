"""
Review repositories — ``kyc_submissions`` and ``verification_requests``.

Both tables share the pending → approved/rejected review lifecycle, so they
share a small base with the "latest for user" and status-filter queries.
"""

from typing import List, Optional, TypeVar
from uuid import UUID

from app.models.kyc import KycSubmission, ReviewStatus
from app.models.verification import VerificationRequest
from app.repositories.base import BaseRepository

ReviewModel = TypeVar("ReviewModel", KycSubmission, VerificationRequest)


class _ReviewRepository(BaseRepository[ReviewModel]):
    async def get_latest_for_user(self, user_id: UUID) -> Optional[ReviewModel]:
        return await self.first_where(
            self.model.user_id == user_id,
            order_by=self.model.created_at.desc(),
        )

    async def list_by_status(self, status: Optional[ReviewStatus] = None) -> List[ReviewModel]:
        criteria = [self.model.status == status] if status is not None else []
        return await self.list_where(*criteria, order_by=self.model.created_at.desc())


class KycRepository(_ReviewRepository[KycSubmission]):
    """Concrete repository for :class:`KycSubmission` entities."""


class VerificationRepository(_ReviewRepository[VerificationRequest]):
    """Concrete repository for :class:`VerificationRequest` entities."""
