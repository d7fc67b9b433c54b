"""
Profile repositories — ``profiles`` and ``investor_profiles``.
"""

from typing import List, Optional
from uuid import UUID

from app.models.profile import InvestorProfile, Profile, UserRole
from app.repositories.base import BaseRepository


class ProfileRepository(BaseRepository[Profile]):
    """Concrete repository for :class:`Profile` entities."""

    async def get_admin_ids(self) -> List[UUID]:
        """Return the ids of every admin profile (the admin broadcast list)."""
        admins = await self.list_where(self.model.role == UserRole.ADMIN)
        return [admin.id for admin in admins]

    async def set_fields(self, user_id: UUID, **values) -> bool:
        """
        Write denormalised mirror columns (``kyc_status``,
        ``verification_status``) for one user.  Returns ``False`` when the
        profile row does not exist.
        """
        updated = await self.update_where(values, self.model.id == user_id)
        return updated > 0


class InvestorProfileRepository(BaseRepository[InvestorProfile]):
    """Concrete repository for :class:`InvestorProfile` entities."""

    async def get_latest_for_user(self, user_id: UUID) -> Optional[InvestorProfile]:
        """The newest investor profile row for ``user_id`` is authoritative."""
        return await self.first_where(
            self.model.user_id == user_id,
            order_by=self.model.created_at.desc(),
        )

    async def list_latest_per_user(self) -> List[InvestorProfile]:
        """
        Return one investor profile per user (the newest), used for deal-alert
        fan-out.
        """
        rows = await self.list_where(order_by=self.model.created_at.desc())
        latest: dict = {}
        for row in rows:
            latest.setdefault(row.user_id, row)
        return list(latest.values())
