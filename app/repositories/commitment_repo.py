"""
Commitment repository — data-access layer for ``investment_commitments``.

Besides the generic CRUD it owns the payment **claim**: a single conditional
UPDATE that reserves a commitment for a new payment intent.
"""

from decimal import Decimal
from typing import List, Optional, Sequence, Tuple
from uuid import UUID

from sqlalchemy import func
from sqlalchemy.future import select

from app.models.commitment import (
    ACTIVE_COMMITMENT_STATUSES,
    CLAIMABLE_FUNDING_STATUSES,
    OPEN_COMMITMENT_STATUSES,
    FundingStatus,
    InvestmentCommitment,
)
from app.repositories.base import BaseRepository


class CommitmentRepository(BaseRepository[InvestmentCommitment]):
    """Concrete repository for :class:`InvestmentCommitment` entities."""

    async def claim_for_payment(self, commitment_id: UUID, seen_version: int) -> bool:
        """
        Compare-and-swap on ``funding_version``.

        Sets ``funding_status = pending_payment`` and bumps the version only
        if nobody else claimed the commitment since the caller read it and
        it is not already pending or funded.  Returns ``True`` when this
        caller won the claim.
        """
        updated = await self.update_where(
            {
                "funding_status": FundingStatus.PENDING_PAYMENT,
                "funding_version": seen_version + 1,
            },
            self.model.id == commitment_id,
            self.model.funding_version == seen_version,
            self.model.funding_status.in_(CLAIMABLE_FUNDING_STATUSES),
        )
        return updated == 1

    async def find_open(
        self, deal_id: UUID, investor_id: UUID
    ) -> Optional[InvestmentCommitment]:
        """An existing draft/committed/funded commitment for this pair, if any."""
        return await self.first_where(
            self.model.deal_id == deal_id,
            self.model.investor_id == investor_id,
            self.model.status.in_(OPEN_COMMITMENT_STATUSES),
        )

    async def count_active_for_deal(self, deal_id: UUID) -> int:
        return await self.count(
            self.model.deal_id == deal_id,
            self.model.status.in_(ACTIVE_COMMITMENT_STATUSES),
        )

    async def get_investor_stats(self, investor_id: UUID) -> Tuple[int, Decimal]:
        """Return ``(deals_committed, total_invested)`` over active commitments."""

        async def _stats() -> Tuple[int, Decimal]:
            stmt = select(
                func.count(self.model.id), func.coalesce(func.sum(self.model.amount), 0)
            ).where(
                self.model.investor_id == investor_id,
                self.model.status.in_(ACTIVE_COMMITMENT_STATUSES),
            )
            result = await self.db.execute(stmt)
            count, total = result.one()
            return int(count), Decimal(str(total))

        return await self._execute_with_circuit_breaker(_stats)

    async def list_for_investor(self, investor_id: UUID) -> List[InvestmentCommitment]:
        return await self.list_where(
            self.model.investor_id == investor_id,
            order_by=self.model.created_at.desc(),
        )

    async def list_for_deals(self, deal_ids: Sequence[UUID]) -> List[InvestmentCommitment]:
        if not deal_ids:
            return []
        return await self.list_where(self.model.deal_id.in_(list(deal_ids)))

    async def list_newest_first(self) -> List[InvestmentCommitment]:
        return await self.list_where(order_by=self.model.created_at.desc())

    async def release_claim(
        self, commitment_id: UUID, claimed_version: int, previous: FundingStatus
    ) -> bool:
        """Undo a claim whose provider call failed, unless it was claimed again since."""
        updated = await self.update_where(
            {"funding_status": previous},
            self.model.id == commitment_id,
            self.model.funding_version == claimed_version,
            self.model.funding_status == FundingStatus.PENDING_PAYMENT,
        )
        return updated == 1
