"""
Earnings entry repository.

Data access layer for EarningsEntry model. Insert and read only.
"""

from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.earnings_entry import EarningsEntry
from mlm_engine.repositories.base import BaseRepository


class EarningsEntryRepository(BaseRepository[EarningsEntry]):
    """Earnings entry repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize earnings entry repository."""
        super().__init__(EarningsEntry, session)

    async def get_by_request(self, request_id: int) -> list[EarningsEntry]:
        """Get all entries created for an approval request."""
        return await self.find_by(approval_request_id=request_id)

    async def sum_by_request(self, request_id: int) -> Decimal:
        """
        Sum of all payouts for an approval request.

        Uses SQL aggregation.
        """
        stmt = select(
            func.coalesce(func.sum(EarningsEntry.amount), 0)
        ).where(EarningsEntry.approval_request_id == request_id)
        result = await self.session.execute(stmt)
        return Decimal(str(result.scalar() or 0))

    async def sum_by_kind(self, participant_id: int) -> dict[str, Decimal]:
        """
        Earnings totals grouped by kind in a single query.

        Args:
            participant_id: Participant ID

        Returns:
            Dict mapping kind to total amount
        """
        stmt = (
            select(
                EarningsEntry.kind,
                func.sum(EarningsEntry.amount).label("total"),
            )
            .where(EarningsEntry.participant_id == participant_id)
            .group_by(EarningsEntry.kind)
        )
        result = await self.session.execute(stmt)
        return {
            row.kind: Decimal(str(row.total or 0)) for row in result.all()
        }
