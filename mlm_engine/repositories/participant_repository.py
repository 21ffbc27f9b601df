"""
Participant repository.

Data access layer for Participant model.
"""

from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.participant import Participant
from mlm_engine.repositories.base import BaseRepository


class ParticipantRepository(BaseRepository[Participant]):
    """Participant repository with referral-specific queries."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize participant repository."""
        super().__init__(Participant, session)

    async def get_by_handle(self, handle: str) -> Participant | None:
        """
        Get participant by handle.

        Args:
            handle: Unique participant handle

        Returns:
            Participant or None if not found
        """
        return await self.get_by(handle=handle)

    async def find_direct_children(self, handle: str) -> list[Participant]:
        """
        Get participants directly referred by ``handle``.

        Args:
            handle: Referrer handle

        Returns:
            Direct children ordered by ID
        """
        return await self.find_by(parent_handle=handle)

    async def find_parent_links(self) -> dict[int, tuple[str, str | None]]:
        """
        Get id -> (handle, parent_handle) for every participant.

        Only the two columns are loaded, for batch ordering of the whole
        forest without materializing full rows.

        Returns:
            Dict mapping participant ID to (handle, parent_handle)
        """
        stmt = select(
            Participant.id, Participant.handle, Participant.parent_handle
        ).order_by(Participant.id)
        result = await self.session.execute(stmt)
        return {row.id: (row.handle, row.parent_handle) for row in result.all()}

    async def add_points(self, participant_id: int, points: int) -> bool:
        """
        Atomically add reward points.

        Args:
            participant_id: Participant ID
            points: Points to add

        Returns:
            True if the participant exists
        """
        return await self.increment(participant_id, points=points)

    async def credit_earnings(
        self, participant_id: int, amount: Decimal
    ) -> bool:
        """
        Atomically credit a commission to balance and total earnings.

        Args:
            participant_id: Participant ID
            amount: Commission amount

        Returns:
            True if the participant exists
        """
        return await self.increment(
            participant_id, balance=amount, total_earnings=amount
        )

    async def debit_balance(
        self, participant_id: int, amount: Decimal
    ) -> bool:
        """
        Atomically debit the balance if it covers ``amount``.

        The sufficiency check and the subtraction happen in one
        conditional UPDATE, so two concurrent debits can never
        overdraw the balance.

        Args:
            participant_id: Participant ID
            amount: Amount to debit

        Returns:
            True if debited, False if not found or insufficient
        """
        stmt = (
            update(Participant)
            .where(
                Participant.id == participant_id,
                Participant.balance >= amount,
            )
            .values(balance=Participant.balance - amount)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def set_rank(
        self, participant_id: int, rank_id: int | None
    ) -> Participant | None:
        """
        Assign a rank (last writer wins).

        Args:
            participant_id: Participant ID
            rank_id: Rank ID or None

        Returns:
            Updated participant or None if not found
        """
        return await self.update(participant_id, rank_id=rank_id)
