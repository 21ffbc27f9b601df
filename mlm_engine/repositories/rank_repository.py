"""
Rank repository.

Data access layer for Rank model.
"""

from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.rank import Rank
from mlm_engine.repositories.base import BaseRepository


class RankRepository(BaseRepository[Rank]):
    """Rank repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize rank repository."""
        super().__init__(Rank, session)

    async def find_ordered_by_threshold(self) -> list[Rank]:
        """
        Get all ranks ordered by required points (ascending).

        Ties are broken by ID so the order is deterministic.

        Returns:
            Ranks from lowest to highest
        """
        stmt = select(Rank).order_by(Rank.required_points, Rank.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def seed(self, definitions: Iterable) -> list[Rank]:
        """
        Create missing ranks from definitions.

        Existing ranks (matched by title) are left untouched.

        Args:
            definitions: Items with title, required_points and details

        Returns:
            Ranks that were created
        """
        created = []
        for definition in definitions:
            if await self.exists(title=definition.title):
                continue
            created.append(
                await self.create(
                    title=definition.title,
                    required_points=definition.required_points,
                    details=definition.details,
                )
            )
        return created
