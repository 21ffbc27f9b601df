"""
Rank ladder snapshot.

The rank table is loaded once per operation and passed explicitly to
every component that needs it; nothing caches it at module level.
"""

from collections.abc import Iterable, Iterator, Sequence
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.rank import Rank
from mlm_engine.repositories.rank_repository import RankRepository


@dataclass(frozen=True)
class RankTier:
    """Immutable copy of a rank row."""

    id: int
    title: str
    required_points: int

    @classmethod
    def from_model(cls, rank: Rank) -> "RankTier":
        return cls(id=rank.id, title=rank.title, required_points=rank.required_points)


class RankLadder:
    """Ranks ordered from lowest to highest required points."""

    def __init__(self, tiers: Iterable[RankTier]) -> None:
        self.tiers: tuple[RankTier, ...] = tuple(
            sorted(tiers, key=lambda t: (t.required_points, t.id))
        )
        self._by_id = {tier.id: tier for tier in self.tiers}
        self._index = {tier.title: i for i, tier in enumerate(self.tiers)}

        thresholds = [tier.required_points for tier in self.tiers]
        if len(set(thresholds)) != len(thresholds):
            logger.warning(
                "Rank ladder has duplicate point thresholds, ordering by ID",
                extra={"thresholds": thresholds},
            )

    @classmethod
    async def load(cls, session: AsyncSession) -> "RankLadder":
        """Snapshot the rank table."""
        ranks = await RankRepository(session).find_ordered_by_threshold()
        return cls(RankTier.from_model(rank) for rank in ranks)

    def __len__(self) -> int:
        return len(self.tiers)

    def __iter__(self) -> Iterator[RankTier]:
        return iter(self.tiers)

    def __bool__(self) -> bool:
        return bool(self.tiers)

    @property
    def base(self) -> RankTier | None:
        """Lowest tier, assigned when nothing higher qualifies."""
        return self.tiers[0] if self.tiers else None

    def by_id(self, rank_id: int | None) -> RankTier | None:
        if rank_id is None:
            return None
        return self._by_id.get(rank_id)

    def by_title(self, title: str) -> RankTier | None:
        index = self._index.get(title)
        return None if index is None else self.tiers[index]

    def index_of(self, title: str) -> int | None:
        return self._index.get(title)

    def at_least(self, title: str, minimum: str) -> bool:
        """True if ``title`` is ``minimum`` or above it."""
        index = self._index.get(title)
        floor = self._index.get(minimum)
        if index is None or floor is None:
            return False
        return index >= floor

    def descending(self) -> Sequence[RankTier]:
        return self.tiers[::-1]

    def eligible_for_indirect(self) -> tuple[RankTier, ...]:
        """Tiers that earn indirect commission: all but the base tier."""
        return self.tiers[1:]
