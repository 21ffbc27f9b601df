"""
Reward points propagation.

Credits package reward points to the buyer and every ancestor.
"""

from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.constants import MAX_TREE_DEPTH
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.referral.graph import ReferralGraph


@dataclass
class PropagationResult:
    """Result of a points propagation."""

    points: int
    participant_ids: list[int] = field(default_factory=list)
    handles: list[str] = field(default_factory=list)

    @property
    def credited_count(self) -> int:
        return len(self.participant_ids)


class PointsPropagator(BaseService):
    """Adds reward points along an ancestor chain."""

    def __init__(
        self,
        session: AsyncSession,
        graph: ReferralGraph | None = None,
        max_depth: int = MAX_TREE_DEPTH,
    ) -> None:
        super().__init__(session)
        self.graph = graph or ReferralGraph(session, max_depth=max_depth)
        self.participant_repo = ParticipantRepository(session)

    async def add_points(self, buyer_handle: str, amount: int) -> PropagationResult:
        """
        Credit ``amount`` points to the buyer and each ancestor once.

        Every credit is an atomic SQL increment. The walk stops at a
        missing parent, a cycle, or the depth cap.

        Args:
            buyer_handle: Handle of the purchasing participant
            amount: Points to credit per participant

        Returns:
            PropagationResult with credited participants, buyer first

        Raises:
            ValueError: If amount is negative
        """
        if amount < 0:
            raise ValueError(f"Points amount must be non-negative, got {amount}")

        result = PropagationResult(points=amount)
        if amount == 0:
            self.logger.debug(
                "Package carries no reward points, skipping propagation",
                extra={"buyer": buyer_handle},
            )
            return result

        credited: set[int] = set()
        async for participant in self.graph.ancestor_chain(buyer_handle):
            if participant.id in credited:
                continue
            await self.participant_repo.add_points(participant.id, amount)
            credited.add(participant.id)
            result.participant_ids.append(participant.id)
            result.handles.append(participant.handle)

        self.logger.info(
            "Points propagated",
            extra={
                "buyer": buyer_handle,
                "points": amount,
                "credited": result.credited_count,
            },
        )
        return result
