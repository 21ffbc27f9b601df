"""
Referral graph traversal.

Parent links are plain handles, so the stored graph may contain cycles
or dangling references. Every walk is guarded by a visited set and a
depth cap and never recurses.
"""

from collections.abc import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.constants import MAX_TREE_DEPTH
from mlm_engine.models.participant import Participant
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.services.base_service import BaseService


Line = tuple[Participant, ...]


class ReferralGraph(BaseService):
    """
    Read-only view of the referral forest.

    Direct-children lookups are memoized for the lifetime of the
    instance. Build one graph per qualification batch so downline walks
    that overlap (an upline's subtree contains its downline's subtree)
    hit the database once per node.
    """

    def __init__(
        self, session: AsyncSession, max_depth: int = MAX_TREE_DEPTH
    ) -> None:
        super().__init__(session)
        self.max_depth = max_depth
        self.participant_repo = ParticipantRepository(session)
        self._children: dict[str, list[Participant]] = {}

    async def ancestor_chain(
        self, handle: str, include_self: bool = True
    ) -> AsyncIterator[Participant]:
        """
        Walk from ``handle`` toward the forest root.

        Terminates on a missing parent, a cycle, or after ``max_depth``
        upward hops.

        Args:
            handle: Starting participant handle
            include_self: Yield the starting participant first

        Yields:
            Participants, nearest first
        """
        current = await self.participant_repo.get_by_handle(handle)
        if current is None:
            self.logger.warning(
                "Ancestor walk started from unknown participant",
                extra={"handle": handle},
            )
            return

        visited = {current.id}
        if include_self:
            yield current

        hops = 0
        while current.parent_handle:
            if hops >= self.max_depth:
                self.logger.warning(
                    "Ancestor walk stopped at depth cap",
                    extra={"handle": handle, "max_depth": self.max_depth},
                )
                return

            parent = await self.participant_repo.get_by_handle(
                current.parent_handle
            )
            if parent is None:
                self.logger.warning(
                    "Referrer record missing, ancestor walk stopped",
                    extra={
                        "handle": current.handle,
                        "parent_handle": current.parent_handle,
                    },
                )
                return
            if parent.id in visited:
                self.logger.warning(
                    "Referral cycle detected, ancestor walk stopped",
                    extra={"handle": handle, "cycle_at": parent.handle},
                )
                return

            visited.add(parent.id)
            hops += 1
            yield parent
            current = parent

    async def ancestors(
        self, handle: str, include_self: bool = True
    ) -> list[Participant]:
        """Materialized :meth:`ancestor_chain`."""
        return [p async for p in self.ancestor_chain(handle, include_self)]

    async def direct_children(self, handle: str) -> list[Participant]:
        """
        Participants whose parent is ``handle`` (memoized).

        Args:
            handle: Referrer handle

        Returns:
            Direct children ordered by ID
        """
        if handle not in self._children:
            self._children[handle] = (
                await self.participant_repo.find_direct_children(handle)
            )
        return self._children[handle]

    async def descendant_lines(self, handle: str) -> AsyncIterator[Line]:
        """
        Enumerate root-to-leaf lines below ``handle``.

        Each line starts at one of ``handle``'s children and ends at a
        participant without (unvisited) children, or at the depth cap,
        where the line is truncated rather than dropped. Depth-first with
        an explicit stack; children are visited in ID order.

        Args:
            handle: Participant whose downline is walked

        Yields:
            Lines as tuples of participants, top-down
        """
        visited = {handle}
        stack: list[Line] = []

        for child in reversed(await self.direct_children(handle)):
            if child.handle not in visited:
                visited.add(child.handle)
                stack.append((child,))

        truncated = 0
        while stack:
            line = stack.pop()
            node = line[-1]

            if len(line) >= self.max_depth:
                truncated += 1
                yield line
                continue

            children = [
                child
                for child in await self.direct_children(node.handle)
                if child.handle not in visited
            ]
            if not children:
                yield line
                continue

            for child in reversed(children):
                visited.add(child.handle)
                stack.append(line + (child,))

        if truncated:
            self.logger.debug(
                "Downline lines truncated at depth cap",
                extra={
                    "handle": handle,
                    "truncated": truncated,
                    "max_depth": self.max_depth,
                },
            )

    async def all_descendant_lines(self, handle: str) -> list[Line]:
        """Materialized :meth:`descendant_lines`."""
        return [line async for line in self.descendant_lines(handle)]
