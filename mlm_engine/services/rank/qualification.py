"""
Rank qualification engine.

A participant's rank is the highest tier for which the participant has
enough points and, for higher ranks, whose downline-shape requirement
holds. Lines are enumerated exhaustively (depth-capped) below the
participant; a qualifying member may sit at any depth of a line.

Recomputation is a pure function of stored points, ranks and tree shape,
so re-running it is safe. It is not monotone on its own: external tools
may overwrite a rank, and keeping ranks from regressing is the caller's
responsibility.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config import rank_rules
from mlm_engine.config.constants import MAX_TREE_DEPTH
from mlm_engine.models.participant import Participant
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.rank.criteria import (
    LineCounter,
    LineCriterion,
    RankRequirement,
    RequirementOutcome,
)
from mlm_engine.services.rank.ladder import RankLadder, RankTier
from mlm_engine.services.referral.graph import ReferralGraph


@dataclass
class TierCheck:
    """Outcome of checking one tier."""

    title: str
    required_points: int
    qualifies: bool
    reason: str
    requirement: RequirementOutcome | None = None


@dataclass
class QualificationReport:
    """Full explanation of a participant's qualifying rank."""

    participant_id: int
    handle: str
    points: int
    current_rank: str | None
    rank: RankTier | None
    reason: str
    total_lines: int | None = None
    checks: list[TierCheck] = field(default_factory=list)

    @property
    def rank_title(self) -> str | None:
        return self.rank.title if self.rank else None

    @property
    def changed(self) -> bool:
        return self.rank_title != self.current_rank


@dataclass
class RankResyncSummary:
    """Result of a batch rank resynchronization."""

    total: int = 0
    upgrades: list[tuple[str, str | None, str | None]] = field(default_factory=list)
    downgrades: list[tuple[str, str | None, str | None]] = field(default_factory=list)
    unchanged: int = 0
    missing: int = 0


class RankQualificationEngine(BaseService):
    """Computes and assigns participant ranks."""

    def __init__(
        self,
        session: AsyncSession,
        graph: ReferralGraph | None = None,
        requirements: Mapping[str, RankRequirement] | None = None,
        max_depth: int = MAX_TREE_DEPTH,
    ) -> None:
        super().__init__(session)
        self.graph = graph or ReferralGraph(session, max_depth=max_depth)
        self.requirements = (
            rank_rules.HIGHER_RANK_REQUIREMENTS
            if requirements is None
            else requirements
        )
        self.participant_repo = ParticipantRepository(session)

    def is_higher_rank(self, title: str) -> bool:
        """Higher ranks carry a downline requirement besides points."""
        return title in self.requirements

    async def evaluate(
        self, participant: Participant, ladder: RankLadder
    ) -> QualificationReport:
        """
        Determine the qualifying rank without writing it.

        Tiers are checked from the highest down; the first one that holds
        wins. The downline is streamed at most once, and only if some
        higher rank's points threshold is met.

        Args:
            participant: Participant to evaluate
            ladder: Rank table snapshot

        Returns:
            QualificationReport (rank is None only for an empty ladder)
        """
        current = ladder.by_id(participant.rank_id)
        report = QualificationReport(
            participant_id=participant.id,
            handle=participant.handle,
            points=participant.points,
            current_rank=current.title if current else None,
            rank=None,
            reason="No ranks defined",
        )
        if not ladder:
            return report

        counter: LineCounter | None = None

        for tier in ladder.descending():
            if participant.points < tier.required_points:
                report.checks.append(
                    TierCheck(
                        title=tier.title,
                        required_points=tier.required_points,
                        qualifies=False,
                        reason=(
                            f"Insufficient points: "
                            f"{participant.points}/{tier.required_points}"
                        ),
                    )
                )
                continue

            requirement = self.requirements.get(tier.title)
            if requirement is None:
                reason = (
                    f"Meets {tier.title} requirements "
                    f"({participant.points}/{tier.required_points} points)"
                )
                report.checks.append(
                    TierCheck(tier.title, tier.required_points, True, reason)
                )
                report.rank = tier
                report.reason = reason
                return report

            if counter is None:
                counter = await LineCounter.consume(
                    self.graph.descendant_lines(participant.handle),
                    ladder,
                    self._reachable_criteria(participant, ladder),
                )
                report.total_lines = counter.total_lines

            outcome = requirement.evaluate(counter)
            report.checks.append(
                TierCheck(
                    title=tier.title,
                    required_points=tier.required_points,
                    qualifies=outcome.satisfied,
                    reason=outcome.describe(),
                    requirement=outcome,
                )
            )
            if outcome.satisfied:
                report.rank = tier
                report.reason = outcome.describe()
                return report

        report.rank = ladder.base
        report.reason = "Default rank - no other qualifications met"
        return report

    def _reachable_criteria(
        self, participant: Participant, ladder: RankLadder
    ) -> list[LineCriterion]:
        """Criteria of every requirement whose points threshold is met."""
        criteria: dict[LineCriterion, None] = {}
        for tier in ladder.descending():
            requirement = self.requirements.get(tier.title)
            if requirement is None or participant.points < tier.required_points:
                continue
            criteria.update(dict.fromkeys(requirement.criteria))
        return list(criteria)

    async def qualifying_rank(
        self, participant: Participant, ladder: RankLadder
    ) -> RankTier | None:
        """Highest qualifying tier, or the base tier if none higher holds."""
        report = await self.evaluate(participant, ladder)
        return report.rank

    async def recompute_rank(
        self, participant_id: int, ladder: RankLadder | None = None
    ) -> str | None:
        """
        Recompute and store a participant's rank.

        The rank is written only when it changed (last writer wins).

        Args:
            participant_id: Participant ID
            ladder: Rank table snapshot (loaded if omitted)

        Returns:
            New rank title, or None if the participant does not exist or
            no ranks are defined
        """
        participant = await self.participant_repo.get_by_id(
            participant_id, refresh=True
        )
        if participant is None:
            self.logger.warning(
                "Participant not found for rank update",
                extra={"participant_id": participant_id},
            )
            return None

        if ladder is None:
            ladder = await RankLadder.load(self.session)

        report = await self.evaluate(participant, ladder)
        if report.rank is None:
            self.logger.warning(
                "No ranks defined, rank not assigned",
                extra={"participant_id": participant_id},
            )
            return None

        if participant.rank_id != report.rank.id:
            await self.participant_repo.set_rank(participant.id, report.rank.id)
            self.logger.info(
                f"Rank updated: {report.current_rank or 'No rank'} -> {report.rank.title}",
                extra={
                    "participant_id": participant.id,
                    "handle": participant.handle,
                    "points": participant.points,
                    "reason": report.reason,
                },
            )
        else:
            self.logger.debug(
                "Rank unchanged",
                extra={
                    "participant_id": participant.id,
                    "rank": report.rank.title,
                },
            )

        return report.rank.title

    async def recompute_many(
        self, participant_ids: Iterable[int], ladder: RankLadder | None = None
    ) -> dict[int, str | None]:
        """
        Recompute ranks in the given order.

        Pass participants deepest first so downline ranks are settled
        before the upline requirements that count them are checked.

        Returns:
            Dict mapping participant ID to new rank title
        """
        if ladder is None:
            ladder = await RankLadder.load(self.session)

        results: dict[int, str | None] = {}
        for participant_id in participant_ids:
            if participant_id in results:
                continue
            results[participant_id] = await self.recompute_rank(
                participant_id, ladder
            )
        return results

    async def preview_rank(
        self, handle: str, ladder: RankLadder | None = None
    ) -> QualificationReport | None:
        """
        Explain which rank a participant qualifies for, without writing.

        Uses the same evaluation as :meth:`recompute_rank`.

        Returns:
            Report, or None if the participant does not exist
        """
        participant = await self.participant_repo.get_by_handle(handle)
        if participant is None:
            return None
        if ladder is None:
            ladder = await RankLadder.load(self.session)
        return await self.evaluate(participant, ladder)

    async def recompute_all(
        self, ladder: RankLadder | None = None
    ) -> RankResyncSummary:
        """
        Resynchronize every participant's rank, deepest first.

        Used by batch maintenance after bulk data changes.

        Returns:
            RankResyncSummary with upgrades and downgrades
        """
        if ladder is None:
            ladder = await RankLadder.load(self.session)

        links = await self.participant_repo.find_parent_links()
        ordered = self._deepest_first(links)
        summary = RankResyncSummary(total=len(ordered))

        for participant_id in ordered:
            participant = await self.participant_repo.get_by_id(participant_id)
            if participant is None:
                summary.missing += 1
                continue
            old = ladder.by_id(participant.rank_id)
            new_title = await self.recompute_rank(participant_id, ladder)
            old_title = old.title if old else None

            if new_title == old_title:
                summary.unchanged += 1
                continue

            change = (participant.handle, old_title, new_title)
            if self._position(ladder, new_title) > self._position(ladder, old_title):
                summary.upgrades.append(change)
            else:
                summary.downgrades.append(change)

        self.logger.info(
            "Rank resync complete",
            extra={
                "total": summary.total,
                "upgrades": len(summary.upgrades),
                "downgrades": len(summary.downgrades),
                "unchanged": summary.unchanged,
            },
        )
        return summary

    @staticmethod
    def _position(ladder: RankLadder, title: str | None) -> int:
        index = ladder.index_of(title) if title else None
        return -1 if index is None else index

    def _deepest_first(
        self, links: Mapping[int, tuple[str, str | None]]
    ) -> list[int]:
        """Order participant IDs by depth below their root, deepest first."""
        by_handle = {handle: parent for handle, parent in links.values()}
        depths: dict[int, int] = {}

        for participant_id, (handle, parent) in links.items():
            depth = 0
            seen = {handle}
            while parent and parent in by_handle and parent not in seen:
                if depth >= self.graph.max_depth:
                    break
                seen.add(parent)
                depth += 1
                parent = by_handle[parent]
            depths[participant_id] = depth

        return sorted(depths, key=lambda pid: (-depths[pid], pid))
