"""
Downline-shape criteria for higher ranks.

A requirement reads "at least N lines each containing, at any depth, a
member satisfying C". A line is one root-to-leaf path of the
participant's descendant subtree. A rank may accept several alternative
options (OR); each option is a conjunction (AND) of line requirements.
"""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol


if TYPE_CHECKING:
    from mlm_engine.services.rank.ladder import RankLadder


class LineMember(Protocol):
    """What a criterion needs to know about a downline member."""

    points: int
    rank_id: int | None


Line = Sequence[LineMember]


class LineCriterion(Protocol):
    """Predicate over a single downline member."""

    @property
    def label(self) -> str: ...

    def matches(self, member: LineMember, ladder: RankLadder) -> bool: ...


@dataclass(frozen=True)
class PointsAtLeast:
    """Member has at least ``threshold`` points."""

    threshold: int

    @property
    def label(self) -> str:
        return f"{self.threshold}+ points"

    def matches(self, member: LineMember, ladder: RankLadder) -> bool:
        return member.points >= self.threshold


@dataclass(frozen=True)
class RankIs:
    """Member holds exactly the rank ``title``."""

    title: str

    @property
    def label(self) -> str:
        return self.title

    def matches(self, member: LineMember, ladder: RankLadder) -> bool:
        tier = ladder.by_id(member.rank_id)
        return tier is not None and tier.title == self.title


@dataclass(frozen=True)
class RankAtLeast:
    """Member holds ``title`` or any rank above it in tier order."""

    title: str

    @property
    def label(self) -> str:
        return f"{self.title}+"

    def matches(self, member: LineMember, ladder: RankLadder) -> bool:
        tier = ladder.by_id(member.rank_id)
        return tier is not None and ladder.at_least(tier.title, self.title)


class LineCounter:
    """
    Counts qualifying lines for a fixed set of criteria in a single pass.

    Lines are fed in as they are enumerated and dropped right after, so
    only the counts are kept. Every tier and option evaluated for the
    same participant reads from the same counter.
    """

    def __init__(
        self, ladder: RankLadder, criteria: Iterable[LineCriterion]
    ) -> None:
        self.ladder = ladder
        self.total_lines = 0
        self._counts: dict[LineCriterion, int] = dict.fromkeys(criteria, 0)

    @classmethod
    def from_lines(
        cls,
        lines: Iterable[Line],
        ladder: RankLadder,
        criteria: Iterable[LineCriterion],
    ) -> LineCounter:
        counter = cls(ladder, criteria)
        for line in lines:
            counter.add(line)
        return counter

    @classmethod
    async def consume(
        cls,
        lines: AsyncIterable[Line],
        ladder: RankLadder,
        criteria: Iterable[LineCriterion],
    ) -> LineCounter:
        """Count an async line stream (one pass, nothing retained)."""
        counter = cls(ladder, criteria)
        async for line in lines:
            counter.add(line)
        return counter

    def add(self, line: Line) -> None:
        self.total_lines += 1
        for criterion in self._counts:
            if any(criterion.matches(member, self.ladder) for member in line):
                self._counts[criterion] += 1

    def count(self, criterion: LineCriterion) -> int:
        """
        Number of lines with at least one member matching ``criterion``.

        Raises:
            KeyError: ``criterion`` was not tracked by this counter
        """
        if criterion not in self._counts:
            raise KeyError(f"Criterion not counted: {criterion.label}")
        return self._counts[criterion]


@dataclass(frozen=True)
class LineRequirement:
    """At least ``lines`` lines must contain a member matching ``criterion``."""

    lines: int
    criterion: LineCriterion

    @property
    def label(self) -> str:
        return f"{self.lines} lines with {self.criterion.label}"


@dataclass(frozen=True)
class RequirementOption:
    """Conjunction of line requirements."""

    requirements: tuple[LineRequirement, ...]

    @property
    def label(self) -> str:
        return " AND ".join(r.label for r in self.requirements)


@dataclass
class OptionOutcome:
    """Evaluation of one option."""

    label: str
    satisfied: bool
    counts: dict[str, tuple[int, int]] = field(default_factory=dict)

    def describe(self) -> str:
        parts = [
            f"{found}/{needed} lines with {criterion}"
            for criterion, (found, needed) in self.counts.items()
        ]
        return " AND ".join(parts)


@dataclass
class RequirementOutcome:
    """Evaluation of a full rank requirement."""

    title: str
    satisfied: bool
    options: list[OptionOutcome] = field(default_factory=list)

    @property
    def satisfied_options(self) -> list[int]:
        """1-based indexes of the options that hold."""
        return [i + 1 for i, o in enumerate(self.options) if o.satisfied]

    def describe(self) -> str:
        if self.satisfied:
            which = self.satisfied_options
            if len(self.options) == 1:
                return f"Meets {self.title} requirements"
            if len(which) == len(self.options):
                return f"Meets {self.title} requirements (all options)"
            index = which[0]
            return (
                f"Meets {self.title} requirements "
                f"(option {index}: {self.options[index - 1].label})"
            )
        return "Does not meet requirements: " + " OR ".join(
            f"({o.describe()})" if len(self.options) > 1 else o.describe()
            for o in self.options
        )


@dataclass(frozen=True)
class RankRequirement:
    """Alternative options, any of which qualifies for ``title``."""

    title: str
    options: tuple[RequirementOption, ...]

    @property
    def criteria(self) -> tuple[LineCriterion, ...]:
        """Distinct criteria over all options, in first-seen order."""
        return tuple(
            dict.fromkeys(
                r.criterion for option in self.options for r in option.requirements
            )
        )

    def evaluate(self, counter: LineCounter) -> RequirementOutcome:
        """
        Evaluate all options against the participant's lines.

        Every option is evaluated (not short-circuited) so the outcome can
        be reported in full by previews and audits.
        """
        outcomes = []
        for option in self.options:
            counts = {}
            satisfied = True
            for requirement in option.requirements:
                found = counter.count(requirement.criterion)
                counts[requirement.criterion.label] = (found, requirement.lines)
                if found < requirement.lines:
                    satisfied = False
            outcomes.append(
                OptionOutcome(label=option.label, satisfied=satisfied, counts=counts)
            )

        return RequirementOutcome(
            title=self.title,
            satisfied=any(o.satisfied for o in outcomes),
            options=outcomes,
        )


def requires(title: str, *options: Sequence[tuple[int, LineCriterion]]) -> RankRequirement:
    """
    Build a requirement from ``(lines, criterion)`` pairs.

    Each positional option is a sequence of pairs that must all hold.

    Example:
        requires(
            "Sapphire Ambassador",
            [(3, RankAtLeast("Ambassador"))],
            [(10, RankAtLeast("Diamond"))],
        )
    """
    return RankRequirement(
        title=title,
        options=tuple(
            RequirementOption(
                requirements=tuple(
                    LineRequirement(lines=lines, criterion=criterion)
                    for lines, criterion in option
                )
            )
            for option in options
        ),
    )
