"""
Default rank ladder and higher-rank requirements.

Single source of truth for the rank hierarchy seeded into a fresh
database and for the downline-shape rules of the higher ranks. Ranks
present in the database but absent from ``HIGHER_RANK_REQUIREMENTS`` are
qualified on points alone.
"""

from typing import NamedTuple

from mlm_engine.services.rank.criteria import (
    PointsAtLeast,
    RankAtLeast,
    RankRequirement,
    requires,
)


class RankDefinition(NamedTuple):
    """Seed definition of a rank."""

    title: str
    required_points: int
    details: str


CONSULTANT = "Consultant"
MANAGER = "Manager"
SAPPHIRE_MANAGER = "Sapphire Manager"
DIAMOND = "Diamond"
SAPPHIRE_DIAMOND = "Sapphire Diamond"
AMBASSADOR = "Ambassador"
SAPPHIRE_AMBASSADOR = "Sapphire Ambassador"
ROYAL_AMBASSADOR = "Royal Ambassador"
GLOBAL_AMBASSADOR = "Global Ambassador"
HONORY_SHARE_HOLDER = "Honory Share Holder"


DEFAULT_RANKS: tuple[RankDefinition, ...] = (
    RankDefinition(CONSULTANT, 0, "Entry level rank"),
    RankDefinition(MANAGER, 1_000, "First management level"),
    RankDefinition(SAPPHIRE_MANAGER, 2_000, "Advanced management level"),
    RankDefinition(DIAMOND, 8_000, "Premium level with downline requirements"),
    RankDefinition(SAPPHIRE_DIAMOND, 24_000, "3 Diamond+ lines"),
    RankDefinition(AMBASSADOR, 50_000, "6 Diamond+ lines"),
    RankDefinition(
        SAPPHIRE_AMBASSADOR, 100_000, "3 Ambassador+ or 10 Diamond+ lines"
    ),
    RankDefinition(
        ROYAL_AMBASSADOR, 200_000, "3 Sapphire Ambassador+ or 15 Diamond+ lines"
    ),
    RankDefinition(
        GLOBAL_AMBASSADOR, 500_000, "3 Royal Ambassador+ or 25 Diamond+ lines"
    ),
    RankDefinition(
        HONORY_SHARE_HOLDER,
        1_000_000,
        "3 Global Ambassador+ lines, or 50 Diamond+ and 10 Royal Ambassador+ lines",
    ),
)


_REQUIREMENTS = (
    requires(DIAMOND, [(3, PointsAtLeast(2_000))]),
    requires(SAPPHIRE_DIAMOND, [(3, RankAtLeast(DIAMOND))]),
    requires(AMBASSADOR, [(6, RankAtLeast(DIAMOND))]),
    requires(
        SAPPHIRE_AMBASSADOR,
        [(3, RankAtLeast(AMBASSADOR))],
        [(10, RankAtLeast(DIAMOND))],
    ),
    requires(
        ROYAL_AMBASSADOR,
        [(3, RankAtLeast(SAPPHIRE_AMBASSADOR))],
        [(15, RankAtLeast(DIAMOND))],
    ),
    requires(
        GLOBAL_AMBASSADOR,
        [(3, RankAtLeast(ROYAL_AMBASSADOR))],
        [(25, RankAtLeast(DIAMOND))],
    ),
    requires(
        HONORY_SHARE_HOLDER,
        [(3, RankAtLeast(GLOBAL_AMBASSADOR))],
        [(50, RankAtLeast(DIAMOND)), (10, RankAtLeast(ROYAL_AMBASSADOR))],
    ),
)

HIGHER_RANK_REQUIREMENTS: dict[str, RankRequirement] = {
    requirement.title: requirement for requirement in _REQUIREMENTS
}
