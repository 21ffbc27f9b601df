"""Rank ladder, downline criteria and rank qualification."""

from mlm_engine.services.rank.criteria import (
    LineCounter,
    PointsAtLeast,
    RankAtLeast,
    RankIs,
    RankRequirement,
    requires,
)
from mlm_engine.services.rank.ladder import RankLadder, RankTier
from mlm_engine.services.rank.qualification import (
    QualificationReport,
    RankQualificationEngine,
    RankResyncSummary,
)


__all__ = [
    "LineCounter",
    "PointsAtLeast",
    "QualificationReport",
    "RankAtLeast",
    "RankIs",
    "RankLadder",
    "RankQualificationEngine",
    "RankRequirement",
    "RankResyncSummary",
    "RankTier",
    "requires",
]
