"""Direct and indirect commission distribution."""

from mlm_engine.services.commission.distributor import (
    CommissionDistributor,
    DistributionResult,
    Payout,
    UnclaimedCommission,
)
from mlm_engine.services.commission.tier_fill import (
    PlannedPayout,
    TierFillPlan,
    plan_tier_fill,
)


__all__ = [
    "CommissionDistributor",
    "DistributionResult",
    "Payout",
    "PlannedPayout",
    "TierFillPlan",
    "UnclaimedCommission",
    "plan_tier_fill",
]
