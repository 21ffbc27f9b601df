"""
Indirect commission tier fill.

Pure planning step of the indirect distribution: given the eligible
tiers (ascending), the ancestor occupying each tier and the per-tier
commission, decide who is paid what. Commission of an unoccupied tier is
carried forward into the next occupied tier above it; whatever is still
carried after the top tier is unclaimed.
"""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from mlm_engine.config.constants import (
    INDIRECT_COMMISSION_DESCRIPTION,
    INDIRECT_COMMISSION_FOLDED_DESCRIPTION,
    ZERO,
)


@dataclass(frozen=True)
class PlannedPayout:
    """One indirect payout of the plan."""

    tier_title: str
    recipient: Any
    amount: Decimal
    folded_tiers: tuple[str, ...] = ()

    @property
    def description(self) -> str:
        if self.folded_tiers:
            return INDIRECT_COMMISSION_FOLDED_DESCRIPTION.format(
                tier=self.tier_title, folded=", ".join(self.folded_tiers)
            )
        return INDIRECT_COMMISSION_DESCRIPTION.format(tier=self.tier_title)


@dataclass
class TierFillPlan:
    """Payouts plus the commission nobody qualified for."""

    payouts: list[PlannedPayout] = field(default_factory=list)
    unclaimed: Decimal = ZERO
    unclaimed_tiers: list[str] = field(default_factory=list)

    @property
    def total_paid(self) -> Decimal:
        return sum((p.amount for p in self.payouts), ZERO)


def plan_tier_fill(
    tiers: Sequence[str],
    occupants: Mapping[str, Any],
    commission: Decimal,
) -> TierFillPlan:
    """
    Plan the ascending tier fill with carry-forward.

    Args:
        tiers: Eligible tier titles, lowest first
        occupants: Tier title to the recipient holding exactly that tier
        commission: Indirect commission per tier

    Returns:
        TierFillPlan. ``total_paid + unclaimed`` always equals
        ``commission * len(tiers)``; a non-positive commission yields an
        empty plan.

    Example:
        >>> plan = plan_tier_fill(["T1", "T2", "T3"], {"T2": "bob"}, Decimal("20"))
        >>> [(p.recipient, p.amount) for p in plan.payouts]
        [('bob', Decimal('40'))]
        >>> plan.unclaimed
        Decimal('20')
    """
    plan = TierFillPlan()
    if commission <= ZERO:
        return plan

    carried = ZERO
    skipped: list[str] = []

    for title in tiers:
        recipient = occupants.get(title)
        if recipient is None:
            carried += commission
            skipped.append(title)
            continue

        plan.payouts.append(
            PlannedPayout(
                tier_title=title,
                recipient=recipient,
                amount=commission + carried,
                folded_tiers=tuple(skipped),
            )
        )
        carried = ZERO
        skipped = []

    plan.unclaimed = carried
    plan.unclaimed_tiers = skipped
    return plan
