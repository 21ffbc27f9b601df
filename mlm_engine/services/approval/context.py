"""
Approval plan, per-attempt context and result.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from mlm_engine.config.constants import ZERO
from mlm_engine.models.package import Package
from mlm_engine.models.participant import Participant
from mlm_engine.services.commission.distributor import DistributionResult
from mlm_engine.services.points_propagator import PropagationResult
from mlm_engine.services.rank.ladder import RankLadder
from mlm_engine.services.referral.graph import ReferralGraph


@dataclass(frozen=True)
class ApprovalPlan:
    """
    What a claimed request will execute.

    Built once, after validation and the claim, and shared by every
    execution attempt. Holds IDs only; attempts reload rows in their own
    session.
    """

    request_id: int
    participant_id: int
    package_id: int
    balance_funded: bool
    is_renewal: bool
    is_upgrade: bool


@dataclass
class ApprovalContext:
    """Mutable state of one execution attempt, rebuilt per attempt."""

    plan: ApprovalPlan
    participant: Participant | None = None
    package: Package | None = None
    ladder: RankLadder | None = None
    graph: ReferralGraph | None = None
    debited: Decimal = ZERO
    propagation: PropagationResult | None = None
    distribution: DistributionResult = field(default_factory=DistributionResult)
    ranks: dict[int, str | None] = field(default_factory=dict)
    completed_steps: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ApprovalAmounts:
    """Money and points moved by one approval."""

    direct: Decimal
    indirect: Decimal
    unclaimed: Decimal
    points: int

    @property
    def total_paid(self) -> Decimal:
        return self.direct + self.indirect


@dataclass
class ApprovalResult:
    """Outcome of a successful approval."""

    request_id: int
    participant_handle: str
    package_name: str
    amounts: ApprovalAmounts
    is_renewal: bool
    is_upgrade: bool
    used_fallback: bool
    distribution: DistributionResult
    ranks: dict[int, str | None] = field(default_factory=dict)

    @classmethod
    def from_context(
        cls, context: ApprovalContext, used_fallback: bool
    ) -> "ApprovalResult":
        distribution = context.distribution
        propagation = context.propagation
        return cls(
            request_id=context.plan.request_id,
            participant_handle=context.participant.handle,
            package_name=context.package.name,
            amounts=ApprovalAmounts(
                direct=distribution.direct_total,
                indirect=distribution.indirect_total,
                unclaimed=distribution.unclaimed_total,
                points=propagation.points if propagation else 0,
            ),
            is_renewal=context.plan.is_renewal,
            is_upgrade=context.plan.is_upgrade,
            used_fallback=used_fallback,
            distribution=distribution,
            ranks=dict(context.ranks),
        )
