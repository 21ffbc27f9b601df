"""
Commission distributor.

Pays the direct commission to the buyer's referrer and the indirect
commissions to ranked ancestors above the referrer. Every payout is an
atomic credit of balance and total earnings plus one ledger entry, in
the caller's transaction.
"""

from dataclasses import dataclass, field
from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.constants import (
    DIRECT_COMMISSION_DESCRIPTION,
    MAX_TREE_DEPTH,
    ZERO,
)
from mlm_engine.models.enums import EarningKind
from mlm_engine.models.package import Package
from mlm_engine.models.participant import Participant
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.services.base_service import BaseService
from mlm_engine.services.commission.tier_fill import plan_tier_fill
from mlm_engine.services.earnings_ledger import EarningsLedger
from mlm_engine.services.rank.ladder import RankLadder
from mlm_engine.services.referral.graph import ReferralGraph


@dataclass(frozen=True)
class Payout:
    """A commission credited to one participant."""

    participant_id: int
    handle: str
    amount: Decimal
    kind: EarningKind
    description: str
    tier: str | None = None


@dataclass(frozen=True)
class UnclaimedCommission:
    """Indirect commission no ancestor qualified for."""

    amount: Decimal
    tiers: tuple[str, ...]


@dataclass
class DistributionResult:
    """Everything paid out for one approval."""

    direct: Payout | None = None
    indirect: list[Payout] = field(default_factory=list)
    unclaimed: UnclaimedCommission | None = None

    @property
    def direct_total(self) -> Decimal:
        return self.direct.amount if self.direct else ZERO

    @property
    def indirect_total(self) -> Decimal:
        return sum((p.amount for p in self.indirect), ZERO)

    @property
    def unclaimed_total(self) -> Decimal:
        return self.unclaimed.amount if self.unclaimed else ZERO

    @property
    def total_paid(self) -> Decimal:
        return self.direct_total + self.indirect_total

    @property
    def payouts(self) -> list[Payout]:
        return ([self.direct] if self.direct else []) + self.indirect


class CommissionDistributor(BaseService):
    """Direct and indirect commission payouts."""

    def __init__(
        self,
        session: AsyncSession,
        graph: ReferralGraph | None = None,
        ledger: EarningsLedger | None = None,
        max_depth: int = MAX_TREE_DEPTH,
    ) -> None:
        super().__init__(session)
        self.graph = graph or ReferralGraph(session, max_depth=max_depth)
        self.ledger = ledger or EarningsLedger(session)
        self.participant_repo = ParticipantRepository(session)

    async def _pay(
        self,
        recipient: Participant,
        amount: Decimal,
        kind: EarningKind,
        description: str,
        request_id: int,
        tier: str | None = None,
    ) -> Payout:
        await self.participant_repo.credit_earnings(recipient.id, amount)
        await self.ledger.record(
            participant_id=recipient.id,
            amount=amount,
            kind=kind,
            description=description,
            approval_request_id=request_id,
        )
        return Payout(
            participant_id=recipient.id,
            handle=recipient.handle,
            amount=amount,
            kind=kind,
            description=description,
            tier=tier,
        )

    async def pay_direct(
        self, buyer: Participant, package: Package, request_id: int
    ) -> Payout | None:
        """
        Pay the direct commission to the buyer's referrer.

        A buyer without a referrer, or a package without direct
        commission, pays nothing. A referrer record that cannot be found
        is skipped with a warning.

        Returns:
            Payout or None
        """
        amount = package.direct_commission
        if not buyer.parent_handle:
            self.logger.debug(
                "Buyer has no referrer, no direct commission",
                extra={"buyer": buyer.handle, "request_id": request_id},
            )
            return None
        if amount <= ZERO:
            return None

        referrer = await self.participant_repo.get_by_handle(buyer.parent_handle)
        if referrer is None:
            self.logger.warning(
                "Referrer not found, direct commission skipped",
                extra={
                    "buyer": buyer.handle,
                    "parent_handle": buyer.parent_handle,
                    "request_id": request_id,
                },
            )
            return None

        payout = await self._pay(
            referrer,
            amount,
            EarningKind.DIRECT,
            DIRECT_COMMISSION_DESCRIPTION,
            request_id,
        )
        self.logger.info(
            "Direct commission paid",
            extra={
                "recipient": referrer.handle,
                "amount": str(amount),
                "request_id": request_id,
            },
        )
        return payout

    async def _tier_occupants(
        self, buyer: Participant, ladder: RankLadder
    ) -> tuple[dict[str, Participant], int]:
        """Nearest ancestor per rank title, above the direct referrer."""
        occupants: dict[str, Participant] = {}
        chain = await self.graph.ancestors(buyer.handle, include_self=False)
        above_referrer = chain[1:]
        for ancestor in above_referrer:
            tier = ladder.by_id(ancestor.rank_id)
            if tier is not None and tier.title not in occupants:
                occupants[tier.title] = ancestor
        return occupants, len(above_referrer)

    async def pay_indirect(
        self,
        buyer: Participant,
        package: Package,
        request_id: int,
        ladder: RankLadder,
    ) -> tuple[list[Payout], UnclaimedCommission | None]:
        """
        Pay indirect commissions by ascending tier fill.

        Each tier above the base tier is worth the package's indirect
        commission. The nearest ancestor (excluding the direct referrer)
        holding exactly that rank receives it, together with whatever was
        carried from unoccupied tiers below. An empty ancestor chain is a
        no-op.

        Returns:
            (payouts, unclaimed commission or None)
        """
        commission = package.indirect_commission
        if commission <= ZERO:
            return [], None

        occupants, chain_length = await self._tier_occupants(buyer, ladder)
        if chain_length == 0:
            self.logger.debug(
                "No ancestors above the referrer, no indirect commission",
                extra={"buyer": buyer.handle, "request_id": request_id},
            )
            return [], None

        tiers = [tier.title for tier in ladder.eligible_for_indirect()]
        plan = plan_tier_fill(tiers, occupants, commission)

        payouts = []
        for planned in plan.payouts:
            payouts.append(
                await self._pay(
                    planned.recipient,
                    planned.amount,
                    EarningKind.INDIRECT,
                    planned.description,
                    request_id,
                    tier=planned.tier_title,
                )
            )
            self.logger.info(
                "Indirect commission paid",
                extra={
                    "recipient": planned.recipient.handle,
                    "tier": planned.tier_title,
                    "amount": str(planned.amount),
                    "folded": list(planned.folded_tiers),
                    "request_id": request_id,
                },
            )

        unclaimed = None
        if plan.unclaimed > ZERO:
            unclaimed = UnclaimedCommission(
                amount=plan.unclaimed, tiers=tuple(plan.unclaimed_tiers)
            )
            self.logger.warning(
                "Indirect commission unclaimed, no qualifying ancestor",
                extra={
                    "amount": str(plan.unclaimed),
                    "tiers": plan.unclaimed_tiers,
                    "buyer": buyer.handle,
                    "request_id": request_id,
                },
            )

        return payouts, unclaimed

    async def distribute(
        self,
        buyer: Participant,
        package: Package,
        request_id: int,
        ladder: RankLadder,
    ) -> DistributionResult:
        """Pay direct then indirect commissions for one approval."""
        result = DistributionResult()
        result.direct = await self.pay_direct(buyer, package, request_id)
        result.indirect, result.unclaimed = await self.pay_indirect(
            buyer, package, request_id, ladder
        )
        return result
