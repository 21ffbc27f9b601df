"""
Approval step sequence.

Each step takes the session of the current attempt and the attempt's
context. Steps never commit; the execution strategy decides whether the
whole sequence or each step is one transaction.
"""

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.constants import MAX_TREE_DEPTH, PACKAGE_VALIDITY_DAYS
from mlm_engine.models.enums import ApprovalStatus
from mlm_engine.repositories.approval_request_repository import (
    ApprovalRequestRepository,
)
from mlm_engine.repositories.package_repository import PackageRepository
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.services.approval.context import ApprovalContext
from mlm_engine.services.commission.distributor import CommissionDistributor
from mlm_engine.services.points_propagator import PointsPropagator
from mlm_engine.services.rank.ladder import RankLadder
from mlm_engine.services.rank.qualification import RankQualificationEngine
from mlm_engine.services.referral.graph import ReferralGraph
from mlm_engine.utils.exceptions import (
    NotFoundError,
    PersistenceError,
    ValidationError,
)


Step = Callable[[AsyncSession, ApprovalContext], Awaitable[None]]


class ApprovalSteps:
    """The ordered approval sequence."""

    def __init__(
        self,
        max_depth: int = MAX_TREE_DEPTH,
        validity_days: int = PACKAGE_VALIDITY_DAYS,
    ) -> None:
        self.max_depth = max_depth
        self.validity_days = validity_days

    def sequence(self) -> list[tuple[str, Step]]:
        return [
            ("prepare", self.prepare),
            ("debit_funding", self.debit_funding),
            ("assign_package", self.assign_package),
            ("propagate_points", self.propagate_points),
            ("pay_direct", self.pay_direct),
            ("pay_indirect", self.pay_indirect),
            ("recompute_ranks", self.recompute_ranks),
            ("finalize", self.finalize),
        ]

    async def prepare(self, session: AsyncSession, ctx: ApprovalContext) -> None:
        """Load the attempt's rows and the rank ladder snapshot."""
        plan = ctx.plan
        ctx.participant = await ParticipantRepository(session).get_by_id(
            plan.participant_id, refresh=True
        )
        if ctx.participant is None:
            raise NotFoundError("Participant not found", plan.request_id)

        ctx.package = await PackageRepository(session).get_by_id(
            plan.package_id, refresh=True
        )
        if ctx.package is None:
            raise NotFoundError("Package not found", plan.request_id)

        ctx.ladder = await RankLadder.load(session)
        ctx.graph = ReferralGraph(session, max_depth=self.max_depth)

    async def debit_funding(
        self, session: AsyncSession, ctx: ApprovalContext
    ) -> None:
        """Take the package price from the participant's balance pool."""
        if not ctx.plan.balance_funded:
            return

        amount = ctx.package.amount
        debited = await ParticipantRepository(session).debit_balance(
            ctx.participant.id, amount
        )
        if not debited:
            raise ValidationError(
                f"Insufficient balance for package {ctx.package.name} "
                f"(required {amount})",
                ctx.plan.request_id,
            )
        ctx.debited = amount

    async def assign_package(
        self, session: AsyncSession, ctx: ApprovalContext
    ) -> None:
        expires_at = datetime.now(UTC) + timedelta(days=self.validity_days)
        await ParticipantRepository(session).update(
            ctx.participant.id,
            current_package_id=ctx.package.id,
            package_expires_at=expires_at,
        )

    async def propagate_points(
        self, session: AsyncSession, ctx: ApprovalContext
    ) -> None:
        propagator = PointsPropagator(session, graph=ctx.graph)
        ctx.propagation = await propagator.add_points(
            ctx.participant.handle, ctx.package.reward_points
        )

    async def pay_direct(
        self, session: AsyncSession, ctx: ApprovalContext
    ) -> None:
        distributor = CommissionDistributor(session, graph=ctx.graph)
        ctx.distribution.direct = await distributor.pay_direct(
            ctx.participant, ctx.package, ctx.plan.request_id
        )

    async def pay_indirect(
        self, session: AsyncSession, ctx: ApprovalContext
    ) -> None:
        distributor = CommissionDistributor(session, graph=ctx.graph)
        indirect, unclaimed = await distributor.pay_indirect(
            ctx.participant, ctx.package, ctx.plan.request_id, ctx.ladder
        )
        ctx.distribution.indirect = indirect
        ctx.distribution.unclaimed = unclaimed

    async def recompute_ranks(
        self, session: AsyncSession, ctx: ApprovalContext
    ) -> None:
        """Recompute ranks of everyone whose points changed, buyer first."""
        if ctx.propagation is None or not ctx.propagation.participant_ids:
            return
        engine = RankQualificationEngine(session, graph=ctx.graph)
        ctx.ranks = await engine.recompute_many(
            ctx.propagation.participant_ids, ctx.ladder
        )

    async def finalize(self, session: AsyncSession, ctx: ApprovalContext) -> None:
        """Move the claimed request to approved."""
        approved = await ApprovalRequestRepository(session).set_status(
            ctx.plan.request_id,
            ApprovalStatus.APPROVED,
            expected=ApprovalStatus.PROCESSING,
        )
        if not approved:
            raise PersistenceError(
                "Request left processing state before approval was recorded",
                ctx.plan.request_id,
            )
        logger.debug(
            "Approval finalized", extra={"request_id": ctx.plan.request_id}
        )
