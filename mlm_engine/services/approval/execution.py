"""
Approval execution strategies.

``AtomicExecution`` runs the whole step sequence in one transaction
under a time budget. ``BestEffortExecution`` runs the same sequence
committing after every step; it is only used after the atomic attempt
failed for an infrastructure reason, and a failure halfway leaves the
earlier steps committed. ``ExecutionPolicy`` chooses between the two.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mlm_engine.models.enums import ApprovalStatus
from mlm_engine.repositories.approval_request_repository import (
    ApprovalRequestRepository,
)
from mlm_engine.services.approval.context import ApprovalContext, ApprovalPlan
from mlm_engine.services.approval.steps import ApprovalSteps, Step
from mlm_engine.services.earnings_ledger import EarningsLedger
from mlm_engine.utils.db_decorators import with_auto_commit
from mlm_engine.utils.exceptions import (
    FallbackExecutionError,
    PersistenceError,
    TransactionInfrastructureError,
    is_infrastructure_error,
)


class AtomicExecution:
    """All steps in a single transaction, bounded by ``timeout`` seconds."""

    mode = "atomic"

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        steps: ApprovalSteps,
        timeout: float,
    ) -> None:
        self.session_maker = session_maker
        self.steps = steps
        self.timeout = timeout
        self.logger = logger.bind(execution_mode=self.mode)

    async def run(self, plan: ApprovalPlan) -> ApprovalContext:
        """
        Execute the sequence atomically.

        A timeout or connection error raised after every step ran may have
        hit the commit itself. If the request is stored as approved the
        commit landed and the context is returned as a success.

        Raises:
            TransactionInfrastructureError: On timeout or database
                contention; nothing was committed
            ApprovalError: On business-rule failure; nothing was committed
        """
        ctx = ApprovalContext(plan=plan)
        try:
            await self._execute(ctx)
        except TransactionInfrastructureError:
            raise
        except Exception as e:
            if not is_infrastructure_error(e):
                raise
            if self._all_steps_ran(ctx) and await self._committed(plan):
                self.logger.warning(
                    "Atomic approval reported a failure after its commit landed",
                    extra={
                        "request_id": plan.request_id,
                        "error": f"{type(e).__name__}: {e}",
                    },
                )
                return ctx
            self.logger.warning(
                "Atomic approval attempt failed",
                extra={
                    "request_id": plan.request_id,
                    "completed_steps": ctx.completed_steps,
                    "error": f"{type(e).__name__}: {e}",
                },
            )
            raise TransactionInfrastructureError(
                f"Atomic approval attempt failed: {type(e).__name__}",
                plan.request_id,
            ) from e

        self.logger.info(
            "Approval committed atomically",
            extra={"request_id": plan.request_id},
        )
        return ctx

    async def _execute(self, ctx: ApprovalContext) -> None:
        async with self.session_maker() as session:
            async with asyncio.timeout(self.timeout):
                async with session.begin():
                    for name, step in self.steps.sequence():
                        await step(session, ctx)
                        ctx.completed_steps.append(name)

    def _all_steps_ran(self, ctx: ApprovalContext) -> bool:
        return ctx.completed_steps == [name for name, _ in self.steps.sequence()]

    async def _committed(self, plan: ApprovalPlan) -> bool:
        """Whether the request is stored as approved."""
        try:
            async with self.session_maker() as session:
                request = await ApprovalRequestRepository(session).get_by_id(
                    plan.request_id
                )
        except SQLAlchemyError as e:
            self.logger.warning(
                "Could not check whether the atomic commit landed",
                extra={"request_id": plan.request_id, "error": str(e)},
            )
            return False
        return (
            request is not None
            and request.status == ApprovalStatus.APPROVED.value
        )


@with_auto_commit
async def _run_committed(
    step: Step, ctx: ApprovalContext, *, session: AsyncSession
) -> None:
    await step(session, ctx)


class BestEffortExecution:
    """The same steps, each committed on its own."""

    mode = "fallback"

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        steps: ApprovalSteps,
    ) -> None:
        self.session_maker = session_maker
        self.steps = steps
        self.logger = logger.bind(execution_mode=self.mode)

    async def run(self, plan: ApprovalPlan) -> ApprovalContext:
        ctx = ApprovalContext(plan=plan)
        async with self.session_maker() as session:
            for name, step in self.steps.sequence():
                try:
                    await _run_committed(step, ctx, session=session)
                except Exception:
                    self.logger.error(
                        "Fallback approval step failed, earlier steps stay committed",
                        extra={
                            "request_id": plan.request_id,
                            "step": name,
                            "completed_steps": ctx.completed_steps,
                        },
                    )
                    raise
                ctx.completed_steps.append(name)
                self.logger.debug(
                    "Fallback step committed",
                    extra={"request_id": plan.request_id, "step": name},
                )

        self.logger.warning(
            "Approval completed without atomicity",
            extra={"request_id": plan.request_id},
        )
        return ctx


FallbackGuard = Callable[[ApprovalPlan], Awaitable[bool]]


def ledger_guard(
    session_maker: async_sessionmaker[AsyncSession],
) -> FallbackGuard:
    """
    Build a guard allowing the fallback only for an untouched claim.

    The request must still be ``processing`` and have no payouts in the
    ledger, so a re-run can never pay twice.
    """

    async def guard(plan: ApprovalPlan) -> bool:
        async with session_maker() as session:
            request = await ApprovalRequestRepository(session).get_by_id(
                plan.request_id
            )
            if request is None or request.status != ApprovalStatus.PROCESSING.value:
                return False
            return not await EarningsLedger(session).has_payouts(plan.request_id)

    return guard


@dataclass
class ExecutionOutcome:
    context: ApprovalContext
    used_fallback: bool = False


class ExecutionPolicy:
    """
    Primary strategy with an optional fallback for infrastructure errors.

    Business-rule errors from the primary strategy propagate unchanged
    and are never retried.
    """

    def __init__(
        self,
        primary: AtomicExecution,
        fallback: BestEffortExecution | None = None,
        fallback_guard: FallbackGuard | None = None,
    ) -> None:
        self.primary = primary
        self.fallback = fallback
        self.fallback_guard = fallback_guard

    async def execute(self, plan: ApprovalPlan) -> ExecutionOutcome:
        try:
            return ExecutionOutcome(context=await self.primary.run(plan))
        except Exception as atomic_error:
            if self.fallback is None or not is_infrastructure_error(atomic_error):
                raise

            logger.bind(execution_mode="fallback").warning(
                "Atomic approval failed, re-running without atomicity",
                extra={
                    "request_id": plan.request_id,
                    "error": str(atomic_error),
                },
            )

            try:
                if self.fallback_guard and not await self.fallback_guard(plan):
                    raise PersistenceError(
                        "Fallback refused: request is no longer an untouched claim",
                        plan.request_id,
                    )
                context = await self.fallback.run(plan)
            except Exception as fallback_error:
                raise FallbackExecutionError(
                    atomic_error, fallback_error, plan.request_id
                ) from fallback_error

            return ExecutionOutcome(context=context, used_fallback=True)
