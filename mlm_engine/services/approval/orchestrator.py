"""
Approval orchestrator.

Entry point of the engine: validates and claims a request, runs the
approval sequence through the execution policy, and owns the request's
status. Every error escaping ``approve_request`` carries the request ID.
"""

from decimal import Decimal
from typing import TYPE_CHECKING

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from mlm_engine.config.constants import (
    APPROVAL_TIMEOUT_SECONDS,
    MAX_TREE_DEPTH,
    PACKAGE_VALIDITY_DAYS,
)
from mlm_engine.models.enums import ApprovalStatus
from mlm_engine.repositories.approval_request_repository import (
    ApprovalRequestRepository,
)
from mlm_engine.services.approval.context import ApprovalResult
from mlm_engine.services.approval.execution import (
    AtomicExecution,
    BestEffortExecution,
    ExecutionPolicy,
    ledger_guard,
)
from mlm_engine.services.approval.steps import ApprovalSteps
from mlm_engine.services.approval.validation import load_and_claim
from mlm_engine.services.earnings_ledger import EarningsLedger
from mlm_engine.services.rank.qualification import (
    QualificationReport,
    RankQualificationEngine,
)
from mlm_engine.utils.exceptions import (
    ApprovalError,
    EngineError,
    NotFoundError,
    PersistenceError,
    ValidationError,
)


if TYPE_CHECKING:
    from mlm_engine.config.settings import Settings


class ApprovalOrchestrator:
    """
    Approves package purchase requests.

    Opens its own sessions from ``session_maker``: one for validation
    and the claim, then whatever the execution strategy needs.
    """

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession],
        max_depth: int = MAX_TREE_DEPTH,
        validity_days: int = PACKAGE_VALIDITY_DAYS,
        timeout: float = APPROVAL_TIMEOUT_SECONDS,
        fallback_enabled: bool = True,
    ) -> None:
        self.session_maker = session_maker
        self.max_depth = max_depth
        self.steps = ApprovalSteps(max_depth=max_depth, validity_days=validity_days)
        self.policy = ExecutionPolicy(
            primary=AtomicExecution(session_maker, self.steps, timeout),
            fallback=(
                BestEffortExecution(session_maker, self.steps)
                if fallback_enabled
                else None
            ),
            fallback_guard=ledger_guard(session_maker),
        )
        self.logger = logger.bind(service=self.__class__.__name__)

    @classmethod
    def from_settings(
        cls,
        settings: "Settings | None" = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> "ApprovalOrchestrator":
        """Build an orchestrator from application settings."""
        if settings is None:
            from mlm_engine.config.settings import settings
        if session_maker is None:
            from mlm_engine.config.database import async_session_maker

            session_maker = async_session_maker

        return cls(
            session_maker,
            max_depth=settings.max_tree_depth,
            validity_days=settings.package_validity_days,
            timeout=settings.approval_timeout_seconds,
            fallback_enabled=settings.fallback_enabled,
        )

    async def approve_request(self, request_id: int) -> ApprovalResult:
        """
        Approve a pending request.

        Pays direct and indirect commissions, propagates reward points,
        recomputes the affected ranks and marks the request approved.
        Approving the same request twice never pays twice: the second
        call raises ValidationError.

        Args:
            request_id: Approval request ID

        Returns:
            ApprovalResult

        Raises:
            NotFoundError: Request, participant or package missing
            ValidationError: Request not pending or not eligible
            FallbackExecutionError: Atomic attempt and fallback both failed
            PersistenceError: Storage failure during execution
            ApprovalError: Any other failure during execution
        """
        self.logger.info("Approval started", extra={"request_id": request_id})

        async with self.session_maker() as session:
            plan = await load_and_claim(session, request_id)

        try:
            outcome = await self.policy.execute(plan)
        except EngineError as e:
            await self._mark_failed(request_id, str(e))
            raise e.with_request(request_id)
        except SQLAlchemyError as e:
            await self._mark_failed(request_id, f"Persistence failure: {e}")
            raise PersistenceError(
                f"Persistence failure: {type(e).__name__}", request_id
            ) from e
        except Exception as e:
            await self._mark_failed(request_id, f"{type(e).__name__}: {e}")
            raise ApprovalError(
                f"Approval failed: {type(e).__name__}: {e}", request_id
            ) from e

        result = ApprovalResult.from_context(outcome.context, outcome.used_fallback)
        self.logger.info(
            "Approval completed",
            extra={
                "request_id": request_id,
                "participant": result.participant_handle,
                "package": result.package_name,
                "direct": str(result.amounts.direct),
                "indirect": str(result.amounts.indirect),
                "unclaimed": str(result.amounts.unclaimed),
                "points": result.amounts.points,
                "is_renewal": result.is_renewal,
                "is_upgrade": result.is_upgrade,
                "execution_mode": "fallback" if result.used_fallback else "atomic",
            },
        )
        return result

    async def _mark_failed(self, request_id: int, note: str) -> None:
        """Best-effort move of a claimed request to failed."""
        try:
            async with self.session_maker() as session:
                await ApprovalRequestRepository(session).set_status(
                    request_id, ApprovalStatus.FAILED, note=note[:1000]
                )
                await session.commit()
        except Exception as e:
            self.logger.error(
                "Could not mark approval request as failed",
                extra={"request_id": request_id, "error": str(e)},
            )
            return

        self.logger.error(
            "Approval failed", extra={"request_id": request_id, "note": note}
        )

    async def reject_request(self, request_id: int, note: str) -> None:
        """
        Reject a pending request with an admin note.

        Raises:
            NotFoundError: Request missing
            ValidationError: Request not pending
        """
        async with self.session_maker() as session:
            repo = ApprovalRequestRepository(session)
            request = await repo.get_by_id(request_id)
            if request is None:
                raise NotFoundError("Approval request not found", request_id)

            rejected = await repo.set_status(
                request_id,
                ApprovalStatus.REJECTED,
                note=note,
                expected=ApprovalStatus.PENDING,
            )
            if not rejected:
                raise ValidationError(
                    f"Request is not pending (status: {request.status})",
                    request_id,
                )
            await session.commit()

        self.logger.info(
            "Approval request rejected",
            extra={"request_id": request_id, "note": note},
        )

    async def recompute_rank(self, participant_id: int) -> str | None:
        """Recompute and store one participant's rank."""
        async with self.session_maker() as session:
            engine = RankQualificationEngine(session, max_depth=self.max_depth)
            title = await engine.recompute_rank(participant_id)
            await session.commit()
        return title

    async def preview_rank(self, handle: str) -> QualificationReport | None:
        """Explain a participant's qualifying rank without writing it."""
        async with self.session_maker() as session:
            engine = RankQualificationEngine(session, max_depth=self.max_depth)
            return await engine.preview_rank(handle)

    async def earnings_totals(self, participant_id: int) -> dict[str, Decimal]:
        async with self.session_maker() as session:
            return await EarningsLedger(session).totals_for_participant(
                participant_id
            )
