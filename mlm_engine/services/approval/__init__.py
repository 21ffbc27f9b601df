"""Package purchase approval."""

from mlm_engine.services.approval.context import (
    ApprovalAmounts,
    ApprovalContext,
    ApprovalPlan,
    ApprovalResult,
)
from mlm_engine.services.approval.execution import (
    AtomicExecution,
    BestEffortExecution,
    ExecutionOutcome,
    ExecutionPolicy,
)
from mlm_engine.services.approval.orchestrator import ApprovalOrchestrator
from mlm_engine.services.approval.steps import ApprovalSteps


__all__ = [
    "ApprovalAmounts",
    "ApprovalContext",
    "ApprovalOrchestrator",
    "ApprovalPlan",
    "ApprovalResult",
    "ApprovalSteps",
    "AtomicExecution",
    "BestEffortExecution",
    "ExecutionOutcome",
    "ExecutionPolicy",
]
