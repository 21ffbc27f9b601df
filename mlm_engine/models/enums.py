"""
Status and kind enumerations shared by models and services.
"""

from enum import Enum


class ApprovalStatus(str, Enum):
    """Approval request lifecycle states."""

    PENDING = "pending"
    PROCESSING = "processing"  # Claimed by an orchestrator run
    APPROVED = "approved"
    REJECTED = "rejected"
    FAILED = "failed"


# Never left again once reached
TERMINAL_STATUSES = frozenset(
    {ApprovalStatus.APPROVED, ApprovalStatus.REJECTED, ApprovalStatus.FAILED}
)


class EarningKind(str, Enum):
    """Earnings entry kinds."""

    DIRECT = "direct"
    INDIRECT = "indirect"


class FundingSource(str, Enum):
    """Where the package payment comes from."""

    EXTERNAL = "external"  # Payment proof validated upstream
    BALANCE = "balance"  # Internal balance pool of the participant
