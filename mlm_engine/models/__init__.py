"""
Database models.

Exports all SQLAlchemy models for easy imports.
"""

from mlm_engine.models.approval_request import ApprovalRequest
from mlm_engine.models.base import Base
from mlm_engine.models.earnings_entry import EarningsEntry
from mlm_engine.models.enums import (
    ApprovalStatus,
    EarningKind,
    FundingSource,
)
from mlm_engine.models.package import Package
from mlm_engine.models.participant import Participant
from mlm_engine.models.rank import Rank


__all__ = [
    # Base
    "Base",
    # Enums
    "ApprovalStatus",
    "EarningKind",
    "FundingSource",
    # Models
    "ApprovalRequest",
    "EarningsEntry",
    "Package",
    "Participant",
    "Rank",
]
