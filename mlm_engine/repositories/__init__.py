"""
Repositories.

Async data access layer over the engine models.
"""

from mlm_engine.repositories.approval_request_repository import (
    ApprovalRequestRepository,
)
from mlm_engine.repositories.base import BaseRepository
from mlm_engine.repositories.earnings_entry_repository import (
    EarningsEntryRepository,
)
from mlm_engine.repositories.package_repository import PackageRepository
from mlm_engine.repositories.participant_repository import (
    ParticipantRepository,
)
from mlm_engine.repositories.rank_repository import RankRepository


__all__ = [
    "ApprovalRequestRepository",
    "BaseRepository",
    "EarningsEntryRepository",
    "PackageRepository",
    "ParticipantRepository",
    "RankRepository",
]
