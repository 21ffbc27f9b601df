"""
Approval request repository.

Data access layer for ApprovalRequest model. Status transitions are
compare-and-swap updates so that only one caller can move a request out
of a given state.
"""

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.models.approval_request import ApprovalRequest
from mlm_engine.models.enums import TERMINAL_STATUSES, ApprovalStatus
from mlm_engine.repositories.base import BaseRepository


class ApprovalRequestRepository(BaseRepository[ApprovalRequest]):
    """Approval request repository."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize approval request repository."""
        super().__init__(ApprovalRequest, session)

    async def set_status(
        self,
        request_id: int,
        status: ApprovalStatus,
        note: str | None = None,
        expected: ApprovalStatus | None = None,
    ) -> bool:
        """
        Move a request to ``status``.

        When ``expected`` is given the update only applies if the stored
        status still equals it (compare-and-swap). Terminal states are
        never overwritten.

        Args:
            request_id: Approval request ID
            status: New status
            note: Optional diagnostic or admin note
            expected: Required current status

        Returns:
            True if this call performed the transition
        """
        conditions = [ApprovalRequest.id == request_id]
        if expected is not None:
            conditions.append(ApprovalRequest.status == expected.value)
        else:
            conditions.append(
                ApprovalRequest.status.notin_(
                    [s.value for s in TERMINAL_STATUSES]
                )
            )

        values: dict = {"status": status.value}
        if note is not None:
            values["note"] = note

        stmt = (
            update(ApprovalRequest)
            .where(*conditions)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount > 0

    async def claim(self, request_id: int) -> bool:
        """
        Claim a pending request for processing.

        Returns:
            True if this caller won the claim
        """
        return await self.set_status(
            request_id,
            ApprovalStatus.PROCESSING,
            expected=ApprovalStatus.PENDING,
        )
