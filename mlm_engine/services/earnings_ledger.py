"""
Earnings ledger service.

Append-only record of commission payouts. Each entry is written in the
same transaction as the balance credit it documents.
"""

from decimal import Decimal

from sqlalchemy.ext.asyncio import AsyncSession

from mlm_engine.config.constants import ZERO
from mlm_engine.models.earnings_entry import EarningsEntry
from mlm_engine.models.enums import EarningKind
from mlm_engine.repositories.earnings_entry_repository import (
    EarningsEntryRepository,
)
from mlm_engine.services.base_service import BaseService


class EarningsLedger(BaseService):
    """Writes and reads earnings entries."""

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(session)
        self.entry_repo = EarningsEntryRepository(session)

    async def record(
        self,
        participant_id: int,
        amount: Decimal,
        kind: EarningKind,
        description: str,
        approval_request_id: int,
    ) -> EarningsEntry:
        """
        Append a payout entry.

        Args:
            participant_id: Recipient
            amount: Positive payout amount
            kind: Direct or indirect
            description: Human-readable reason
            approval_request_id: Request that caused the payout

        Returns:
            Created entry

        Raises:
            ValueError: If amount is not positive
        """
        if amount <= ZERO:
            raise ValueError(f"Earnings amount must be positive, got {amount}")

        entry = await self.entry_repo.create(
            participant_id=participant_id,
            amount=amount,
            kind=kind.value,
            description=description,
            approval_request_id=approval_request_id,
        )
        self.logger.debug(
            "Earnings recorded",
            extra={
                "participant_id": participant_id,
                "amount": str(amount),
                "kind": kind.value,
                "request_id": approval_request_id,
            },
        )
        return entry

    async def entries_for_request(self, request_id: int) -> list[EarningsEntry]:
        return await self.entry_repo.get_by_request(request_id)

    async def has_payouts(self, request_id: int) -> bool:
        """True if any payout was already written for the request."""
        return await self.entry_repo.exists(approval_request_id=request_id)

    async def total_for_request(self, request_id: int) -> Decimal:
        return await self.entry_repo.sum_by_request(request_id)

    async def totals_for_participant(
        self, participant_id: int
    ) -> dict[str, Decimal]:
        """
        Earnings totals of a participant by kind, plus the grand total.

        Kinds without entries are reported as zero.

        Returns:
            Dict with "direct", "indirect" and "total" keys
        """
        raw = await self.entry_repo.sum_by_kind(participant_id)
        totals = {kind.value: raw.get(kind.value, ZERO) for kind in EarningKind}
        totals["total"] = sum(totals.values(), ZERO)
        return totals
