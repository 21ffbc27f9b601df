"""
Earnings entry model.

Append-only record of every commission payout. Rows are created by the
commission distributor and never updated or deleted by the engine.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import MoneyType


class EarningsEntry(Base):
    """Earnings entry model - immutable payout record."""

    __tablename__ = "earnings_entries"
    __table_args__ = (
        CheckConstraint('amount > 0', name='check_earnings_amount_positive'),
        CheckConstraint(
            "kind IN ('direct', 'indirect')",
            name='check_earnings_kind'
        ),
        Index(
            'idx_earnings_participant_kind', 'participant_id', 'kind'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    participant_id: Mapped[int] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount: Mapped[Decimal] = mapped_column(MoneyType, nullable=False)
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    approval_request_id: Mapped[int] = mapped_column(
        ForeignKey("approval_requests.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<EarningsEntry(id={self.id}, participant_id={self.participant_id}, "
            f"amount={self.amount}, kind={self.kind!r})>"
        )
