"""
Participant model.

Represents a member of the referral forest. Parent links point upward
through ``parent_handle``; the graph is expected to be acyclic but the
schema does not enforce it.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import MoneyType


class Participant(Base):
    """Participant model - nodes of the referral forest."""

    __tablename__ = "participants"
    __table_args__ = (
        CheckConstraint(
            'balance >= 0', name='check_participant_balance_non_negative'
        ),
        CheckConstraint(
            'total_earnings >= 0',
            name='check_participant_total_earnings_non_negative'
        ),
        CheckConstraint(
            'points >= 0', name='check_participant_points_non_negative'
        ),
    )

    # Primary key
    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    # Identity
    handle: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )

    # Referral (handle of the referrer, not a FK: source data has orphans)
    parent_handle: Mapped[str | None] = mapped_column(
        String(255), nullable=True, index=True
    )

    # Reward points (only ever incremented)
    points: Mapped[int] = mapped_column(
        Integer, default=0, nullable=False
    )

    # Balances (additive increments only)
    balance: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )
    total_earnings: Mapped[Decimal] = mapped_column(
        MoneyType, default=Decimal("0"), nullable=False
    )

    # Current rank, assigned by the qualification engine
    rank_id: Mapped[int | None] = mapped_column(
        ForeignKey("ranks.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Package subscription
    current_package_id: Mapped[int | None] = mapped_column(
        ForeignKey("packages.id", ondelete="SET NULL"),
        nullable=True,
    )
    package_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Status flags
    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    def __repr__(self) -> str:
        return (
            f"<Participant(id={self.id}, handle={self.handle!r}, "
            f"parent={self.parent_handle!r}, points={self.points})>"
        )
