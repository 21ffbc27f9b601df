"""
Approval request model.

One purchase intent. Created by the purchase flow, consumed exactly once
by the approval orchestrator.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.enums import ApprovalStatus, FundingSource


class ApprovalRequest(Base):
    """Approval request model - package purchase awaiting approval."""

    __tablename__ = "approval_requests"

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )

    participant_id: Mapped[int] = mapped_column(
        ForeignKey("participants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    package_id: Mapped[int] = mapped_column(
        ForeignKey("packages.id", ondelete="CASCADE"),
        nullable=False,
    )

    # pending, processing, approved, rejected, failed
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ApprovalStatus.PENDING.value,
        index=True,
    )
    funding_source: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=FundingSource.EXTERNAL.value,
    )
    note: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
        nullable=False
    )

    @property
    def is_pending(self) -> bool:
        return self.status == ApprovalStatus.PENDING.value

    @property
    def is_balance_funded(self) -> bool:
        return self.funding_source == FundingSource.BALANCE.value

    def __repr__(self) -> str:
        return (
            f"<ApprovalRequest(id={self.id}, participant_id={self.participant_id}, "
            f"package_id={self.package_id}, status={self.status!r})>"
        )
