"""
Rank model.

Ordered qualification tier with a points threshold.
"""

from datetime import UTC, datetime

from sqlalchemy import CheckConstraint, DateTime, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base


class Rank(Base):
    """Rank model - tiers ordered by required points."""

    __tablename__ = "ranks"
    __table_args__ = (
        CheckConstraint(
            'required_points >= 0',
            name='check_rank_required_points_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    title: Mapped[str] = mapped_column(
        String(100), unique=True, nullable=False, index=True
    )
    required_points: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, index=True
    )
    details: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Rank(id={self.id}, title={self.title!r}, required_points={self.required_points})>"
