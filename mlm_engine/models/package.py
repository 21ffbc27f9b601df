"""
Package model.

Purchasable offering that carries the commissions and reward points
distributed on approval.
"""

from datetime import UTC, datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from mlm_engine.models.base import Base
from mlm_engine.models.types import MoneyType


class Package(Base):
    """Package model - purchasable offerings."""

    __tablename__ = "packages"
    __table_args__ = (
        CheckConstraint('amount >= 0', name='check_package_amount_non_negative'),
        CheckConstraint(
            'direct_commission >= 0',
            name='check_package_direct_commission_non_negative'
        ),
        CheckConstraint(
            'indirect_commission >= 0',
            name='check_package_indirect_commission_non_negative'
        ),
        CheckConstraint(
            'reward_points >= 0',
            name='check_package_reward_points_non_negative'
        ),
    )

    id: Mapped[int] = mapped_column(
        Integer, primary_key=True, autoincrement=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    direct_commission: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    indirect_commission: Mapped[Decimal] = mapped_column(
        MoneyType, nullable=False, default=Decimal("0")
    )
    reward_points: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0
    )

    is_active: Mapped[bool] = mapped_column(
        Boolean, default=True, nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )

    def __repr__(self) -> str:
        return f"<Package(id={self.id}, name={self.name!r}, amount={self.amount})>"
