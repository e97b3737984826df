"""
Bonus Rule Models

Bonus grid tiers, motivations and the global rate settings that feed the
per-deposit bonus calculation.
"""

from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Index, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, JSONPayload, TimestampMixin


class MotivationKind(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class BonusGridRule(TimestampMixin, Base):
    """
    One volume band of the bonus grid for a shift type.

    Bands are inclusive on both ends; a null max_amount is unbounded.
    """

    __tablename__ = "bonus_grid"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    shift_type: Mapped[str] = mapped_column(String(10), nullable=False)
    min_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_amount: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    bonus_percentage: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    fixed_bonus: Mapped[Decimal | None] = mapped_column(
        Numeric(14, 2),
        nullable=True,
        comment="Flat amount added once daily volume reaches fixed_bonus_threshold",
    )
    fixed_bonus_threshold: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    active: Mapped[bool] = mapped_column(nullable=False, default=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        Index("ix_bonus_grid_shift_type_active", "shift_type", "active"),
        CheckConstraint(
            "bonus_percentage >= 0 AND bonus_percentage <= 100",
            name="ck_bonus_grid_percentage",
        ),
        CheckConstraint(
            "max_amount IS NULL OR max_amount >= min_amount",
            name="ck_bonus_grid_band",
        ),
    )

    def __repr__(self) -> str:
        return f"<BonusGridRule {self.shift_type} {self.min_amount}-{self.max_amount} {self.bonus_percentage}%>"


class Motivation(TimestampMixin, Base):
    """
    Additional bonus that stacks on top of the grid when its conditions hold.

    ``conditions`` is a JSON object such as {"minDeposits": 10,
    "minAmount": 5000}; an empty object applies unconditionally.
    """

    __tablename__ = "bonus_motivations"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    type: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="PERCENTAGE|FIXED_AMOUNT",
    )
    value: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    conditions: Mapped[dict[str, Any] | None] = mapped_column(JSONPayload, nullable=True)
    active: Mapped[bool] = mapped_column(nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "type IN ('PERCENTAGE', 'FIXED_AMOUNT')",
            name="ck_bonus_motivations_type",
        ),
        CheckConstraint("value >= 0", name="ck_bonus_motivations_value"),
    )

    def __repr__(self) -> str:
        return f"<Motivation {self.name} {self.type}={self.value}>"


class GlobalSettings(TimestampMixin, Base):
    """Singleton row (id=1) holding the platform-wide earnings rates."""

    __tablename__ = "global_settings"

    id: Mapped[int] = mapped_column(primary_key=True, default=1)
    hourly_rate: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    base_commission_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    base_bonus_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)

    __table_args__ = (CheckConstraint("id = 1", name="ck_global_settings_singleton"),)
