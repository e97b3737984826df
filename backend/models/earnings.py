"""
EarningsEntry Model

Append-only record of everything a processor earned: hourly pay for closed
shifts and commission plus bonus for approved deposits.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, JSONPayload, UTCDateTime


class EarningsKind(str, Enum):
    """Types of earnings entries."""

    HOURLY = "HOURLY"
    DEPOSIT_COMMISSION = "DEPOSIT_COMMISSION"


class EarningsEntry(Base):
    """
    One earnings line for a processor.

    This table is append-only. Totals and breakdowns are always derived
    from it with GROUP BY, never cached.
    """

    __tablename__ = "earnings_entries"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    processor_id: Mapped[UUID] = mapped_column(nullable=False)
    shift_id: Mapped[UUID | None] = mapped_column(
        nullable=True,
        comment="Shift the entry was earned in, if any",
    )
    deposit_id: Mapped[UUID | None] = mapped_column(
        unique=True,
        nullable=True,
        comment="Source deposit; at most one entry per deposit",
    )
    kind: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        comment="HOURLY|DEPOSIT_COMMISSION",
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    description: Mapped[str] = mapped_column(String(500), nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(
        JSONPayload,
        nullable=False,
        default=dict,
        comment="Inputs the amount was computed from",
    )

    # No updated_at - immutable
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_earnings_entries_processor_created", "processor_id", "created_at"),
        Index("ix_earnings_entries_shift_id", "shift_id"),
        CheckConstraint(
            "kind IN ('HOURLY', 'DEPOSIT_COMMISSION')",
            name="ck_earnings_entries_kind",
        ),
    )

    def __repr__(self) -> str:
        return f"<EarningsEntry {self.kind} {self.amount} processor={self.processor_id}>"
