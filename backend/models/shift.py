"""
Shift Models

Shift type definitions, per-processor eligibility and the shift instances
processors actually work.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID, uuid4

from sqlalchemy import CheckConstraint, Index, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backend.models.base import Base, TimestampMixin, UTCDateTime
from engines.schemas.time_periods import ShiftType, ShiftWindow


class ShiftStatus(str, Enum):
    """
    Shift instance status (state machine).

    State transitions:
    (no instance) -> ACTIVE -> COMPLETED   via end() or auto-close
    (no instance) -> MISSED                via the end-of-window sweep only
    """

    ACTIVE = "ACTIVE"
    COMPLETED = "COMPLETED"
    MISSED = "MISSED"


class ShiftDefinition(TimestampMixin, Base):
    """
    Daily window for one shift type, in local (UTC+3) time.

    An overnight window is written either with end_hour in [24, 47] or with
    crosses_midnight set; both mean the same thing.
    """

    __tablename__ = "shift_definitions"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    shift_type: Mapped[str] = mapped_column(
        String(10),
        unique=True,
        nullable=False,
        comment="MORNING|DAY|NIGHT",
    )
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_hour: Mapped[int] = mapped_column(nullable=False)
    start_minute: Mapped[int] = mapped_column(nullable=False, default=0)
    end_hour: Mapped[int] = mapped_column(
        nullable=False,
        comment="0-47; values of 24 and above fall on the next day",
    )
    end_minute: Mapped[int] = mapped_column(nullable=False, default=0)
    crosses_midnight: Mapped[bool] = mapped_column(nullable=False, default=False)
    enabled: Mapped[bool] = mapped_column(nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            "shift_type IN ('MORNING', 'DAY', 'NIGHT')",
            name="ck_shift_definitions_type",
        ),
        CheckConstraint("start_hour >= 0 AND start_hour < 24", name="ck_shift_definitions_start_hour"),
        CheckConstraint("end_hour >= 0 AND end_hour < 48", name="ck_shift_definitions_end_hour"),
    )

    @property
    def window(self) -> ShiftWindow:
        return ShiftWindow.from_hours(
            self.start_hour,
            self.start_minute,
            self.end_hour,
            self.end_minute,
            self.crosses_midnight,
        )

    def __repr__(self) -> str:
        return (
            f"<ShiftDefinition {self.shift_type} "
            f"{self.start_hour:02d}:{self.start_minute:02d}-{self.end_hour:02d}:{self.end_minute:02d}>"
        )


class ShiftAssignment(TimestampMixin, Base):
    """A processor's eligibility to work a shift type."""

    __tablename__ = "shift_assignments"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    processor_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    shift_type: Mapped[str] = mapped_column(String(10), nullable=False)
    active: Mapped[bool] = mapped_column(nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("processor_id", "shift_type", name="uq_shift_assignments_processor_type"),
    )

    def __repr__(self) -> str:
        return f"<ShiftAssignment {self.processor_id} {self.shift_type}>"


class ProcessorShift(TimestampMixin, Base):
    """
    One shift instance for a processor on a canonical day.

    Never deleted; only transitioned. At most one instance exists per
    processor per canonical day, enforced by the unique constraint.
    """

    __tablename__ = "processor_shifts"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    processor_id: Mapped[UUID] = mapped_column(nullable=False)
    shift_type: Mapped[str] = mapped_column(String(10), nullable=False)
    shift_date: Mapped[date] = mapped_column(
        nullable=False,
        comment="Canonical day (06:00 UTC+3 cutover) the scheduled window belongs to",
    )

    scheduled_start: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    scheduled_end: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)
    actual_start: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    actual_end: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    status: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=ShiftStatus.ACTIVE.value,
        comment="ACTIVE|COMPLETED|MISSED",
    )
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    admin_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint("processor_id", "shift_date", name="uq_processor_shifts_processor_day"),
        Index("ix_processor_shifts_status_scheduled_end", "status", "scheduled_end"),
        CheckConstraint(
            "status IN ('ACTIVE', 'COMPLETED', 'MISSED')",
            name="ck_processor_shifts_status",
        ),
    )

    @property
    def type(self) -> ShiftType:
        return ShiftType(self.shift_type)

    def __repr__(self) -> str:
        return f"<ProcessorShift {self.processor_id} {self.shift_date} {self.shift_type} {self.status}>"
