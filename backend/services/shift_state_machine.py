"""
Shift State Machine

Per-processor shift lifecycle:

    (none) --start--> ACTIVE --end / auto_close--> COMPLETED
    (none) --end-of-window sweep--> MISSED

Closing is guarded by a conditional UPDATE on status, so racing closers
produce exactly one transition and one set of earnings entries.
"""

import logging
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import Settings, get_settings
from backend.models.shift import ProcessorShift, ShiftDefinition, ShiftStatus
from backend.services.rule_admin import load_global_rates
from backend.services.shift_registry import ShiftRegistry
from earnings_ledger.ledger import EarningsLedger
from engines.errors import ConflictError, NotFoundError, ValidationError
from engines.schemas.time_periods import ShiftType
from engines.services.time_periods import (
    is_time_in_window,
    is_within_start_window,
    scheduled_bounds,
    shift_date_for,
)

logger = logging.getLogger(__name__)


def _append_line(existing: str | None, line: str) -> str:
    return f"{existing}\n{line}" if existing else line


class ShiftStateMachine:
    """Start, end, auto-close and mark shifts missed for processors."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.registry = ShiftRegistry(db)
        self.ledger = EarningsLedger(db)

    # Reads

    async def get_shift(self, shift_id: UUID) -> ProcessorShift:
        shift = await self.db.get(ProcessorShift, shift_id)
        if shift is None:
            raise NotFoundError(f"Shift {shift_id} not found")
        return shift

    async def get_current(self, processor_id: UUID) -> ProcessorShift | None:
        """The processor's ACTIVE shift, if any."""
        result = await self.db.execute(
            select(ProcessorShift)
            .where(
                ProcessorShift.processor_id == processor_id,
                ProcessorShift.status == ShiftStatus.ACTIVE.value,
            )
            .order_by(ProcessorShift.actual_start.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_for_day(self, processor_id: UUID, shift_date: date) -> ProcessorShift | None:
        result = await self.db.execute(
            select(ProcessorShift).where(
                ProcessorShift.processor_id == processor_id,
                ProcessorShift.shift_date == shift_date,
            )
        )
        return result.scalar_one_or_none()

    async def list_shifts(
        self,
        processor_id: UUID,
        start_day: date | None = None,
        end_day: date | None = None,
        status: ShiftStatus | None = None,
    ) -> list[ProcessorShift]:
        """Shifts whose canonical day falls in [start_day, end_day], newest first."""
        query = select(ProcessorShift).where(ProcessorShift.processor_id == processor_id)
        if start_day is not None:
            query = query.where(ProcessorShift.shift_date >= start_day)
        if end_day is not None:
            query = query.where(ProcessorShift.shift_date <= end_day)
        if status is not None:
            query = query.where(ProcessorShift.status == status.value)
        result = await self.db.execute(query.order_by(ProcessorShift.shift_date.desc()))
        return list(result.scalars().all())

    # Start

    async def _start_rejection(
        self,
        processor_id: UUID,
        definition: ShiftDefinition | None,
        shift_type: ShiftType,
        now: datetime,
    ) -> ValidationError | None:
        """The error a start would raise right now, or None if it would be accepted."""
        if definition is None or not definition.enabled:
            return ValidationError(f"Shift type {shift_type.value} is not enabled", "SHIFT_DISABLED")

        if not await self.registry.is_assigned(processor_id, shift_type):
            return ValidationError(
                f"Processor is not assigned to {shift_type.value} shifts",
                "SHIFT_NOT_ASSIGNED",
            )

        window = definition.window
        lead = self.settings.start_lead_minutes
        if not is_within_start_window(now, window, lead):
            return ValidationError(
                f"{shift_type.value} shift can only be started from {lead} minutes before its start",
                "OUTSIDE_START_WINDOW",
            )

        if await self.get_current(processor_id) is not None:
            return ValidationError("Processor already has an active shift", "SHIFT_ALREADY_ACTIVE")

        shift_date = shift_date_for(now, window, lead)
        if await self.get_for_day(processor_id, shift_date) is not None:
            return ValidationError(
                f"Processor already has a shift on {shift_date.isoformat()}",
                "SHIFT_ALREADY_EXISTS",
            )
        return None

    async def start(self, processor_id: UUID, shift_type: ShiftType, now: datetime) -> ProcessorShift:
        """
        Start a shift for a processor.

        Raises:
            ValidationError: disabled or unassigned type, outside the start
                window, or a shift already exists for the canonical day
            ConflictError: a concurrent start won the (processor, day) slot
        """
        definition = await self.registry.get_definition(shift_type)
        rejection = await self._start_rejection(processor_id, definition, shift_type, now)
        if rejection is not None:
            logger.info(f"Start rejected for processor {processor_id}: {rejection.code}")
            raise rejection

        window = definition.window
        shift_date = shift_date_for(now, window, self.settings.start_lead_minutes)
        scheduled_start, scheduled_end = scheduled_bounds(shift_date, window)

        shift = ProcessorShift(
            processor_id=processor_id,
            shift_type=shift_type.value,
            shift_date=shift_date,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            actual_start=now,
            status=ShiftStatus.ACTIVE.value,
        )
        self.db.add(shift)
        try:
            await self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Concurrent start for processor {processor_id} on {shift_date}: {e.orig}")
            raise ConflictError(
                f"Processor already has a shift on {shift_date.isoformat()}",
                "SHIFT_CONFLICT",
            ) from e

        logger.info(
            f"Shift started: processor={processor_id}, type={shift_type.value}, "
            f"day={shift_date}, scheduled={scheduled_start.isoformat()}-{scheduled_end.isoformat()}"
        )
        return shift

    async def available_shifts(self, processor_id: UUID, now: datetime) -> list[dict]:
        """Enabled shift types with whether each is under way and whether it can be started now."""
        definitions = await self.registry.get_definitions()
        available = []
        for shift_type in ShiftType:
            definition = definitions.get(shift_type)
            if definition is None or not definition.enabled:
                continue

            window = definition.window
            rejection = await self._start_rejection(processor_id, definition, shift_type, now)
            shift_date = shift_date_for(now, window, self.settings.start_lead_minutes)
            scheduled_start, scheduled_end = scheduled_bounds(shift_date, window)
            available.append(
                {
                    "shift_type": shift_type,
                    "name": definition.name,
                    "start": f"{definition.start_hour:02d}:{definition.start_minute:02d}",
                    "end": f"{definition.end_hour % 24:02d}:{definition.end_minute:02d}",
                    "crosses_midnight": window.crosses_midnight,
                    "scheduled_start": scheduled_start,
                    "scheduled_end": scheduled_end,
                    "is_current": is_time_in_window(now, window),
                    "can_start": rejection is None,
                    "reason": rejection.code if rejection is not None else None,
                }
            )
        return available

    # Close

    async def _close(
        self,
        shift: ProcessorShift,
        actual_end: datetime,
        note: str | None = None,
        admin_note: str | None = None,
    ) -> bool:
        values = {"status": ShiftStatus.COMPLETED.value, "actual_end": actual_end}
        if note:
            values["notes"] = _append_line(shift.notes, note)
        if admin_note:
            values["admin_notes"] = _append_line(shift.admin_notes, admin_note)

        result = await self.db.execute(
            update(ProcessorShift)
            .where(
                ProcessorShift.id == shift.id,
                ProcessorShift.status == ShiftStatus.ACTIVE.value,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(shift)

        if result.rowcount != 1:
            logger.info(f"Shift {shift.id} is {shift.status}; close skipped")
            return False

        await self._record_earnings(shift)
        logger.info(f"Shift {shift.id} completed at {actual_end.isoformat()}")
        return True

    async def _record_earnings(self, shift: ProcessorShift) -> None:
        rates = await load_global_rates(self.db)
        await self.ledger.record_hourly(shift, rates.hourly_rate, self.settings.max_hourly_shift_hours)
        await self.ledger.record_shift_deposits(shift)

    async def end(self, processor_id: UUID, now: datetime) -> tuple[ProcessorShift, bool]:
        """
        End the processor's ACTIVE shift at ``now``.

        Returns the shift and whether this call closed it; False means a
        concurrent close got there first.

        Raises:
            NotFoundError: the processor has no ACTIVE shift
        """
        shift = await self.get_current(processor_id)
        if shift is None:
            raise NotFoundError("Processor has no active shift", "NO_ACTIVE_SHIFT")
        return shift, await self.end_instance(shift, now)

    async def end_instance(self, shift: ProcessorShift, now: datetime) -> bool:
        return await self._close(shift, actual_end=now)

    async def auto_close(self, shift: ProcessorShift, now: datetime) -> bool:
        """
        Force-close an overdue shift.

        ``actual_end`` is always scheduled_end plus the grace period, never
        ``now``, so repeated or late sweeps pay the same hours.
        """
        grace = self.settings.auto_close_grace_minutes
        return await self._close(
            shift,
            actual_end=shift.scheduled_end + timedelta(minutes=grace),
            note=f"[auto-closed by system {grace} min after scheduled end]",
            admin_note=f"Auto-closed at {now.isoformat()}",
        )

    async def mark_missed(
        self,
        processor_id: UUID,
        shift_type: ShiftType,
        shift_date: date,
        now: datetime,
        missed_types: list[ShiftType] | None = None,
    ) -> ProcessorShift | None:
        """
        Record a MISSED instance for a window that elapsed with no shift.

        ``missed_types`` lists every assigned type left unworked that day;
        the note records them all while ``shift_type`` names the instance.
        Returns None when the processor already has an instance for the day.

        Raises:
            ConflictError: a concurrent writer took the (processor, day) slot
        """
        if await self.get_for_day(processor_id, shift_date) is not None:
            return None

        definition = await self.registry.get_definition(shift_type)
        if definition is None:
            raise NotFoundError(f"Shift type {shift_type.value} is not defined")
        scheduled_start, scheduled_end = scheduled_bounds(shift_date, definition.window)
        unworked = ", ".join(t.value for t in (missed_types or [shift_type]))

        shift = ProcessorShift(
            processor_id=processor_id,
            shift_type=shift_type.value,
            shift_date=shift_date,
            scheduled_start=scheduled_start,
            scheduled_end=scheduled_end,
            status=ShiftStatus.MISSED.value,
            admin_notes=f"Marked missed at {now.isoformat()} (unworked: {unworked})",
        )
        self.db.add(shift)
        try:
            await self.db.flush()
        except IntegrityError as e:
            raise ConflictError(
                f"Processor {processor_id} already has a shift on {shift_date.isoformat()}",
                "SHIFT_CONFLICT",
            ) from e

        logger.info(f"Shift marked missed: processor={processor_id}, type={shift_type.value}, day={shift_date}")
        return shift
