"""
Auto-Closer

Force-closes shifts still ACTIVE well past their scheduled end, and marks
elapsed windows as MISSED for assigned processors who never started.

Each shift is handled in its own session and transaction: one failure is
logged and counted, never propagated to the rest of the sweep.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backend.config import Settings, get_settings
from backend.models.shift import ProcessorShift, ShiftStatus
from backend.services.debounce import DebounceStore, InMemoryDebounceStore
from backend.services.shift_registry import ShiftRegistry
from backend.services.shift_state_machine import ShiftStateMachine
from engines.errors import ConflictError
from engines.schemas.time_periods import ShiftType, ShiftWindow
from engines.services.time_periods import canonical_day, scheduled_bounds, utc_now

logger = logging.getLogger(__name__)

AUTO_CLOSE_DEBOUNCE_KEY = "auto-close-sweep"


@dataclass
class SweepFailure:
    shift_id: str
    error: str


@dataclass
class SweepResult:
    checked: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: list[SweepFailure] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "succeeded": self.succeeded,
            "failed": self.failed,
            "skipped": self.skipped,
            "failures": [{"shift_id": f.shift_id, "error": f.error} for f in self.failures],
        }


@dataclass
class MissedSweepResult:
    marked: int = 0
    shift_ids: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"marked": self.marked, "shift_ids": self.shift_ids}


class AutoCloser:
    """
    Closes overdue ACTIVE shifts at scheduled_end plus the grace period.

    ``maybe_sweep`` is debounced and meant to piggyback on API traffic;
    ``force_sweep`` always runs and is what the scheduler calls.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Callable[[], datetime] = utc_now,
        debounce_store: DebounceStore | None = None,
        settings: Settings | None = None,
    ):
        self.session_factory = session_factory
        self.clock = clock
        self.debounce_store = debounce_store or InMemoryDebounceStore()
        self.settings = settings or get_settings()

    @property
    def debounce_interval(self) -> timedelta:
        return timedelta(seconds=self.settings.auto_close_debounce_seconds)

    async def maybe_sweep(self) -> SweepResult | None:
        """Sweep unless one ran within the debounce interval; None when skipped."""
        now = self.clock()
        if not await self.debounce_store.acquire(AUTO_CLOSE_DEBOUNCE_KEY, now, self.debounce_interval):
            return None
        return await self._sweep(now)

    async def force_sweep(self) -> SweepResult:
        now = self.clock()
        await self.debounce_store.touch(AUTO_CLOSE_DEBOUNCE_KEY, now, self.debounce_interval)
        return await self._sweep(now)

    async def _overdue_ids(self, now: datetime) -> list[UUID]:
        cutoff = now - timedelta(minutes=self.settings.auto_close_grace_minutes)
        async with self.session_factory() as session:
            result = await session.execute(
                select(ProcessorShift.id)
                .where(
                    ProcessorShift.status == ShiftStatus.ACTIVE.value,
                    ProcessorShift.scheduled_end < cutoff,
                )
                .order_by(ProcessorShift.scheduled_end)
            )
            return list(result.scalars().all())

    async def _sweep(self, now: datetime) -> SweepResult:
        result = SweepResult()
        shift_ids = await self._overdue_ids(now)
        result.checked = len(shift_ids)

        for shift_id in shift_ids:
            try:
                closed = await self._close_one(shift_id, now)
            except Exception as e:
                logger.exception(f"Auto-close failed for shift {shift_id}")
                result.failed += 1
                result.failures.append(SweepFailure(shift_id=str(shift_id), error=str(e)))
                continue
            if closed:
                result.succeeded += 1
            else:
                result.skipped += 1

        if result.checked:
            logger.info(
                f"Auto-close sweep: checked={result.checked}, succeeded={result.succeeded}, "
                f"failed={result.failed}, skipped={result.skipped}"
            )
        return result

    async def _close_one(self, shift_id: UUID, now: datetime) -> bool:
        async with self.session_factory() as session:
            async with session.begin():
                shift = await session.get(ProcessorShift, shift_id)
                if shift is None or shift.status != ShiftStatus.ACTIVE.value:
                    return False
                return await ShiftStateMachine(session, self.settings).auto_close(shift, now)


class MissedShiftSweeper:
    """
    Writes MISSED instances for canonical days a processor left unworked.

    Only processors with an assignment are considered; a processor without
    assignments has no expected schedule. A day is only marked once the
    windows of all the processor's enabled assigned types have elapsed, so
    an unworked MORNING never blocks a DAY or NIGHT start later that day.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        lookback_days: int = 1,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.lookback_days = lookback_days

    async def _assigned_windows(self) -> dict[UUID, list[tuple[ShiftType, ShiftWindow]]]:
        assigned: dict[UUID, list[tuple[ShiftType, ShiftWindow]]] = {}
        async with self.session_factory() as session:
            registry = ShiftRegistry(session)
            definitions = await registry.get_definitions()
            for shift_type, definition in definitions.items():
                if not definition.enabled:
                    continue
                for processor_id in await registry.assigned_processors(shift_type):
                    assigned.setdefault(processor_id, []).append((shift_type, definition.window))
        return assigned

    async def _elapsed_days(self, now: datetime) -> list[tuple[UUID, date, list[ShiftType]]]:
        """
        (processor, day, unworked types) for every fully elapsed day.

        Types are ordered by scheduled end; the last one names the instance.
        """
        today = canonical_day(now)
        slots = []
        for processor_id, windows in (await self._assigned_windows()).items():
            for offset in range(self.lookback_days, -1, -1):
                day = today - timedelta(days=offset)
                ends = sorted(
                    (scheduled_bounds(day, window)[1], shift_type) for shift_type, window in windows
                )
                if ends[-1][0] <= now:
                    slots.append((processor_id, day, [shift_type for _, shift_type in ends]))
        return slots

    async def sweep(self, now: datetime | None = None) -> MissedSweepResult:
        now = now or utc_now()
        result = MissedSweepResult()

        for processor_id, day, shift_types in await self._elapsed_days(now):
            try:
                async with self.session_factory() as session:
                    async with session.begin():
                        shift = await ShiftStateMachine(session, self.settings).mark_missed(
                            processor_id, shift_types[-1], day, now, missed_types=shift_types
                        )
            except ConflictError:
                logger.info(f"Processor {processor_id} started on {day} during the missed sweep")
                continue
            if shift is not None:
                result.marked += 1
                result.shift_ids.append(str(shift.id))

        if result.marked:
            logger.info(f"Missed-shift sweep marked {result.marked} shift(s)")
        return result
