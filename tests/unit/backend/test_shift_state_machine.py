"""
Shift State Machine Tests

Start preconditions, closing, idempotency and auto-close determinism,
against a SQLite session.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from backend.models.earnings import EarningsEntry, EarningsKind
from backend.models.shift import ShiftStatus
from backend.services.shift_state_machine import ShiftStateMachine
from engines.errors import ConflictError, NotFoundError, ValidationError
from engines.schemas.time_periods import ShiftType
from tests.factories import (
    business_time,
    make_assignment,
    make_deposit,
    make_processor_shift,
    make_shift_definition,
)


async def _entries(db, shift_id, kind=None):
    query = select(EarningsEntry).where(EarningsEntry.shift_id == shift_id)
    if kind is not None:
        query = query.where(EarningsEntry.kind == kind.value)
    return list((await db.execute(query)).scalars().all())


class TestStart:
    @pytest.mark.asyncio
    async def test_early_start_keys_to_upcoming_window(self, db_session):
        processor_id = uuid4()
        now = business_time(2025, 3, 4, 5, 35)

        shift = await ShiftStateMachine(db_session).start(processor_id, ShiftType.MORNING, now)

        assert shift.status == ShiftStatus.ACTIVE.value
        assert shift.shift_date == date(2025, 3, 4)
        assert shift.scheduled_start == business_time(2025, 3, 4, 6, 0)
        assert shift.scheduled_end == business_time(2025, 3, 4, 14, 0)
        assert shift.actual_start == now

    @pytest.mark.asyncio
    async def test_outside_start_window(self, db_session):
        with pytest.raises(ValidationError) as exc_info:
            await ShiftStateMachine(db_session).start(
                uuid4(), ShiftType.MORNING, business_time(2025, 3, 4, 5, 0)
            )
        assert exc_info.value.code == "OUTSIDE_START_WINDOW"

    @pytest.mark.asyncio
    async def test_already_active(self, db_session):
        processor_id = uuid4()
        machine = ShiftStateMachine(db_session)
        await machine.start(processor_id, ShiftType.NIGHT, business_time(2025, 3, 3, 22, 0))

        # Next canonical day, but the night shift is still open
        with pytest.raises(ValidationError) as exc_info:
            await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 4, 6, 5))
        assert exc_info.value.code == "SHIFT_ALREADY_ACTIVE"

    @pytest.mark.asyncio
    async def test_one_shift_per_canonical_day(self, db_session):
        processor_id = uuid4()
        machine = ShiftStateMachine(db_session)
        await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 6, 0))
        await machine.end(processor_id, business_time(2025, 3, 3, 10, 0))

        with pytest.raises(ValidationError) as exc_info:
            await machine.start(processor_id, ShiftType.DAY, business_time(2025, 3, 3, 14, 0))
        assert exc_info.value.code == "SHIFT_ALREADY_EXISTS"

    @pytest.mark.asyncio
    async def test_disabled_shift_type(self, db_session):
        db_session.add(make_shift_definition(ShiftType.MORNING, enabled=False))
        await db_session.flush()

        with pytest.raises(ValidationError) as exc_info:
            await ShiftStateMachine(db_session).start(
                uuid4(), ShiftType.MORNING, business_time(2025, 3, 3, 7, 0)
            )
        assert exc_info.value.code == "SHIFT_DISABLED"

    @pytest.mark.asyncio
    async def test_not_assigned(self, db_session):
        processor_id = uuid4()
        db_session.add(make_assignment(processor_id, ShiftType.NIGHT))
        await db_session.flush()

        with pytest.raises(ValidationError) as exc_info:
            await ShiftStateMachine(db_session).start(
                processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 7, 0)
            )
        assert exc_info.value.code == "SHIFT_NOT_ASSIGNED"

    @pytest.mark.asyncio
    async def test_store_uniqueness_surfaces_as_conflict(self, db_session, monkeypatch):
        """A concurrent start that slips past the read checks loses at the constraint."""
        processor_id = uuid4()
        db_session.add(make_processor_shift(processor_id, shift_date=date(2025, 3, 3)))
        await db_session.flush()

        machine = ShiftStateMachine(db_session)

        async def nothing(*args, **kwargs):
            return None

        monkeypatch.setattr(machine, "get_current", nothing)
        monkeypatch.setattr(machine, "get_for_day", nothing)

        with pytest.raises(ConflictError) as exc_info:
            await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 7, 0))
        assert exc_info.value.code == "SHIFT_CONFLICT"


class TestEnd:
    @pytest.mark.asyncio
    async def test_end_records_hourly_pay(self, db_session):
        processor_id = uuid4()
        machine = ShiftStateMachine(db_session)
        await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 6, 0))

        shift, closed = await machine.end(processor_id, business_time(2025, 3, 3, 10, 0))

        assert closed is True
        assert shift.status == ShiftStatus.COMPLETED.value
        assert shift.actual_end == business_time(2025, 3, 3, 10, 0)

        hourly = await _entries(db_session, shift.id, EarningsKind.HOURLY)
        assert len(hourly) == 1
        assert hourly[0].amount == Decimal("8.00")
        assert hourly[0].details["hours"] == "4.0000"

    @pytest.mark.asyncio
    async def test_end_without_active_shift(self, db_session):
        with pytest.raises(NotFoundError) as exc_info:
            await ShiftStateMachine(db_session).end(uuid4(), business_time(2025, 3, 3, 10, 0))
        assert exc_info.value.code == "NO_ACTIVE_SHIFT"

    @pytest.mark.asyncio
    async def test_end_is_idempotent(self, db_session):
        processor_id = uuid4()
        machine = ShiftStateMachine(db_session)
        shift = await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 6, 0))

        first = await machine.end_instance(shift, business_time(2025, 3, 3, 10, 0))
        second = await machine.end_instance(shift, business_time(2025, 3, 3, 11, 0))

        assert first is True
        assert second is False
        assert shift.actual_end == business_time(2025, 3, 3, 10, 0)
        assert len(await _entries(db_session, shift.id)) == 1

    @pytest.mark.asyncio
    async def test_overlong_shift_gets_no_hourly_pay(self, db_session):
        processor_id = uuid4()
        shift = make_processor_shift(
            processor_id,
            actual_start=business_time(2025, 3, 1, 6, 0),
        )
        db_session.add(shift)
        await db_session.flush()

        closed = await ShiftStateMachine(db_session).end_instance(shift, business_time(2025, 3, 3, 10, 0))

        assert closed is True
        assert await _entries(db_session, shift.id) == []

    @pytest.mark.asyncio
    async def test_close_backfills_deposit_commissions(self, db_session):
        processor_id = uuid4()
        machine = ShiftStateMachine(db_session)
        shift = await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 6, 0))
        db_session.add(
            make_deposit(
                processor_id,
                status="APPROVED",
                approved_at=business_time(2025, 3, 3, 8, 0),
                commission_rate=Decimal("30.00"),
                bonus_rate=Decimal("5.00"),
                bonus_amount=Decimal("50.00"),
            )
        )
        await db_session.flush()

        await machine.end_instance(shift, business_time(2025, 3, 3, 10, 0))

        commissions = await _entries(db_session, shift.id, EarningsKind.DEPOSIT_COMMISSION)
        assert len(commissions) == 1
        # 30% of 1000 plus the 50 bonus
        assert commissions[0].amount == Decimal("350.00")


class TestAutoClose:
    @pytest.mark.asyncio
    async def test_actual_end_is_scheduled_end_plus_grace(self, db_session):
        processor_id = uuid4()
        shift = make_processor_shift(processor_id, shift_date=date(2025, 3, 3))
        db_session.add(shift)
        await db_session.flush()
        expected_end = shift.scheduled_end + timedelta(minutes=30)

        closed = await ShiftStateMachine(db_session).auto_close(shift, business_time(2025, 3, 5, 9, 0))

        assert closed is True
        assert shift.status == ShiftStatus.COMPLETED.value
        assert shift.actual_end == expected_end
        assert "auto-closed by system" in shift.notes
        assert "Auto-closed at" in shift.admin_notes

    @pytest.mark.asyncio
    async def test_auto_close_after_manual_end_is_noop(self, db_session):
        processor_id = uuid4()
        machine = ShiftStateMachine(db_session)
        shift = await machine.start(processor_id, ShiftType.MORNING, business_time(2025, 3, 3, 6, 0))
        await machine.end_instance(shift, business_time(2025, 3, 3, 13, 0))

        closed = await machine.auto_close(shift, business_time(2025, 3, 3, 15, 0))

        assert closed is False
        assert shift.actual_end == business_time(2025, 3, 3, 13, 0)
        assert len(await _entries(db_session, shift.id, EarningsKind.HOURLY)) == 1


class TestMarkMissed:
    @pytest.mark.asyncio
    async def test_marks_missed_when_no_instance(self, db_session):
        processor_id = uuid4()

        shift = await ShiftStateMachine(db_session).mark_missed(
            processor_id, ShiftType.MORNING, date(2025, 3, 3), business_time(2025, 3, 3, 15, 0)
        )

        assert shift.status == ShiftStatus.MISSED.value
        assert shift.actual_start is None
        assert shift.scheduled_end == business_time(2025, 3, 3, 14, 0)

    @pytest.mark.asyncio
    async def test_existing_instance_left_alone(self, db_session):
        processor_id = uuid4()
        db_session.add(make_processor_shift(processor_id, shift_date=date(2025, 3, 3)))
        await db_session.flush()

        shift = await ShiftStateMachine(db_session).mark_missed(
            processor_id, ShiftType.MORNING, date(2025, 3, 3), business_time(2025, 3, 3, 15, 0)
        )

        assert shift is None
