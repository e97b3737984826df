"""
Bonus Engine Service Tests

Deposit approval against the live rule set: tier selection by cumulative
daily volume, write-back, ledger entries and the processor facts that
motivations read.
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select

from backend.models.deposit import DepositStatus
from backend.models.earnings import EarningsEntry, EarningsKind
from backend.models.shift import ShiftStatus
from backend.services.bonus_engine import BonusEngineService
from engines.errors import NotFoundError, ValidationError
from engines.schemas.time_periods import ShiftType
from tests.factories import (
    business_time,
    make_deposit,
    make_global_settings,
    make_grid_rule,
    make_motivation,
    make_processor_shift,
)

NOW = business_time(2025, 3, 3, 10, 0)


def _morning_grid():
    return [
        make_grid_rule(ShiftType.MORNING, min_amount=Decimal("0.00"), max_amount=Decimal("999.99")),
        make_grid_rule(ShiftType.MORNING, min_amount=Decimal("1000.00"), bonus_percentage=Decimal("8.00")),
    ]


async def _commission_entries(db, deposit_id):
    result = await db.execute(select(EarningsEntry).where(EarningsEntry.deposit_id == deposit_id))
    return list(result.scalars().all())


class TestApproveDeposit:
    @pytest.mark.asyncio
    async def test_tier_follows_cumulative_daily_volume(self, db_session):
        processor_id = uuid4()
        shift = make_processor_shift(processor_id)
        earlier = make_deposit(
            processor_id,
            amount=Decimal("600.00"),
            status=DepositStatus.APPROVED.value,
            approved_at=business_time(2025, 3, 3, 8, 0),
        )
        pending = make_deposit(processor_id, amount=Decimal("500.00"))
        db_session.add_all([shift, earlier, pending, *_morning_grid()])
        await db_session.flush()

        outcome = await BonusEngineService(db_session).approve_deposit(pending.id, NOW)

        assert outcome.already_approved is False
        assert outcome.calculation.cumulative_volume == Decimal("1100.00")
        assert outcome.calculation.bonus_rate == Decimal("8.00")

        deposit = outcome.deposit
        assert deposit.status == DepositStatus.APPROVED.value
        assert deposit.approved_at == NOW
        assert deposit.commission_rate == Decimal("30")
        assert deposit.bonus_rate == Decimal("8")
        assert deposit.bonus_amount == Decimal("40.00")

        entries = await _commission_entries(db_session, pending.id)
        assert len(entries) == 1
        assert entries[0].kind == EarningsKind.DEPOSIT_COMMISSION.value
        assert entries[0].shift_id == shift.id
        # 30% of 500 plus the 40 bonus
        assert entries[0].amount == Decimal("190.00")
        assert entries[0].created_at == NOW

    @pytest.mark.asyncio
    async def test_previous_day_volume_not_counted(self, db_session):
        processor_id = uuid4()
        db_session.add_all(
            [
                make_deposit(
                    processor_id,
                    amount=Decimal("5000.00"),
                    status=DepositStatus.APPROVED.value,
                    # 05:59 local belongs to the previous canonical day
                    approved_at=business_time(2025, 3, 3, 5, 59),
                ),
                *_morning_grid(),
            ]
        )
        pending = make_deposit(processor_id, amount=Decimal("100.00"))
        db_session.add(pending)
        await db_session.flush()

        outcome = await BonusEngineService(db_session).approve_deposit(pending.id, NOW)

        assert outcome.calculation.cumulative_volume == Decimal("100.00")
        assert outcome.calculation.bonus_rate == Decimal("5.00")

    @pytest.mark.asyncio
    async def test_without_active_shift_uses_time_of_day(self, db_session):
        processor_id = uuid4()
        pending = make_deposit(processor_id)
        db_session.add_all(
            [pending, make_grid_rule(ShiftType.DAY, bonus_percentage=Decimal("12.00"))]
        )
        await db_session.flush()

        outcome = await BonusEngineService(db_session).approve_deposit(
            pending.id, business_time(2025, 3, 3, 15, 0)
        )

        assert outcome.shift is None
        assert outcome.calculation.bonus_rate == Decimal("12.00")
        entries = await _commission_entries(db_session, pending.id)
        assert entries[0].shift_id is None
        assert entries[0].details["calculation"]["shift_type"] == "DAY"

    @pytest.mark.asyncio
    async def test_global_rates_row_overrides_defaults(self, db_session):
        pending = make_deposit(uuid4(), amount=Decimal("200.00"))
        db_session.add_all(
            [
                pending,
                make_global_settings(
                    base_commission_rate=Decimal("25.00"),
                    base_bonus_rate=Decimal("3.00"),
                ),
            ]
        )
        await db_session.flush()

        outcome = await BonusEngineService(db_session).approve_deposit(pending.id, NOW)

        assert outcome.calculation.commission_rate == Decimal("25.00")
        assert outcome.calculation.bonus_rate == Decimal("3.00")
        assert outcome.deposit.bonus_amount == Decimal("6.00")

    @pytest.mark.asyncio
    async def test_second_approval_is_noop(self, db_session):
        pending = make_deposit(uuid4())
        db_session.add(pending)
        await db_session.flush()
        service = BonusEngineService(db_session)

        await service.approve_deposit(pending.id, NOW)
        again = await service.approve_deposit(pending.id, business_time(2025, 3, 3, 11, 0))

        assert again.already_approved is True
        assert again.deposit.approved_at == NOW
        assert len(await _commission_entries(db_session, pending.id)) == 1

    @pytest.mark.asyncio
    async def test_rejected_deposit(self, db_session):
        rejected = make_deposit(uuid4(), status=DepositStatus.REJECTED.value)
        db_session.add(rejected)
        await db_session.flush()

        with pytest.raises(ValidationError) as exc_info:
            await BonusEngineService(db_session).approve_deposit(rejected.id, NOW)
        assert exc_info.value.code == "DEPOSIT_REJECTED"

    @pytest.mark.asyncio
    async def test_unknown_deposit(self, db_session):
        with pytest.raises(NotFoundError):
            await BonusEngineService(db_session).approve_deposit(uuid4(), NOW)


class TestMotivationFacts:
    @pytest.mark.asyncio
    async def test_lifetime_count_includes_this_deposit(self, db_session):
        processor_id = uuid4()
        db_session.add_all(
            [
                make_deposit(
                    processor_id,
                    status=DepositStatus.APPROVED.value,
                    approved_at=business_time(2025, 2, 1, 12, 0),
                ),
                make_motivation(name="Second deposit", conditions={"minDeposits": 2}),
            ]
        )
        await db_session.flush()

        calculation, _ = await BonusEngineService(db_session).compute(
            processor_id, Decimal("100.00"), NOW
        )

        assert [m.name for m in calculation.applied_motivations] == ["Second deposit"]
        assert calculation.motivation_bonus == Decimal("10.00")

    @pytest.mark.asyncio
    async def test_consecutive_days_streak(self, db_session):
        processor_id = uuid4()
        db_session.add_all(
            [
                make_processor_shift(
                    processor_id,
                    shift_date=date(2025, 3, day),
                    status=ShiftStatus.COMPLETED.value,
                    actual_end=business_time(2025, 3, day, 14, 0),
                )
                for day in (1, 2)
            ]
            + [make_processor_shift(processor_id, shift_date=date(2025, 3, 3))]
        )
        await db_session.flush()

        streak = await BonusEngineService(db_session).consecutive_worked_days(processor_id, NOW)

        assert streak == 3

    @pytest.mark.asyncio
    async def test_streak_broken_by_gap_or_missed_day(self, db_session):
        processor_id = uuid4()
        db_session.add_all(
            [
                make_processor_shift(
                    processor_id,
                    shift_date=date(2025, 3, 1),
                    status=ShiftStatus.COMPLETED.value,
                    actual_end=business_time(2025, 3, 1, 14, 0),
                ),
                make_processor_shift(
                    processor_id,
                    shift_date=date(2025, 3, 2),
                    status=ShiftStatus.MISSED.value,
                    actual_start=None,
                ),
                make_processor_shift(processor_id, shift_date=date(2025, 3, 3)),
            ]
        )
        await db_session.flush()

        streak = await BonusEngineService(db_session).consecutive_worked_days(processor_id, NOW)

        assert streak == 1

    @pytest.mark.asyncio
    async def test_unread_facts_are_not_loaded(self, db_session, monkeypatch):
        service = BonusEngineService(db_session)

        async def fail(*args, **kwargs):
            raise AssertionError("fact should not be queried")

        monkeypatch.setattr(service, "lifetime_approved_count", fail)
        monkeypatch.setattr(service, "consecutive_worked_days", fail)

        calculation, shift = await service.compute(uuid4(), Decimal("100.00"), NOW)

        assert shift is None
        assert calculation.bonus_amount == Decimal("5.00")
