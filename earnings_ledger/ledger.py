"""
Earnings Ledger

Append-only ledger of processor earnings. Hourly pay is recorded when a
shift closes; commission plus bonus is recorded once per approved deposit.
Every report is recomputed from the entries with GROUP BY.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.deposit import DepositStatus, ProcessorDeposit
from backend.models.earnings import EarningsEntry, EarningsKind
from backend.models.shift import ProcessorShift

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
HOURS_PRECISION = Decimal("0.0001")
SECONDS_PER_HOUR = Decimal("3600")


def _money(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def hours_between(start: datetime, end: datetime) -> Decimal:
    return Decimal(str((end - start).total_seconds())) / SECONDS_PER_HOUR


class EarningsLedger:
    """
    Append-only earnings ledger.

    Entries are never updated or deleted. A deposit produces at most one
    entry, backed by the unique constraint on deposit_id.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        processor_id: UUID,
        kind: EarningsKind,
        amount: Decimal,
        description: str,
        shift_id: UUID | None = None,
        deposit_id: UUID | None = None,
        details: dict[str, Any] | None = None,
        earned_at: datetime | None = None,
    ) -> EarningsEntry:
        """
        Append a new entry to the ledger.

        Args:
            processor_id: Processor the earnings belong to
            kind: HOURLY or DEPOSIT_COMMISSION
            amount: Amount earned, rounded to cents
            description: Human-readable line for statements
            shift_id: Shift the entry was earned in
            deposit_id: Source deposit for commission entries
            details: JSON-serializable inputs of the computation
            earned_at: When the amount was earned; defaults to now

        Returns:
            The flushed entry
        """
        entry = EarningsEntry(
            id=uuid4(),
            processor_id=processor_id,
            shift_id=shift_id,
            deposit_id=deposit_id,
            kind=kind.value,
            amount=_money(amount),
            description=description,
            details=details or {},
        )
        if earned_at is not None:
            entry.created_at = earned_at
        self.db.add(entry)
        await self.db.flush()

        logger.info(
            f"Earnings entry created: kind={kind.value}, amount={entry.amount}, "
            f"processor={processor_id}"
        )
        return entry

    async def record_hourly(
        self,
        shift: ProcessorShift,
        hourly_rate: Decimal,
        max_hours: int = 24,
    ) -> EarningsEntry | None:
        """
        Record hourly pay for a closed shift over [actual_start, actual_end).

        Durations outside (0, max_hours] are dropped with a warning.
        """
        if shift.actual_start is None or shift.actual_end is None:
            logger.warning(f"Shift {shift.id} has no actual bounds; hourly pay not recorded")
            return None

        hours = hours_between(shift.actual_start, shift.actual_end)
        if not (Decimal("0") < hours <= Decimal(max_hours)):
            logger.warning(
                f"Shift {shift.id} duration {hours.quantize(HOURS_PRECISION)}h outside "
                f"(0, {max_hours}]; hourly pay not recorded"
            )
            return None

        amount = _money(hours * hourly_rate)
        return await self.append(
            processor_id=shift.processor_id,
            kind=EarningsKind.HOURLY,
            amount=amount,
            description=f"Hourly pay: {hours.quantize(Decimal('0.01'))}h x {hourly_rate}",
            shift_id=shift.id,
            details={
                "hours": str(hours.quantize(HOURS_PRECISION)),
                "hourly_rate": str(hourly_rate),
                "actual_start": shift.actual_start.isoformat(),
                "actual_end": shift.actual_end.isoformat(),
                "shift_type": shift.shift_type,
                "shift_date": shift.shift_date.isoformat(),
            },
            earned_at=shift.actual_end,
        )

    async def has_deposit_entry(self, deposit_id: UUID) -> bool:
        result = await self.db.execute(
            select(EarningsEntry.id).where(EarningsEntry.deposit_id == deposit_id)
        )
        return result.first() is not None

    async def record_deposit_commission(
        self,
        deposit: ProcessorDeposit,
        shift_id: UUID | None = None,
        calculation: dict[str, Any] | None = None,
    ) -> EarningsEntry | None:
        """
        Record commission plus bonus for an approved deposit.

        Returns None when the deposit already has an entry.
        """
        if await self.has_deposit_entry(deposit.id):
            return None

        commission_rate = deposit.commission_rate or Decimal("0")
        bonus_amount = deposit.bonus_amount or Decimal("0")
        commission_amount = _money(deposit.amount * commission_rate / Decimal("100"))
        total = commission_amount + _money(bonus_amount)

        details = {
            "deposit_amount": str(deposit.amount),
            "currency": deposit.currency,
            "commission_rate": str(commission_rate),
            "commission_amount": str(commission_amount),
            "bonus_rate": str(deposit.bonus_rate) if deposit.bonus_rate is not None else None,
            "bonus_amount": str(_money(bonus_amount)),
            "approved_at": deposit.approved_at.isoformat() if deposit.approved_at else None,
        }
        if calculation:
            details["calculation"] = calculation

        return await self.append(
            processor_id=deposit.processor_id,
            kind=EarningsKind.DEPOSIT_COMMISSION,
            amount=total,
            description=(
                f"Deposit {deposit.amount} {deposit.currency}: "
                f"commission {commission_amount} + bonus {_money(bonus_amount)}"
            ),
            shift_id=shift_id,
            deposit_id=deposit.id,
            details=details,
            earned_at=deposit.approved_at,
        )

    async def record_shift_deposits(self, shift: ProcessorShift) -> list[EarningsEntry]:
        """Record entries for deposits approved during the shift that have none yet."""
        if shift.actual_start is None or shift.actual_end is None:
            return []

        result = await self.db.execute(
            select(ProcessorDeposit)
            .outerjoin(EarningsEntry, EarningsEntry.deposit_id == ProcessorDeposit.id)
            .where(
                ProcessorDeposit.processor_id == shift.processor_id,
                ProcessorDeposit.status == DepositStatus.APPROVED.value,
                ProcessorDeposit.approved_at >= shift.actual_start,
                ProcessorDeposit.approved_at < shift.actual_end,
                EarningsEntry.id.is_(None),
            )
            .order_by(ProcessorDeposit.approved_at)
        )
        entries = []
        for deposit in result.scalars().all():
            entry = await self.record_deposit_commission(deposit, shift_id=shift.id)
            if entry is not None:
                entries.append(entry)
        return entries

    async def get_entries(
        self,
        processor_id: UUID,
        start: datetime | None = None,
        end: datetime | None = None,
        kind: EarningsKind | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[dict]:
        query = select(EarningsEntry).where(EarningsEntry.processor_id == processor_id)
        if start is not None:
            query = query.where(EarningsEntry.created_at >= start)
        if end is not None:
            query = query.where(EarningsEntry.created_at < end)
        if kind is not None:
            query = query.where(EarningsEntry.kind == kind.value)

        query = query.order_by(EarningsEntry.created_at.desc()).offset(offset).limit(limit)
        result = await self.db.execute(query)
        return [self._entry_to_dict(e) for e in result.scalars().all()]

    async def entries_for_shift(self, shift_id: UUID) -> list[dict]:
        result = await self.db.execute(
            select(EarningsEntry)
            .where(EarningsEntry.shift_id == shift_id)
            .order_by(EarningsEntry.created_at)
        )
        return [self._entry_to_dict(e) for e in result.scalars().all()]

    async def breakdown(self, processor_id: UUID, start: datetime, end: datetime) -> dict:
        """
        Earnings over [start, end) grouped by kind.

        Each kind reports its total, entry count and share of the overall
        total as a percentage.
        """
        result = await self.db.execute(
            select(
                EarningsEntry.kind,
                func.coalesce(func.sum(EarningsEntry.amount), 0),
                func.count(EarningsEntry.id),
            )
            .where(
                EarningsEntry.processor_id == processor_id,
                EarningsEntry.created_at >= start,
                EarningsEntry.created_at < end,
            )
            .group_by(EarningsEntry.kind)
            .order_by(EarningsEntry.kind)
        )
        rows = [(kind, _money(Decimal(str(total))), count) for kind, total, count in result.all()]

        overall = sum((total for _, total, _ in rows), Decimal("0.00"))
        by_kind = [
            {
                "kind": kind,
                "total": total,
                "count": count,
                "percentage": _money(total / overall * 100) if overall else Decimal("0.00"),
            }
            for kind, total, count in rows
        ]

        return {
            "processor_id": str(processor_id),
            "period_start": start.isoformat(),
            "period_end": end.isoformat(),
            "total": overall,
            "count": sum(count for _, _, count in rows),
            "by_kind": by_kind,
        }

    async def shift_totals(self, processor_id: UUID, start: datetime, end: datetime) -> list[dict]:
        """Per-shift earnings for shifts scheduled to start in [start, end)."""
        result = await self.db.execute(
            select(
                ProcessorShift.id,
                ProcessorShift.shift_date,
                ProcessorShift.shift_type,
                ProcessorShift.status,
                func.coalesce(func.sum(EarningsEntry.amount), 0),
                func.count(EarningsEntry.id),
            )
            .outerjoin(EarningsEntry, EarningsEntry.shift_id == ProcessorShift.id)
            .where(
                ProcessorShift.processor_id == processor_id,
                ProcessorShift.scheduled_start >= start,
                ProcessorShift.scheduled_start < end,
            )
            .group_by(
                ProcessorShift.id,
                ProcessorShift.shift_date,
                ProcessorShift.shift_type,
                ProcessorShift.status,
            )
            .order_by(ProcessorShift.shift_date)
        )
        return [
            {
                "shift_id": str(shift_id),
                "shift_date": shift_date.isoformat(),
                "shift_type": shift_type,
                "status": status,
                "total": _money(Decimal(str(total))),
                "count": count,
            }
            for shift_id, shift_date, shift_type, status, total, count in result.all()
        ]

    def _entry_to_dict(self, entry: EarningsEntry) -> dict:
        """Convert an earnings entry model to dict."""
        return {
            "id": str(entry.id),
            "processor_id": str(entry.processor_id),
            "shift_id": str(entry.shift_id) if entry.shift_id else None,
            "deposit_id": str(entry.deposit_id) if entry.deposit_id else None,
            "kind": entry.kind,
            "amount": entry.amount,
            "description": entry.description,
            "details": entry.details,
            "created_at": entry.created_at.isoformat(),
        }
