"""
Bonus Engine Service

Loads rules and processor facts from the database, runs the pure bonus
calculator, and applies the result when a deposit is approved.

Cumulative daily volume is read and then acted on without a lock, so two
deposits approved at the same instant may both see the volume before the
other, and pick a lower tier than a serialized order would. This is
accepted.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import Settings, get_settings
from backend.models.bonus import BonusGridRule, Motivation
from backend.models.deposit import DepositStatus, ProcessorDeposit
from backend.models.earnings import EarningsEntry
from backend.models.shift import ProcessorShift, ShiftStatus
from backend.services.rule_admin import load_global_rates
from backend.services.shift_state_machine import ShiftStateMachine
from earnings_ledger.ledger import EarningsLedger
from engines.errors import NotFoundError, ValidationError
from engines.schemas.bonus import BonusInput, BonusOutput, BonusTier, ProcessorStats
from engines.schemas.time_periods import ShiftType
from engines.services.bonus_calculator import calculate_bonus
from engines.services.motivation_conditions import ParsedMotivation, required_stats
from engines.services.time_periods import canonical_day, current_day_bounds, shift_type_of

logger = logging.getLogger(__name__)

CONSECUTIVE_DAYS_LOOKBACK = 366


@dataclass
class ApprovalOutcome:
    deposit: ProcessorDeposit
    already_approved: bool
    calculation: BonusOutput | None = None
    shift: ProcessorShift | None = None
    entry: EarningsEntry | None = None
    notes: list[str] = field(default_factory=list)


class BonusEngineService:
    """Per-deposit commission and bonus against the live rule set."""

    def __init__(self, db: AsyncSession, settings: Settings | None = None):
        self.db = db
        self.settings = settings or get_settings()
        self.machine = ShiftStateMachine(db, self.settings)
        self.ledger = EarningsLedger(db)

    async def load_tiers(self, shift_type: ShiftType) -> list[BonusTier]:
        result = await self.db.execute(
            select(BonusGridRule).where(
                BonusGridRule.shift_type == shift_type.value,
                BonusGridRule.active.is_(True),
            )
        )
        return [
            BonusTier(
                id=str(rule.id),
                shift_type=ShiftType(rule.shift_type),
                min_amount=rule.min_amount,
                max_amount=rule.max_amount,
                bonus_percentage=rule.bonus_percentage,
                fixed_bonus=rule.fixed_bonus,
                fixed_bonus_threshold=rule.fixed_bonus_threshold,
                active=rule.active,
            )
            for rule in result.scalars().all()
        ]

    async def load_motivations(self) -> list[ParsedMotivation]:
        """Active motivations with conditions parsed once, here."""
        result = await self.db.execute(select(Motivation).where(Motivation.active.is_(True)))
        return [
            ParsedMotivation.from_raw(
                id=m.id,
                name=m.name,
                type=m.type,
                value=m.value,
                conditions=m.conditions,
            )
            for m in result.scalars().all()
        ]

    async def daily_volume(
        self,
        processor_id: UUID,
        now: datetime,
        exclude_deposit_id: UUID | None = None,
    ) -> Decimal:
        """Approved deposit volume in the current canonical day."""
        day_start, day_end = current_day_bounds(now)
        query = select(func.coalesce(func.sum(ProcessorDeposit.amount), 0)).where(
            ProcessorDeposit.processor_id == processor_id,
            ProcessorDeposit.status == DepositStatus.APPROVED.value,
            ProcessorDeposit.approved_at >= day_start,
            ProcessorDeposit.approved_at < day_end,
        )
        if exclude_deposit_id is not None:
            query = query.where(ProcessorDeposit.id != exclude_deposit_id)
        total = (await self.db.execute(query)).scalar()
        return Decimal(str(total)).quantize(Decimal("0.01"))

    async def lifetime_approved_count(self, processor_id: UUID) -> int:
        result = await self.db.execute(
            select(func.count(ProcessorDeposit.id)).where(
                ProcessorDeposit.processor_id == processor_id,
                ProcessorDeposit.status == DepositStatus.APPROVED.value,
            )
        )
        return result.scalar() or 0

    async def consecutive_worked_days(self, processor_id: UUID, now: datetime) -> int:
        """Consecutive canonical days, ending today, on which the processor worked a shift."""
        today = canonical_day(now)
        result = await self.db.execute(
            select(ProcessorShift.shift_date)
            .where(
                ProcessorShift.processor_id == processor_id,
                ProcessorShift.status.in_([ShiftStatus.ACTIVE.value, ShiftStatus.COMPLETED.value]),
                ProcessorShift.shift_date <= today,
                ProcessorShift.shift_date > today - timedelta(days=CONSECUTIVE_DAYS_LOOKBACK),
            )
            .distinct()
        )
        worked = set(result.scalars().all())

        streak = 0
        day = today
        while day in worked:
            streak += 1
            day -= timedelta(days=1)
        return streak

    async def compute(
        self,
        processor_id: UUID,
        amount: Decimal,
        now: datetime,
        exclude_deposit_id: UUID | None = None,
    ) -> tuple[BonusOutput, ProcessorShift | None]:
        """
        Bonus for a new deposit of ``amount`` approved at ``now``.

        The shift type comes from the processor's ACTIVE shift, or from the
        time of day when there is none. Volume includes this deposit.
        """
        rates = await load_global_rates(self.db)
        shift = await self.machine.get_current(processor_id)
        shift_type = shift.type if shift is not None else shift_type_of(now)

        volume = await self.daily_volume(processor_id, now, exclude_deposit_id) + amount
        motivations = await self.load_motivations()

        needed: set[str] = set()
        for motivation in motivations:
            needed |= required_stats(motivation.condition)

        # Only query the facts some active motivation actually reads
        stats = ProcessorStats(
            daily_volume=volume,
            lifetime_approved_deposits=(
                await self.lifetime_approved_count(processor_id) + 1
                if "lifetime_approved_deposits" in needed
                else None
            ),
            consecutive_days=(
                await self.consecutive_worked_days(processor_id, now)
                if "consecutive_days" in needed
                else None
            ),
        )

        result = calculate_bonus(
            BonusInput(
                amount=amount,
                shift_type=shift_type,
                cumulative_volume=volume,
                base_commission_rate=rates.base_commission_rate,
                base_bonus_rate=rates.base_bonus_rate,
                tiers=await self.load_tiers(shift_type),
                motivations=motivations,
                stats=stats,
            )
        )
        return result, shift

    async def approve_deposit(self, deposit_id: UUID, now: datetime) -> ApprovalOutcome:
        """
        Approve a deposit, write back its rates and bonus, and record earnings.

        Approving an already-approved deposit changes nothing.

        Raises:
            NotFoundError: unknown deposit
            ValidationError: the deposit was rejected
        """
        deposit = await self.db.get(ProcessorDeposit, deposit_id)
        if deposit is None:
            raise NotFoundError(f"Deposit {deposit_id} not found")
        if deposit.status == DepositStatus.APPROVED.value:
            return ApprovalOutcome(deposit=deposit, already_approved=True)
        if deposit.status == DepositStatus.REJECTED.value:
            raise ValidationError(f"Deposit {deposit_id} was rejected", "DEPOSIT_REJECTED")

        calculation, shift = await self.compute(deposit.processor_id, deposit.amount, now, deposit.id)

        result = await self.db.execute(
            update(ProcessorDeposit)
            .where(
                ProcessorDeposit.id == deposit.id,
                ProcessorDeposit.status == DepositStatus.PENDING.value,
            )
            .values(
                status=DepositStatus.APPROVED.value,
                approved_at=now,
                commission_rate=calculation.commission_rate,
                bonus_rate=calculation.bonus_rate,
                bonus_amount=calculation.bonus_amount,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(deposit)
        if result.rowcount != 1:
            logger.info(f"Deposit {deposit_id} approved concurrently; nothing to do")
            return ApprovalOutcome(deposit=deposit, already_approved=True)

        entry = await self.ledger.record_deposit_commission(
            deposit,
            shift_id=shift.id if shift is not None else None,
            calculation={
                "shift_type": (shift.shift_type if shift is not None else shift_type_of(now).value),
                "tier_id": calculation.tier_id,
                "tier_bonus": str(calculation.tier_bonus),
                "fixed_bonus": str(calculation.fixed_bonus),
                "motivation_bonus": str(calculation.motivation_bonus),
                "cumulative_volume": str(calculation.cumulative_volume),
                "applied_motivations": [m.id for m in calculation.applied_motivations],
            },
        )

        logger.info(
            f"Deposit {deposit_id} approved: amount={deposit.amount}, "
            f"commission={calculation.commission_rate}%, bonus={calculation.bonus_amount}"
        )
        return ApprovalOutcome(
            deposit=deposit,
            already_approved=False,
            calculation=calculation,
            shift=shift,
            entry=entry,
            notes=calculation.calculation_notes,
        )
