"""
Rule Administration

Administrative CRUD for the bonus grid, motivations and the global rate
singleton. Rows are never hard-deleted; deactivation keeps history intact.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.config import get_settings
from backend.models.bonus import BonusGridRule, GlobalSettings, Motivation
from backend.schemas.bonus import (
    BonusGridRuleCreate,
    BonusGridRuleUpdate,
    GlobalRatesUpdate,
    MotivationCreate,
    MotivationUpdate,
)
from engines.errors import NotFoundError, ValidationError
from engines.schemas.bonus import MotivationType
from engines.schemas.time_periods import ShiftType
from engines.services.motivation_conditions import NoOp, parse_conditions

logger = logging.getLogger(__name__)

GLOBAL_SETTINGS_ID = 1
NULLABLE_GRID_FIELDS = {"max_amount", "fixed_bonus", "fixed_bonus_threshold", "description"}


@dataclass(frozen=True)
class GlobalRates:
    hourly_rate: Decimal
    base_commission_rate: Decimal
    base_bonus_rate: Decimal


def _check_percentage(name: str, value: Decimal | None) -> None:
    if value is not None and not (Decimal("0") <= value <= Decimal("100")):
        raise ValidationError(f"{name} must be between 0 and 100, got {value}", "INVALID_PERCENTAGE")


def _check_band(min_amount: Decimal, max_amount: Decimal | None) -> None:
    if max_amount is not None and max_amount < min_amount:
        raise ValidationError(
            f"max_amount {max_amount} is below min_amount {min_amount}",
            "INVALID_BAND",
        )


async def load_global_rates(db: AsyncSession) -> GlobalRates:
    """Rates from the singleton row, or the configured defaults when it is absent."""
    row = await db.get(GlobalSettings, GLOBAL_SETTINGS_ID)
    if row is None:
        settings = get_settings()
        return GlobalRates(
            hourly_rate=Decimal(str(settings.default_hourly_rate)),
            base_commission_rate=Decimal(str(settings.default_commission_rate)),
            base_bonus_rate=Decimal(str(settings.default_bonus_rate)),
        )
    return GlobalRates(
        hourly_rate=row.hourly_rate,
        base_commission_rate=row.base_commission_rate,
        base_bonus_rate=row.base_bonus_rate,
    )


class RuleAdminService:
    """Create, update and deactivate bonus rules and global rates."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # Global rates

    async def update_global_rates(self, data: GlobalRatesUpdate) -> GlobalRates:
        _check_percentage("base_commission_rate", data.base_commission_rate)
        _check_percentage("base_bonus_rate", data.base_bonus_rate)

        current = await load_global_rates(self.db)
        row = await self.db.get(GlobalSettings, GLOBAL_SETTINGS_ID)
        if row is None:
            row = GlobalSettings(
                id=GLOBAL_SETTINGS_ID,
                hourly_rate=current.hourly_rate,
                base_commission_rate=current.base_commission_rate,
                base_bonus_rate=current.base_bonus_rate,
            )
            self.db.add(row)

        for field, value in data.model_dump(exclude_none=True).items():
            setattr(row, field, value)

        await self.db.flush()
        logger.info(
            f"Global rates updated: hourly={row.hourly_rate}, "
            f"commission={row.base_commission_rate}%, bonus={row.base_bonus_rate}%"
        )
        return GlobalRates(
            hourly_rate=row.hourly_rate,
            base_commission_rate=row.base_commission_rate,
            base_bonus_rate=row.base_bonus_rate,
        )

    # Bonus grid

    async def list_grid(self, shift_type: ShiftType | None = None, include_inactive: bool = False) -> list[BonusGridRule]:
        query = select(BonusGridRule)
        if shift_type is not None:
            query = query.where(BonusGridRule.shift_type == shift_type.value)
        if not include_inactive:
            query = query.where(BonusGridRule.active.is_(True))
        query = query.order_by(BonusGridRule.shift_type, BonusGridRule.min_amount)
        result = await self.db.execute(query)
        return list(result.scalars().all())

    async def get_grid_rule(self, rule_id: UUID) -> BonusGridRule:
        rule = await self.db.get(BonusGridRule, rule_id)
        if rule is None:
            raise NotFoundError(f"Bonus grid rule {rule_id} not found")
        return rule

    async def create_grid_rule(self, data: BonusGridRuleCreate) -> BonusGridRule:
        _check_percentage("bonus_percentage", data.bonus_percentage)
        _check_band(data.min_amount, data.max_amount)

        values = data.model_dump()
        values["shift_type"] = data.shift_type.value
        rule = BonusGridRule(**values)
        self.db.add(rule)
        await self.db.flush()
        logger.info(f"Bonus grid rule created: {rule!r}")
        return rule

    async def update_grid_rule(self, rule_id: UUID, data: BonusGridRuleUpdate) -> BonusGridRule:
        rule = await self.get_grid_rule(rule_id)
        changes = {
            k: v
            for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k in NULLABLE_GRID_FIELDS
        }

        _check_percentage("bonus_percentage", changes.get("bonus_percentage"))
        _check_band(
            changes.get("min_amount", rule.min_amount),
            changes.get("max_amount", rule.max_amount),
        )

        for field, value in changes.items():
            setattr(rule, field, value)
        await self.db.flush()
        logger.info(f"Bonus grid rule {rule_id} updated: {sorted(changes)}")
        return rule

    async def deactivate_grid_rule(self, rule_id: UUID) -> BonusGridRule:
        rule = await self.get_grid_rule(rule_id)
        rule.active = False
        await self.db.flush()
        logger.info(f"Bonus grid rule {rule_id} deactivated")
        return rule

    # Motivations

    async def list_motivations(self, include_inactive: bool = False) -> list[Motivation]:
        query = select(Motivation)
        if not include_inactive:
            query = query.where(Motivation.active.is_(True))
        result = await self.db.execute(query.order_by(Motivation.name))
        return list(result.scalars().all())

    async def get_motivation(self, motivation_id: UUID) -> Motivation:
        motivation = await self.db.get(Motivation, motivation_id)
        if motivation is None:
            raise NotFoundError(f"Motivation {motivation_id} not found")
        return motivation

    def _check_motivation(self, type_: MotivationType, value: Decimal, conditions: dict | None) -> None:
        if type_ == MotivationType.PERCENTAGE:
            _check_percentage("value", value)
        if isinstance(parse_conditions(conditions), NoOp):
            raise ValidationError(f"Unrecognized motivation conditions: {conditions!r}", "INVALID_CONDITIONS")

    async def create_motivation(self, data: MotivationCreate) -> Motivation:
        self._check_motivation(data.type, data.value, data.conditions)

        motivation = Motivation(
            name=data.name,
            type=data.type.value,
            value=data.value,
            conditions=data.conditions,
            active=data.active,
        )
        self.db.add(motivation)
        await self.db.flush()
        logger.info(f"Motivation created: {motivation!r}")
        return motivation

    async def update_motivation(self, motivation_id: UUID, data: MotivationUpdate) -> Motivation:
        motivation = await self.get_motivation(motivation_id)
        changes = {
            k: v
            for k, v in data.model_dump(exclude_unset=True).items()
            if v is not None or k == "conditions"
        }
        if "type" in changes:
            changes["type"] = MotivationType(changes["type"]).value

        self._check_motivation(
            MotivationType(changes.get("type", motivation.type)),
            changes.get("value", motivation.value),
            changes["conditions"] if "conditions" in changes else motivation.conditions,
        )

        for field, value in changes.items():
            setattr(motivation, field, value)
        await self.db.flush()
        logger.info(f"Motivation {motivation_id} updated: {sorted(changes)}")
        return motivation

    async def deactivate_motivation(self, motivation_id: UUID) -> Motivation:
        motivation = await self.get_motivation(motivation_id)
        motivation.active = False
        await self.db.flush()
        logger.info(f"Motivation {motivation_id} deactivated")
        return motivation
