"""
Bonus Engine Schemas

Input/output models for per-deposit commission and bonus calculation.
"""

from decimal import Decimal
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from engines.schemas.time_periods import ShiftType

DEFAULT_HOURLY_RATE = Decimal("2.0")
DEFAULT_COMMISSION_RATE = Decimal("30.0")
DEFAULT_BONUS_RATE = Decimal("5.0")


class MotivationType(str, Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED_AMOUNT = "FIXED_AMOUNT"


class BonusTier(BaseModel):
    """One row of the bonus grid: a volume band for a shift type."""

    id: str = Field(..., description="Grid rule identifier")
    shift_type: ShiftType
    min_amount: Decimal = Field(..., ge=0, description="Inclusive lower bound of daily volume")
    max_amount: Decimal | None = Field(
        default=None,
        ge=0,
        description="Inclusive upper bound of daily volume; None is unbounded",
    )
    bonus_percentage: Decimal = Field(..., ge=0, le=100)
    fixed_bonus: Decimal | None = Field(default=None, ge=0)
    fixed_bonus_threshold: Decimal | None = Field(default=None, ge=0)
    active: bool = True

    @model_validator(mode="after")
    def _check_band(self) -> "BonusTier":
        if self.max_amount is not None and self.max_amount < self.min_amount:
            raise ValueError("max_amount must not be below min_amount")
        return self


class ProcessorStats(BaseModel):
    """
    Facts about the processor that motivation conditions may read.

    A field left as None was not computed; a condition that needs it fails
    for that motivation only.
    """

    lifetime_approved_deposits: int | None = Field(default=None, ge=0)
    daily_volume: Decimal | None = Field(default=None, ge=0)
    consecutive_days: int | None = Field(default=None, ge=0)


class AppliedMotivation(BaseModel):
    id: str
    name: str
    type: MotivationType
    value: Decimal
    amount: Decimal


class BonusInput(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    amount: Decimal = Field(..., gt=0, description="Deposit amount")
    shift_type: ShiftType
    cumulative_volume: Decimal = Field(
        ...,
        ge=0,
        description="Approved volume for the current day, including this deposit",
    )
    base_commission_rate: Decimal = Field(default=DEFAULT_COMMISSION_RATE, ge=0, le=100)
    base_bonus_rate: Decimal = Field(default=DEFAULT_BONUS_RATE, ge=0, le=100)
    tiers: list[BonusTier] = Field(default_factory=list)
    motivations: list[Any] = Field(
        default_factory=list,
        description="ParsedMotivation instances, conditions already parsed",
    )
    stats: ProcessorStats = Field(default_factory=ProcessorStats)


class BonusOutput(BaseModel):
    commission_rate: Decimal
    bonus_rate: Decimal
    tier_id: str | None
    tier_bonus: Decimal
    fixed_bonus: Decimal
    motivation_bonus: Decimal
    bonus_amount: Decimal
    cumulative_volume: Decimal
    applied_motivations: list[AppliedMotivation]
    skipped_motivations: list[str]
    calculation_notes: list[str]
