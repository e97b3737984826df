"""
Bonus Rule Pydantic Schemas

API request/response models for the bonus grid, motivations, global rates
and deposit approval.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from engines.schemas.bonus import MotivationType
from engines.schemas.time_periods import ShiftType


class BonusGridRuleCreate(BaseModel):
    shift_type: ShiftType
    min_amount: Decimal = Field(..., ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0, description="None is unbounded")
    bonus_percentage: Decimal = Field(..., description="0-100")
    fixed_bonus: Decimal | None = Field(default=None, ge=0)
    fixed_bonus_threshold: Decimal | None = Field(default=None, ge=0)
    active: bool = True
    description: str | None = None


class BonusGridRuleUpdate(BaseModel):
    """All fields optional; only provided fields change."""

    min_amount: Decimal | None = Field(default=None, ge=0)
    max_amount: Decimal | None = Field(default=None, ge=0)
    bonus_percentage: Decimal | None = None
    fixed_bonus: Decimal | None = Field(default=None, ge=0)
    fixed_bonus_threshold: Decimal | None = Field(default=None, ge=0)
    active: bool | None = None
    description: str | None = None


class BonusGridRuleResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    shift_type: str
    min_amount: Decimal
    max_amount: Decimal | None
    bonus_percentage: Decimal
    fixed_bonus: Decimal | None
    fixed_bonus_threshold: Decimal | None
    active: bool
    description: str | None


class MotivationCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: MotivationType
    value: Decimal = Field(..., ge=0)
    conditions: dict[str, Any] | None = Field(
        default=None,
        description='e.g. {"minDeposits": 10, "minAmount": 5000}',
    )
    active: bool = True


class MotivationUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    type: MotivationType | None = None
    value: Decimal | None = Field(default=None, ge=0)
    conditions: dict[str, Any] | None = None
    active: bool | None = None


class MotivationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    type: str
    value: Decimal
    conditions: dict[str, Any] | None
    active: bool


class GlobalRatesUpdate(BaseModel):
    hourly_rate: Decimal | None = Field(default=None, ge=0)
    base_commission_rate: Decimal | None = None
    base_bonus_rate: Decimal | None = None


class GlobalRatesResponse(BaseModel):
    hourly_rate: Decimal
    base_commission_rate: Decimal
    base_bonus_rate: Decimal


class AppliedMotivationResponse(BaseModel):
    id: str
    name: str
    type: MotivationType
    amount: Decimal


class DepositApprovalResponse(BaseModel):
    """Outcome of approving a deposit."""

    deposit_id: UUID
    processor_id: UUID
    status: str
    approved_at: datetime | None
    already_approved: bool
    amount: Decimal
    commission_rate: Decimal | None
    bonus_rate: Decimal | None
    bonus_amount: Decimal | None
    shift_id: UUID | None = None
    tier_id: str | None = None
    cumulative_volume: Decimal | None = None
    applied_motivations: list[AppliedMotivationResponse] = Field(default_factory=list)
    earnings_entry_id: UUID | None = None


class BonusPreviewRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    processor_id: UUID | None = Field(default=None, description="Defaults to the caller")


class BonusPreviewResponse(BaseModel):
    """What approving a deposit of ``amount`` right now would pay."""

    processor_id: UUID
    shift_type: ShiftType
    amount: Decimal
    commission_rate: Decimal
    bonus_rate: Decimal
    tier_id: str | None
    tier_bonus: Decimal
    fixed_bonus: Decimal
    motivation_bonus: Decimal
    bonus_amount: Decimal
    cumulative_volume: Decimal
    applied_motivations: list[AppliedMotivationResponse]
    skipped_motivations: list[str]
    calculation_notes: list[str]
