"""Pydantic API Schemas for the Shift Earnings Engine."""

from backend.schemas.bonus import (
    BonusGridRuleCreate,
    BonusGridRuleResponse,
    BonusGridRuleUpdate,
    BonusPreviewRequest,
    BonusPreviewResponse,
    DepositApprovalResponse,
    GlobalRatesResponse,
    GlobalRatesUpdate,
    MotivationCreate,
    MotivationResponse,
    MotivationUpdate,
)
from backend.schemas.earnings import (
    EarningsBreakdownResponse,
    EarningsEntryResponse,
    ShiftEarningsResponse,
)
from backend.schemas.shift import (
    AssignmentResponse,
    AssignmentUpdate,
    AvailableShift,
    CurrentShiftResponse,
    MissedSweepResponse,
    ShiftDefinitionResponse,
    ShiftDefinitionUpsert,
    ShiftEndResponse,
    ShiftResponse,
    ShiftStartRequest,
    SweepResultResponse,
)

__all__ = [
    "ShiftStartRequest",
    "ShiftResponse",
    "ShiftEndResponse",
    "AvailableShift",
    "CurrentShiftResponse",
    "ShiftDefinitionUpsert",
    "ShiftDefinitionResponse",
    "AssignmentUpdate",
    "AssignmentResponse",
    "SweepResultResponse",
    "MissedSweepResponse",
    "BonusGridRuleCreate",
    "BonusGridRuleUpdate",
    "BonusGridRuleResponse",
    "MotivationCreate",
    "MotivationUpdate",
    "MotivationResponse",
    "GlobalRatesUpdate",
    "GlobalRatesResponse",
    "DepositApprovalResponse",
    "BonusPreviewRequest",
    "BonusPreviewResponse",
    "EarningsEntryResponse",
    "EarningsBreakdownResponse",
    "ShiftEarningsResponse",
]
