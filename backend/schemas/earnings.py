"""
Earnings Pydantic Schemas

API response models for earnings reporting.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any

from pydantic import BaseModel


class EarningsEntryResponse(BaseModel):
    id: str
    processor_id: str
    shift_id: str | None
    deposit_id: str | None
    kind: str
    amount: Decimal
    description: str
    details: dict[str, Any]
    created_at: datetime


class KindBreakdown(BaseModel):
    kind: str
    total: Decimal
    count: int
    percentage: Decimal


class EarningsBreakdownResponse(BaseModel):
    processor_id: str
    period_start: datetime
    period_end: datetime
    total: Decimal
    count: int
    by_kind: list[KindBreakdown]


class ShiftEarningsResponse(BaseModel):
    shift_id: str
    shift_date: str
    shift_type: str
    status: str
    total: Decimal
    count: int
