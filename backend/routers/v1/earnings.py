"""
Earnings API Routes

Ledger reads: entries, breakdown by kind, and per-shift totals.
"""

from collections.abc import Callable
from datetime import datetime
from typing import Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.dependencies import get_clock
from backend.middleware.rbac import (
    CurrentUser,
    Permission,
    require_permission,
    resolve_processor,
)
from backend.models.earnings import EarningsKind
from backend.schemas.earnings import (
    EarningsBreakdownResponse,
    EarningsEntryResponse,
    ShiftEarningsResponse,
)
from earnings_ledger.ledger import EarningsLedger
from engines.errors import ValidationError
from engines.services.time_periods import current_day_bounds, month_bounds, week_bounds

router = APIRouter()

Period = Literal["day", "week", "month"]

PERIOD_BOUNDS = {
    "day": current_day_bounds,
    "week": week_bounds,
    "month": month_bounds,
}


def _resolve_period(
    period: Period,
    start: datetime | None,
    end: datetime | None,
    now: datetime,
) -> tuple[datetime, datetime]:
    """Explicit start/end win over the named period, which anchors on the canonical day."""
    if start is None and end is None:
        return PERIOD_BOUNDS[period](now)

    default_start, default_end = PERIOD_BOUNDS[period](now)
    start = start or default_start
    end = end or default_end
    if start >= end:
        raise ValidationError("Period start must be before its end", "INVALID_PERIOD")
    return start, end


@router.get(
    "/breakdown",
    response_model=EarningsBreakdownResponse,
    summary="Earnings breakdown",
    description="Earnings grouped by kind for a canonical day, week, month or an explicit range.",
)
async def get_breakdown(
    period: Period = Query("day"),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    processor_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EARNINGS_SELF)),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> EarningsBreakdownResponse:
    target = resolve_processor(user, processor_id, Permission.EARNINGS_READ_ALL)
    period_start, period_end = _resolve_period(period, start, end, clock())

    breakdown = await EarningsLedger(db).breakdown(target, period_start, period_end)
    return EarningsBreakdownResponse(**breakdown)


@router.get(
    "/entries",
    response_model=list[EarningsEntryResponse],
    summary="Earnings entries",
)
async def list_entries(
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    kind: EarningsKind | None = Query(None),
    processor_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EARNINGS_SELF)),
) -> list[EarningsEntryResponse]:
    """Newest first."""
    target = resolve_processor(user, processor_id, Permission.EARNINGS_READ_ALL)
    entries = await EarningsLedger(db).get_entries(target, start, end, kind, limit, offset)
    return [EarningsEntryResponse(**e) for e in entries]


@router.get(
    "/shifts",
    response_model=list[ShiftEarningsResponse],
    summary="Earnings by shift",
)
async def list_shift_earnings(
    period: Period = Query("week"),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    processor_id: UUID | None = Query(None),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EARNINGS_SELF)),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> list[ShiftEarningsResponse]:
    target = resolve_processor(user, processor_id, Permission.EARNINGS_READ_ALL)
    period_start, period_end = _resolve_period(period, start, end, clock())

    totals = await EarningsLedger(db).shift_totals(target, period_start, period_end)
    return [ShiftEarningsResponse(**t) for t in totals]
