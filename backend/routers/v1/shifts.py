"""
Shift API Routes

Endpoints for processors to start, end and review their shifts. Every call
first gives the auto-closer a chance to sweep overdue shifts.
"""

from collections.abc import Callable
from datetime import date, datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.dependencies import get_auto_closer, get_clock
from backend.middleware.rbac import (
    CurrentUser,
    Permission,
    require_permission,
    resolve_processor,
)
from backend.models.shift import ShiftStatus
from backend.schemas.earnings import EarningsEntryResponse
from backend.schemas.shift import (
    AvailableShift,
    CurrentShiftResponse,
    ShiftEndResponse,
    ShiftResponse,
    ShiftStartRequest,
)
from backend.services.auto_closer import AutoCloser
from backend.services.shift_state_machine import ShiftStateMachine
from earnings_ledger.ledger import EarningsLedger
from engines.services.time_periods import canonical_day, shift_type_of

router = APIRouter()


@router.get(
    "/current",
    response_model=CurrentShiftResponse,
    summary="Current shift",
    description="The caller's ACTIVE shift plus every shift type and whether it can be started now.",
)
async def get_current_shift(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.SHIFT_SELF)),
    auto_closer: AutoCloser = Depends(get_auto_closer),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> CurrentShiftResponse:
    await auto_closer.maybe_sweep()
    now = clock()

    machine = ShiftStateMachine(db)
    shift = await machine.get_current(user.id)
    available = await machine.available_shifts(user.id, now)

    return CurrentShiftResponse(
        shift=ShiftResponse.model_validate(shift) if shift else None,
        current_shift_type=shift_type_of(now),
        canonical_day=canonical_day(now),
        available=[AvailableShift(**a) for a in available],
    )


@router.post(
    "/start",
    response_model=ShiftResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start shift",
)
async def start_shift(
    request: ShiftStartRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.SHIFT_SELF)),
    auto_closer: AutoCloser = Depends(get_auto_closer),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ShiftResponse:
    """Start a shift of the given type for the caller."""
    await auto_closer.maybe_sweep()

    shift = await ShiftStateMachine(db).start(user.id, request.shift_type, clock())
    return ShiftResponse.model_validate(shift)


@router.post(
    "/end",
    response_model=ShiftEndResponse,
    summary="End shift",
)
async def end_shift(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.SHIFT_SELF)),
    auto_closer: AutoCloser = Depends(get_auto_closer),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> ShiftEndResponse:
    """End the caller's ACTIVE shift and record its earnings."""
    await auto_closer.maybe_sweep()

    shift, closed = await ShiftStateMachine(db).end(user.id, clock())
    return ShiftEndResponse(closed=closed, shift=ShiftResponse.model_validate(shift))


@router.get(
    "/",
    response_model=list[ShiftResponse],
    summary="List shifts",
)
async def list_shifts(
    start_day: date | None = Query(None, description="First canonical day, inclusive"),
    end_day: date | None = Query(None, description="Last canonical day, inclusive"),
    shift_status: ShiftStatus | None = Query(None, alias="status"),
    processor_id: UUID | None = Query(None, description="Admins may list another processor"),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.SHIFT_SELF)),
    auto_closer: AutoCloser = Depends(get_auto_closer),
) -> list[ShiftResponse]:
    await auto_closer.maybe_sweep()

    target = resolve_processor(user, processor_id, Permission.SHIFT_READ_ALL)
    shifts = await ShiftStateMachine(db).list_shifts(target, start_day, end_day, shift_status)
    return [ShiftResponse.model_validate(s) for s in shifts]


@router.get(
    "/{shift_id}/earnings",
    response_model=list[EarningsEntryResponse],
    summary="Earnings for a shift",
)
async def get_shift_earnings(
    shift_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EARNINGS_SELF)),
) -> list[EarningsEntryResponse]:
    shift = await ShiftStateMachine(db).get_shift(shift_id)
    resolve_processor(user, shift.processor_id, Permission.EARNINGS_READ_ALL)

    entries = await EarningsLedger(db).entries_for_shift(shift_id)
    return [EarningsEntryResponse(**e) for e in entries]
