"""
Deposit API Routes

Deposit approval and bonus preview.
"""

from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.dependencies import get_clock
from backend.middleware.rbac import (
    CurrentUser,
    Permission,
    require_permission,
    resolve_processor,
)
from backend.schemas.bonus import (
    AppliedMotivationResponse,
    BonusPreviewRequest,
    BonusPreviewResponse,
    DepositApprovalResponse,
)
from backend.services.bonus_engine import BonusEngineService
from engines.services.time_periods import shift_type_of

router = APIRouter()


@router.post(
    "/{deposit_id}/approve",
    response_model=DepositApprovalResponse,
    summary="Approve deposit",
    description="Approve a pending deposit, apply the bonus rules and record the commission.",
)
async def approve_deposit(
    deposit_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.DEPOSIT_APPROVE)),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> DepositApprovalResponse:
    outcome = await BonusEngineService(db).approve_deposit(deposit_id, clock())
    deposit = outcome.deposit
    calculation = outcome.calculation

    return DepositApprovalResponse(
        deposit_id=deposit.id,
        processor_id=deposit.processor_id,
        status=deposit.status,
        approved_at=deposit.approved_at,
        already_approved=outcome.already_approved,
        amount=deposit.amount,
        commission_rate=deposit.commission_rate,
        bonus_rate=deposit.bonus_rate,
        bonus_amount=deposit.bonus_amount,
        shift_id=outcome.shift.id if outcome.shift else None,
        tier_id=calculation.tier_id if calculation else None,
        cumulative_volume=calculation.cumulative_volume if calculation else None,
        applied_motivations=[
            AppliedMotivationResponse(**m.model_dump())
            for m in (calculation.applied_motivations if calculation else [])
        ],
        earnings_entry_id=outcome.entry.id if outcome.entry else None,
    )


@router.post(
    "/bonus-preview",
    response_model=BonusPreviewResponse,
    summary="Preview bonus",
)
async def preview_bonus(
    request: BonusPreviewRequest,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.EARNINGS_SELF)),
    clock: Callable[[], datetime] = Depends(get_clock),
) -> BonusPreviewResponse:
    """Compute the bonus for a hypothetical deposit without writing anything."""
    processor_id = resolve_processor(user, request.processor_id, Permission.EARNINGS_READ_ALL)
    now = clock()

    calculation, shift = await BonusEngineService(db).compute(processor_id, request.amount, now)

    return BonusPreviewResponse(
        processor_id=processor_id,
        shift_type=shift.type if shift else shift_type_of(now),
        amount=request.amount,
        applied_motivations=[
            AppliedMotivationResponse(**m.model_dump()) for m in calculation.applied_motivations
        ],
        **calculation.model_dump(exclude={"applied_motivations"}),
    )
