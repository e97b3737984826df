"""
Admin API Routes

Shift definitions, processor assignments, the bonus grid, motivations,
global rates, and manual sweep triggers.
"""

from collections.abc import Callable
from dataclasses import asdict
from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from backend.db.session import get_db
from backend.dependencies import get_auto_closer, get_clock
from backend.middleware.rbac import CurrentUser, Permission, require_permission
from backend.schemas.bonus import (
    BonusGridRuleCreate,
    BonusGridRuleResponse,
    BonusGridRuleUpdate,
    GlobalRatesResponse,
    GlobalRatesUpdate,
    MotivationCreate,
    MotivationResponse,
    MotivationUpdate,
)
from backend.schemas.shift import (
    AssignmentResponse,
    AssignmentUpdate,
    MissedSweepResponse,
    ShiftDefinitionResponse,
    ShiftDefinitionUpsert,
    SweepResultResponse,
)
from backend.services.auto_closer import AutoCloser, MissedShiftSweeper
from backend.services.rule_admin import RuleAdminService, load_global_rates
from backend.services.shift_registry import ShiftRegistry
from engines.schemas.time_periods import ShiftType

router = APIRouter()


# --- Shift definitions ---


@router.get("/shift-definitions", response_model=list[ShiftDefinitionResponse])
async def list_shift_definitions(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_SHIFTS)),
):
    """Configured windows, or the built-in defaults when none are stored."""
    definitions = await ShiftRegistry(db).get_definitions()
    return [ShiftDefinitionResponse.model_validate(definitions[t]) for t in ShiftType if t in definitions]


@router.put("/shift-definitions/{shift_type}", response_model=ShiftDefinitionResponse)
async def upsert_shift_definition(
    shift_type: ShiftType,
    request: ShiftDefinitionUpsert,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_SHIFTS)),
):
    definition = await ShiftRegistry(db).upsert_definition(shift_type, request)
    return ShiftDefinitionResponse.model_validate(definition)


# --- Assignments ---


@router.get("/processors/{processor_id}/assignments", response_model=AssignmentResponse)
async def get_assignments(
    processor_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_SHIFTS)),
):
    shift_types = await ShiftRegistry(db).assigned_types(processor_id)
    return AssignmentResponse(processor_id=processor_id, shift_types=sorted(shift_types))


@router.put("/processors/{processor_id}/assignments", response_model=AssignmentResponse)
async def set_assignments(
    processor_id: UUID,
    request: AssignmentUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_SHIFTS)),
):
    """Replace the shift types a processor may work."""
    shift_types = await ShiftRegistry(db).set_assignments(processor_id, request.shift_types)
    return AssignmentResponse(processor_id=processor_id, shift_types=sorted(shift_types))


# --- Bonus grid ---


@router.get("/bonus-grid", response_model=list[BonusGridRuleResponse])
async def list_bonus_grid(
    shift_type: ShiftType | None = Query(None),
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    rules = await RuleAdminService(db).list_grid(shift_type, include_inactive)
    return [BonusGridRuleResponse.model_validate(r) for r in rules]


@router.post("/bonus-grid", response_model=BonusGridRuleResponse, status_code=201)
async def create_bonus_grid_rule(
    request: BonusGridRuleCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    rule = await RuleAdminService(db).create_grid_rule(request)
    return BonusGridRuleResponse.model_validate(rule)


@router.patch("/bonus-grid/{rule_id}", response_model=BonusGridRuleResponse)
async def update_bonus_grid_rule(
    rule_id: UUID,
    request: BonusGridRuleUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    rule = await RuleAdminService(db).update_grid_rule(rule_id, request)
    return BonusGridRuleResponse.model_validate(rule)


@router.delete("/bonus-grid/{rule_id}", response_model=BonusGridRuleResponse)
async def deactivate_bonus_grid_rule(
    rule_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    """Rules are deactivated, never deleted."""
    rule = await RuleAdminService(db).deactivate_grid_rule(rule_id)
    return BonusGridRuleResponse.model_validate(rule)


# --- Motivations ---


@router.get("/motivations", response_model=list[MotivationResponse])
async def list_motivations(
    include_inactive: bool = Query(False),
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    motivations = await RuleAdminService(db).list_motivations(include_inactive)
    return [MotivationResponse.model_validate(m) for m in motivations]


@router.post("/motivations", response_model=MotivationResponse, status_code=201)
async def create_motivation(
    request: MotivationCreate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    motivation = await RuleAdminService(db).create_motivation(request)
    return MotivationResponse.model_validate(motivation)


@router.patch("/motivations/{motivation_id}", response_model=MotivationResponse)
async def update_motivation(
    motivation_id: UUID,
    request: MotivationUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    motivation = await RuleAdminService(db).update_motivation(motivation_id, request)
    return MotivationResponse.model_validate(motivation)


@router.delete("/motivations/{motivation_id}", response_model=MotivationResponse)
async def deactivate_motivation(
    motivation_id: UUID,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    motivation = await RuleAdminService(db).deactivate_motivation(motivation_id)
    return MotivationResponse.model_validate(motivation)


# --- Global rates ---


@router.get("/global-rates", response_model=GlobalRatesResponse)
async def get_global_rates(
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    return GlobalRatesResponse(**asdict(await load_global_rates(db)))


@router.put("/global-rates", response_model=GlobalRatesResponse)
async def update_global_rates(
    request: GlobalRatesUpdate,
    db: AsyncSession = Depends(get_db),
    user: CurrentUser = Depends(require_permission(Permission.ADMIN_RULES)),
):
    rates = await RuleAdminService(db).update_global_rates(request)
    return GlobalRatesResponse(**asdict(rates))


# --- Sweeps ---


@router.post("/sweeps/auto-close", response_model=SweepResultResponse)
async def run_auto_close_sweep(
    user: CurrentUser = Depends(require_permission(Permission.SWEEP_RUN)),
    auto_closer: AutoCloser = Depends(get_auto_closer),
):
    """Close every overdue shift now, ignoring the debounce interval."""
    result = await auto_closer.force_sweep()
    return SweepResultResponse(**result.to_dict())


@router.post("/sweeps/missed", response_model=MissedSweepResponse)
async def run_missed_shift_sweep(
    user: CurrentUser = Depends(require_permission(Permission.SWEEP_RUN)),
    auto_closer: AutoCloser = Depends(get_auto_closer),
    clock: Callable[[], datetime] = Depends(get_clock),
):
    sweeper = MissedShiftSweeper(auto_closer.session_factory, auto_closer.settings)
    result = await sweeper.sweep(clock())
    return MissedSweepResponse(**result.to_dict())
