"""
Bonus Engine MCP Tools

Deposit bonus calculation and business-calendar lookups exposed as MCP tools.
"""

from datetime import datetime
from decimal import Decimal

from fastmcp import FastMCP

from engines.schemas.bonus import (
    DEFAULT_BONUS_RATE,
    DEFAULT_COMMISSION_RATE,
    BonusInput,
    BonusTier,
)
from engines.schemas.time_periods import ShiftType, ShiftWindow
from engines.services.bonus_calculator import calculate_bonus
from engines.services.motivation_conditions import ParsedMotivation
from engines.services.time_periods import (
    canonical_day,
    current_day_bounds,
    is_within_start_window,
    scheduled_bounds,
    shift_date_for,
    shift_type_of,
)

# Initialize MCP server (will be started from server.py)
mcp = FastMCP("Shift Earnings Bonus Engine")


@mcp.tool()
async def calculate_deposit_bonus(
    amount: float,
    shift_type: str,
    cumulative_volume: float,
    tiers: list[dict] | None = None,
    motivations: list[dict] | None = None,
    base_commission_rate: float = float(DEFAULT_COMMISSION_RATE),
    base_bonus_rate: float = float(DEFAULT_BONUS_RATE),
    lifetime_approved_deposits: int | None = None,
    consecutive_days: int | None = None,
) -> dict:
    """
    Calculate commission and bonus for one deposit.

    Args:
        amount: Deposit amount
        shift_type: MORNING, DAY or NIGHT
        cumulative_volume: Approved volume for the day, including this deposit
        tiers: Bonus grid rows ({id, shift_type, min_amount, max_amount,
            bonus_percentage, fixed_bonus, fixed_bonus_threshold})
        motivations: Active motivations ({id, name, type, value, conditions})
        base_commission_rate: Commission percentage
        base_bonus_rate: Bonus percentage used when no tier matches
        lifetime_approved_deposits: Approved deposits so far, counting this one
        consecutive_days: Consecutive worked days ending today

    Returns:
        Dictionary containing rates, bonus components and applied motivations

    Example:
        A $1000 deposit at volume 1000 with tiers 0-999 at 5% and
        1000-4999 at 8% earns an $80.00 bonus.
    """
    input_data = BonusInput(
        amount=Decimal(str(amount)),
        shift_type=ShiftType(shift_type),
        cumulative_volume=Decimal(str(cumulative_volume)),
        base_commission_rate=Decimal(str(base_commission_rate)),
        base_bonus_rate=Decimal(str(base_bonus_rate)),
        tiers=[BonusTier(**{**tier, "id": str(tier["id"])}) for tier in tiers or []],
        motivations=[
            ParsedMotivation.from_raw(
                id=m["id"],
                name=m.get("name", str(m["id"])),
                type=m["type"],
                value=m["value"],
                conditions=m.get("conditions"),
            )
            for m in motivations or []
        ],
        stats={
            "lifetime_approved_deposits": lifetime_approved_deposits,
            "daily_volume": Decimal(str(cumulative_volume)),
            "consecutive_days": consecutive_days,
        },
    )

    result = calculate_bonus(input_data)

    # Convert to dict with float values for JSON serialization
    return {
        "commission_rate": float(result.commission_rate),
        "bonus_rate": float(result.bonus_rate),
        "tier_id": result.tier_id,
        "tier_bonus": float(result.tier_bonus),
        "fixed_bonus": float(result.fixed_bonus),
        "motivation_bonus": float(result.motivation_bonus),
        "bonus_amount": float(result.bonus_amount),
        "cumulative_volume": float(result.cumulative_volume),
        "applied_motivations": [
            {"id": m.id, "name": m.name, "type": m.type.value, "amount": float(m.amount)}
            for m in result.applied_motivations
        ],
        "skipped_motivations": result.skipped_motivations,
        "calculation_notes": result.calculation_notes,
    }


@mcp.tool()
async def describe_business_time(
    instant: str,
    start_hour: int | None = None,
    start_minute: int = 0,
    end_hour: int | None = None,
    end_minute: int = 0,
    crosses_midnight: bool = False,
) -> dict:
    """
    Place an instant on the business calendar (UTC+3, day turns at 06:00).

    Args:
        instant: ISO-8601 timestamp; naive values are read as UTC
        start_hour: Optional shift window start hour to test against
        start_minute: Window start minute
        end_hour: Window end hour (24-47 means next day)
        end_minute: Window end minute
        crosses_midnight: Explicit overnight flag

    Returns:
        Shift type, canonical day and its UTC bounds; with a window, also
        whether a shift may start now and its scheduled bounds
    """
    at = datetime.fromisoformat(instant)
    day_start, day_end = current_day_bounds(at)
    result = {
        "shift_type": shift_type_of(at).value,
        "canonical_day": canonical_day(at).isoformat(),
        "day_start": day_start.isoformat(),
        "day_end": day_end.isoformat(),
    }

    if start_hour is not None and end_hour is not None:
        window = ShiftWindow.from_hours(start_hour, start_minute, end_hour, end_minute, crosses_midnight)
        shift_date = shift_date_for(at, window)
        scheduled_start, scheduled_end = scheduled_bounds(shift_date, window)
        result.update(
            {
                "can_start": is_within_start_window(at, window),
                "shift_date": shift_date.isoformat(),
                "scheduled_start": scheduled_start.isoformat(),
                "scheduled_end": scheduled_end.isoformat(),
            }
        )

    return result
