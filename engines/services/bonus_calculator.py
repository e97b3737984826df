"""
Bonus Calculator

Pure calculation of the commission rate, bonus rate and bonus amount for a
single approved deposit. Grid tiers, the fixed tier bonus and motivations
stack additively.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal

from engines.errors import TransientComputationError
from engines.schemas.bonus import (
    AppliedMotivation,
    BonusInput,
    BonusOutput,
    BonusTier,
    MotivationType,
)
from engines.schemas.time_periods import ShiftType
from engines.services.motivation_conditions import ParsedMotivation

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")


def _money(value: Decimal) -> Decimal:
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def select_tier(tiers: list[BonusTier], shift_type: ShiftType, volume: Decimal) -> BonusTier | None:
    """
    Pick the grid tier for a shift type at a cumulative volume.

    Bounds are inclusive on both ends. Overlapping matches resolve to the
    highest percentage, then the lowest min_amount, then the lowest id.
    """
    candidates = [
        tier
        for tier in tiers
        if tier.active
        and tier.shift_type == shift_type
        and tier.min_amount <= volume
        and (tier.max_amount is None or volume <= tier.max_amount)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda t: (-t.bonus_percentage, t.min_amount, t.id))


def motivation_amount(motivation: ParsedMotivation, amount: Decimal) -> Decimal:
    if motivation.type == MotivationType.PERCENTAGE:
        return _money(amount * motivation.value / Decimal("100"))
    return _money(motivation.value)


def calculate_bonus(input_data: BonusInput) -> BonusOutput:
    """
    Calculate the bonus for one deposit.

    Algorithm:
    1. Select the grid tier at the cumulative volume (inclusive bounds)
    2. Tier percentage applies to the deposit; no tier falls back to the base rate
    3. Add the tier's fixed bonus once the volume reaches its threshold
    4. Add every motivation whose condition holds
    5. Sum the components, each rounded to cents
    """
    notes: list[str] = []
    amount = input_data.amount
    volume = input_data.cumulative_volume

    # Step 1-2: Grid tier or base rate
    tier = select_tier(input_data.tiers, input_data.shift_type, volume)
    if tier is not None:
        bonus_rate = tier.bonus_percentage
        notes.append(
            f"Tier {tier.id} ({input_data.shift_type.value}, "
            f"{tier.min_amount}-{tier.max_amount if tier.max_amount is not None else 'inf'}) "
            f"matched volume {volume}"
        )
    else:
        bonus_rate = input_data.base_bonus_rate
        notes.append(f"No tier matched volume {volume}; base bonus rate {bonus_rate}% applied")

    tier_bonus = _money(amount * bonus_rate / Decimal("100"))

    # Step 3: Fixed tier bonus
    fixed_bonus = Decimal("0.00")
    if (
        tier is not None
        and tier.fixed_bonus is not None
        and tier.fixed_bonus_threshold is not None
        and volume >= tier.fixed_bonus_threshold
    ):
        fixed_bonus = _money(tier.fixed_bonus)
        notes.append(f"Fixed bonus {fixed_bonus} reached at threshold {tier.fixed_bonus_threshold}")

    # Step 4: Motivations, each evaluated in isolation
    applied: list[AppliedMotivation] = []
    skipped: list[str] = []
    for motivation in input_data.motivations:
        try:
            satisfied = motivation.condition.is_satisfied(input_data.stats)
        except TransientComputationError as e:
            logger.warning(f"Skipping motivation {motivation.id} ({motivation.name}): {e.message}")
            skipped.append(motivation.id)
            continue
        if not satisfied:
            continue
        applied.append(
            AppliedMotivation(
                id=motivation.id,
                name=motivation.name,
                type=motivation.type,
                value=motivation.value,
                amount=motivation_amount(motivation, amount),
            )
        )

    motivation_bonus = sum((m.amount for m in applied), Decimal("0.00"))
    if applied:
        notes.append(f"{len(applied)} motivation(s) applied for {motivation_bonus}")

    # Step 5: Total
    bonus_amount = tier_bonus + fixed_bonus + motivation_bonus

    return BonusOutput(
        commission_rate=input_data.base_commission_rate,
        bonus_rate=bonus_rate,
        tier_id=tier.id if tier is not None else None,
        tier_bonus=tier_bonus,
        fixed_bonus=fixed_bonus,
        motivation_bonus=motivation_bonus,
        bonus_amount=bonus_amount,
        cumulative_volume=volume,
        applied_motivations=applied,
        skipped_motivations=skipped,
        calculation_notes=notes,
    )
