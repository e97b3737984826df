"""
Motivation Conditions

Motivation payloads are stored as loosely-typed JSON. They are parsed once,
when motivations are loaded, into a small set of clause types so evaluation
never touches raw JSON. Anything unrecognized becomes ``NoOp``, which is
never satisfied.

Accepted payload keys (camelCase or snake_case):

    {"minDeposits": 10}       lifetime approved deposits, counting this one
    {"minAmount": 5000}       cumulative approved volume for the current day
    {"consecutiveDays": 3}    consecutive days, ending today, with a worked shift

A payload with several keys requires all of them. An empty payload is
unconditional.
"""

import json
import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from engines.errors import TransientComputationError
from engines.schemas.bonus import MotivationType, ProcessorStats

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MinDepositsCount:
    count: int

    def is_satisfied(self, stats: ProcessorStats) -> bool:
        if stats.lifetime_approved_deposits is None:
            raise TransientComputationError("Lifetime deposit count unavailable")
        return stats.lifetime_approved_deposits >= self.count


@dataclass(frozen=True)
class MinDailyAmount:
    amount: Decimal

    def is_satisfied(self, stats: ProcessorStats) -> bool:
        if stats.daily_volume is None:
            raise TransientComputationError("Daily volume unavailable")
        return stats.daily_volume >= self.amount


@dataclass(frozen=True)
class ConsecutiveDays:
    days: int

    def is_satisfied(self, stats: ProcessorStats) -> bool:
        if stats.consecutive_days is None:
            raise TransientComputationError("Consecutive worked days unavailable")
        return stats.consecutive_days >= self.days


@dataclass(frozen=True)
class NoOp:
    reason: str

    def is_satisfied(self, stats: ProcessorStats) -> bool:
        return False


@dataclass(frozen=True)
class AllOf:
    clauses: tuple = ()

    def is_satisfied(self, stats: ProcessorStats) -> bool:
        return all(clause.is_satisfied(stats) for clause in self.clauses)


Condition = MinDepositsCount | MinDailyAmount | ConsecutiveDays | NoOp | AllOf

_CLAUSE_KEYS = {
    "minDeposits": "min_deposits",
    "min_deposits": "min_deposits",
    "minAmount": "min_amount",
    "min_amount": "min_amount",
    "consecutiveDays": "consecutive_days",
    "consecutive_days": "consecutive_days",
}


def _to_count(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value if value >= 0 else None
    if isinstance(value, float) and value.is_integer() and value >= 0:
        return int(value)
    return None


def _to_amount(value: Any) -> Decimal | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        return None
    if not amount.is_finite() or amount < 0:
        return None
    return amount


def _parse_clause(key: str, value: Any) -> Condition:
    kind = _CLAUSE_KEYS.get(key)
    if kind is None:
        return NoOp(f"unknown condition key {key!r}")

    if kind == "min_amount":
        amount = _to_amount(value)
        if amount is None:
            return NoOp(f"invalid amount for {key!r}: {value!r}")
        return MinDailyAmount(amount)

    count = _to_count(value)
    if count is None:
        return NoOp(f"invalid count for {key!r}: {value!r}")
    if kind == "min_deposits":
        return MinDepositsCount(count)
    return ConsecutiveDays(count)


def parse_conditions(raw: Any, motivation_id: object | None = None) -> Condition:
    """
    Parse a stored motivation payload into a condition.

    Accepts a dict, a JSON string or None. Malformed payloads log a warning
    here, at load time, and yield ``NoOp``.
    """
    if raw is None or raw == "":
        return AllOf(())

    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Motivation {motivation_id}: unparseable conditions ({e})")
            return NoOp("unparseable JSON")

    if not isinstance(raw, dict):
        logger.warning(f"Motivation {motivation_id}: conditions must be an object, got {type(raw).__name__}")
        return NoOp("conditions must be an object")

    clauses = []
    for key, value in raw.items():
        clause = _parse_clause(key, value)
        if isinstance(clause, NoOp):
            logger.warning(f"Motivation {motivation_id}: {clause.reason}")
            return clause
        clauses.append(clause)

    return AllOf(tuple(clauses))


def required_stats(condition: Condition) -> set[str]:
    """Names of the ProcessorStats fields a condition reads."""
    if isinstance(condition, AllOf):
        needed: set[str] = set()
        for clause in condition.clauses:
            needed |= required_stats(clause)
        return needed
    if isinstance(condition, MinDepositsCount):
        return {"lifetime_approved_deposits"}
    if isinstance(condition, MinDailyAmount):
        return {"daily_volume"}
    if isinstance(condition, ConsecutiveDays):
        return {"consecutive_days"}
    return set()


@dataclass(frozen=True)
class ParsedMotivation:
    """An active motivation with its conditions already parsed."""

    id: str
    name: str
    type: MotivationType
    value: Decimal
    condition: Condition

    @classmethod
    def from_raw(
        cls,
        id: object,
        name: str,
        type: str | MotivationType,
        value: Decimal | float | str,
        conditions: Any,
    ) -> "ParsedMotivation":
        return cls(
            id=str(id),
            name=name,
            type=MotivationType(type),
            value=Decimal(str(value)),
            condition=parse_conditions(conditions, motivation_id=id),
        )
