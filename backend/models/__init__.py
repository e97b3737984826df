"""SQLAlchemy ORM Models for the Shift Earnings Engine."""

from backend.models.base import Base, TimestampMixin
from backend.models.bonus import BonusGridRule, GlobalSettings, Motivation
from backend.models.deposit import ProcessorDeposit
from backend.models.earnings import EarningsEntry
from backend.models.shift import ProcessorShift, ShiftAssignment, ShiftDefinition

__all__ = [
    "Base",
    "TimestampMixin",
    "ShiftDefinition",
    "ShiftAssignment",
    "ProcessorShift",
    "BonusGridRule",
    "Motivation",
    "GlobalSettings",
    "ProcessorDeposit",
    "EarningsEntry",
]
