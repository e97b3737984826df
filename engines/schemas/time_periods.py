"""
Time Period Schemas

Shift types and the minute-of-day window model shared by the shift state
machine and the bonus engine.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from engines.errors import ValidationError

MINUTES_PER_DAY = 24 * 60


class ShiftType(str, Enum):
    MORNING = "MORNING"
    DAY = "DAY"
    NIGHT = "NIGHT"


class ShiftWindow(BaseModel):
    """
    A daily shift window expressed as minutes after local midnight (UTC+3).

    ``end_minute`` is always normalized into [0, 1440). A window that runs
    past midnight has ``end_minute < start_minute`` and ``crosses_midnight``
    set, whichever way the definition was written.
    """

    model_config = ConfigDict(frozen=True)

    start_minute: int = Field(..., ge=0, lt=MINUTES_PER_DAY)
    end_minute: int = Field(..., ge=0, lt=MINUTES_PER_DAY)
    crosses_midnight: bool = Field(default=False)

    @model_validator(mode="after")
    def _check_orientation(self) -> "ShiftWindow":
        if self.start_minute == self.end_minute:
            raise ValueError("Shift window must have a non-zero length")
        if self.crosses_midnight != (self.end_minute < self.start_minute):
            raise ValueError("crosses_midnight does not match window orientation")
        return self

    @classmethod
    def from_hours(
        cls,
        start_hour: int,
        start_minute: int,
        end_hour: int,
        end_minute: int,
        crosses_midnight: bool = False,
    ) -> "ShiftWindow":
        """
        Build a window from either representation of an overnight shift.

        ``end_hour`` in [24, 47] means "next day"; ``crosses_midnight=True``
        with ``end_hour < 24`` means the same thing. Both yield an identical
        window. An end earlier than the start is also read as overnight.
        """
        if not 0 <= start_hour < 24:
            raise ValidationError(f"start_hour out of range: {start_hour}", "INVALID_WINDOW")
        if not 0 <= end_hour < 48:
            raise ValidationError(f"end_hour out of range: {end_hour}", "INVALID_WINDOW")
        if not (0 <= start_minute < 60 and 0 <= end_minute < 60):
            raise ValidationError("minutes must be within [0, 59]", "INVALID_WINDOW")

        start = start_hour * 60 + start_minute
        end = end_hour * 60 + end_minute
        if end >= MINUTES_PER_DAY:
            end -= MINUTES_PER_DAY
            crosses_midnight = True
        elif end < start:
            crosses_midnight = True

        if crosses_midnight and end >= start:
            raise ValidationError(
                "Overnight window must end before it starts on the next day",
                "INVALID_WINDOW",
            )
        if start == end:
            raise ValidationError("Shift window must have a non-zero length", "INVALID_WINDOW")

        return cls(start_minute=start, end_minute=end, crosses_midnight=crosses_midnight)

    @property
    def duration_minutes(self) -> int:
        if self.crosses_midnight:
            return MINUTES_PER_DAY - self.start_minute + self.end_minute
        return self.end_minute - self.start_minute

    def contains(self, minute_of_day: int) -> bool:
        if self.crosses_midnight:
            return minute_of_day >= self.start_minute or minute_of_day < self.end_minute
        return self.start_minute <= minute_of_day < self.end_minute
