"""
Shift Pydantic Schemas

API request/response models for shift lifecycle endpoints.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from engines.schemas.time_periods import ShiftType


class ShiftStartRequest(BaseModel):
    shift_type: ShiftType = Field(..., description="Shift type to start")


class ShiftResponse(BaseModel):
    """Schema for a shift instance."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    processor_id: UUID
    shift_type: str
    shift_date: date
    scheduled_start: datetime
    scheduled_end: datetime
    actual_start: datetime | None
    actual_end: datetime | None
    status: str
    notes: str | None
    admin_notes: str | None
    created_at: datetime


class ShiftEndResponse(BaseModel):
    """Result of an end request; ``closed`` is False when nothing was ACTIVE."""

    closed: bool
    shift: ShiftResponse | None = None


class AvailableShift(BaseModel):
    shift_type: ShiftType
    name: str
    start: str = Field(..., description="Local start time, HH:MM")
    end: str = Field(..., description="Local end time, HH:MM")
    crosses_midnight: bool
    scheduled_start: datetime
    scheduled_end: datetime
    is_current: bool = Field(..., description="Local time is inside the window")
    can_start: bool = Field(..., description="A start request would be accepted now")
    reason: str | None = Field(default=None, description="Rejection code when can_start is False")


class CurrentShiftResponse(BaseModel):
    shift: ShiftResponse | None
    current_shift_type: ShiftType
    canonical_day: date
    available: list[AvailableShift]


class ShiftDefinitionUpsert(BaseModel):
    """Schema for creating or replacing a shift type's window."""

    name: str = Field(..., min_length=1, max_length=100)
    start_hour: int = Field(..., ge=0, le=23)
    start_minute: int = Field(default=0, ge=0, le=59)
    end_hour: int = Field(..., ge=0, le=47, description="24-47 means the next day")
    end_minute: int = Field(default=0, ge=0, le=59)
    crosses_midnight: bool = False
    enabled: bool = True


class ShiftDefinitionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    shift_type: str
    name: str
    start_hour: int
    start_minute: int
    end_hour: int
    end_minute: int
    crosses_midnight: bool
    enabled: bool


class AssignmentUpdate(BaseModel):
    shift_types: list[ShiftType] = Field(
        default_factory=list,
        description="Shift types the processor may work; empty allows all",
    )


class AssignmentResponse(BaseModel):
    processor_id: UUID
    shift_types: list[ShiftType]


class SweepFailure(BaseModel):
    shift_id: str
    error: str


class SweepResultResponse(BaseModel):
    checked: int
    succeeded: int
    failed: int
    skipped: int
    failures: list[SweepFailure]


class MissedSweepResponse(BaseModel):
    marked: int
    shift_ids: list[str]
