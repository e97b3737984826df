"""
Shift Registry

Shift type definitions and per-processor eligibility. When no definitions
have been configured the standard three-shift day applies.
"""

import logging
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from backend.models.shift import ShiftAssignment, ShiftDefinition
from backend.schemas.shift import ShiftDefinitionUpsert
from engines.schemas.time_periods import ShiftType, ShiftWindow

logger = logging.getLogger(__name__)

DEFAULT_DEFINITIONS = {
    ShiftType.MORNING: {"name": "Morning", "start_hour": 6, "end_hour": 14},
    ShiftType.DAY: {"name": "Day", "start_hour": 14, "end_hour": 22},
    ShiftType.NIGHT: {"name": "Night", "start_hour": 22, "end_hour": 30},
}


def default_definition(shift_type: ShiftType) -> ShiftDefinition:
    """Unsaved definition for the standard window of a shift type."""
    values = DEFAULT_DEFINITIONS[shift_type]
    return ShiftDefinition(
        shift_type=shift_type.value,
        name=values["name"],
        start_hour=values["start_hour"],
        start_minute=0,
        end_hour=values["end_hour"],
        end_minute=0,
        crosses_midnight=False,
        enabled=True,
    )


class ShiftRegistry:
    """Read and administer shift definitions and assignments."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_definitions(self) -> dict[ShiftType, ShiftDefinition]:
        """All definitions keyed by type, falling back to the defaults when none are stored."""
        result = await self.db.execute(select(ShiftDefinition))
        stored = {ShiftType(d.shift_type): d for d in result.scalars().all()}
        if not stored:
            return {t: default_definition(t) for t in ShiftType}
        return stored

    async def get_definition(self, shift_type: ShiftType) -> ShiftDefinition | None:
        return (await self.get_definitions()).get(shift_type)

    async def upsert_definition(
        self,
        shift_type: ShiftType,
        data: ShiftDefinitionUpsert,
    ) -> ShiftDefinition:
        """
        Create or replace the window for a shift type.

        The first write materializes the remaining defaults so that storing
        one definition does not silently drop the others.

        Raises:
            ValidationError: the window bounds are not a valid daily window
        """
        ShiftWindow.from_hours(
            data.start_hour,
            data.start_minute,
            data.end_hour,
            data.end_minute,
            data.crosses_midnight,
        )

        result = await self.db.execute(select(ShiftDefinition))
        stored = {ShiftType(d.shift_type): d for d in result.scalars().all()}
        if not stored:
            for t in ShiftType:
                if t != shift_type:
                    self.db.add(default_definition(t))

        definition = stored.get(shift_type)
        if definition is None:
            definition = ShiftDefinition(shift_type=shift_type.value)
            self.db.add(definition)

        for field, value in data.model_dump().items():
            setattr(definition, field, value)

        await self.db.flush()
        logger.info(f"Shift definition {shift_type.value} set to {definition!r}")
        return definition

    async def assigned_types(self, processor_id: UUID) -> set[ShiftType]:
        result = await self.db.execute(
            select(ShiftAssignment.shift_type).where(
                ShiftAssignment.processor_id == processor_id,
                ShiftAssignment.active.is_(True),
            )
        )
        return {ShiftType(t) for t in result.scalars().all()}

    async def is_assigned(self, processor_id: UUID, shift_type: ShiftType) -> bool:
        """A processor with no assignments may work any enabled shift type."""
        assigned = await self.assigned_types(processor_id)
        return not assigned or shift_type in assigned

    async def set_assignments(self, processor_id: UUID, shift_types: list[ShiftType]) -> set[ShiftType]:
        await self.db.execute(delete(ShiftAssignment).where(ShiftAssignment.processor_id == processor_id))
        for shift_type in set(shift_types):
            self.db.add(ShiftAssignment(processor_id=processor_id, shift_type=shift_type.value, active=True))
        await self.db.flush()
        logger.info(f"Processor {processor_id} assigned to {sorted(t.value for t in shift_types)}")
        return set(shift_types)

    async def assigned_processors(self, shift_type: ShiftType) -> list[UUID]:
        result = await self.db.execute(
            select(ShiftAssignment.processor_id).where(
                ShiftAssignment.shift_type == shift_type.value,
                ShiftAssignment.active.is_(True),
            )
        )
        return list(result.scalars().all())
