"""Initial schema: shifts, bonus rules, deposits and the earnings ledger

Revision ID: s001
Revises:
Create Date: 2026-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "s001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # === shift_definitions ===
    op.create_table(
        "shift_definitions",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("shift_type", sa.String(10), nullable=False, comment="MORNING|DAY|NIGHT"),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("start_hour", sa.Integer(), nullable=False),
        sa.Column("start_minute", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("end_hour", sa.Integer(), nullable=False, comment="0-47; values of 24 and above fall on the next day"),
        sa.Column("end_minute", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("crosses_midnight", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("shift_type"),
        sa.CheckConstraint("shift_type IN ('MORNING', 'DAY', 'NIGHT')", name="ck_shift_definitions_type"),
        sa.CheckConstraint("start_hour >= 0 AND start_hour < 24", name="ck_shift_definitions_start_hour"),
        sa.CheckConstraint("end_hour >= 0 AND end_hour < 48", name="ck_shift_definitions_end_hour"),
    )

    # === shift_assignments ===
    op.create_table(
        "shift_assignments",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("processor_id", sa.Uuid(), nullable=False),
        sa.Column("shift_type", sa.String(10), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("processor_id", "shift_type", name="uq_shift_assignments_processor_type"),
    )
    op.create_index("ix_shift_assignments_processor_id", "shift_assignments", ["processor_id"])

    # === processor_shifts ===
    op.create_table(
        "processor_shifts",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("processor_id", sa.Uuid(), nullable=False),
        sa.Column("shift_type", sa.String(10), nullable=False),
        sa.Column(
            "shift_date",
            sa.Date(),
            nullable=False,
            comment="Canonical day (06:00 UTC+3 cutover) the scheduled window belongs to",
        ),
        sa.Column("scheduled_start", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_end", sa.DateTime(timezone=True), nullable=False),
        sa.Column("actual_start", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_end", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(10), nullable=False, server_default="ACTIVE", comment="ACTIVE|COMPLETED|MISSED"),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("processor_id", "shift_date", name="uq_processor_shifts_processor_day"),
        sa.CheckConstraint("status IN ('ACTIVE', 'COMPLETED', 'MISSED')", name="ck_processor_shifts_status"),
    )
    op.create_index(
        "ix_processor_shifts_status_scheduled_end",
        "processor_shifts",
        ["status", "scheduled_end"],
    )

    # === bonus_grid ===
    op.create_table(
        "bonus_grid",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("shift_type", sa.String(10), nullable=False),
        sa.Column("min_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("max_amount", sa.Numeric(14, 2), nullable=True),
        sa.Column("bonus_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column(
            "fixed_bonus",
            sa.Numeric(14, 2),
            nullable=True,
            comment="Flat amount added once daily volume reaches fixed_bonus_threshold",
        ),
        sa.Column("fixed_bonus_threshold", sa.Numeric(14, 2), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        sa.Column("description", sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("bonus_percentage >= 0 AND bonus_percentage <= 100", name="ck_bonus_grid_percentage"),
        sa.CheckConstraint("max_amount IS NULL OR max_amount >= min_amount", name="ck_bonus_grid_band"),
    )
    op.create_index("ix_bonus_grid_shift_type_active", "bonus_grid", ["shift_type", "active"])

    # === bonus_motivations ===
    op.create_table(
        "bonus_motivations",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("type", sa.String(20), nullable=False, comment="PERCENTAGE|FIXED_AMOUNT"),
        sa.Column("value", sa.Numeric(14, 2), nullable=False),
        sa.Column("conditions", postgresql.JSONB(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default="true"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("type IN ('PERCENTAGE', 'FIXED_AMOUNT')", name="ck_bonus_motivations_type"),
        sa.CheckConstraint("value >= 0", name="ck_bonus_motivations_value"),
    )

    # === global_settings ===
    op.create_table(
        "global_settings",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("hourly_rate", sa.Numeric(10, 2), nullable=False),
        sa.Column("base_commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("base_bonus_rate", sa.Numeric(5, 2), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("id = 1", name="ck_global_settings_singleton"),
    )

    # === processor_deposits ===
    op.create_table(
        "processor_deposits",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("processor_id", sa.Uuid(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(10), nullable=False, server_default="USD"),
        sa.Column("status", sa.String(10), nullable=False, server_default="PENDING", comment="PENDING|APPROVED|REJECTED"),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("bonus_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("bonus_amount", sa.Numeric(14, 2), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("status IN ('PENDING', 'APPROVED', 'REJECTED')", name="ck_processor_deposits_status"),
        sa.CheckConstraint("amount > 0", name="ck_processor_deposits_amount"),
    )
    op.create_index(
        "ix_processor_deposits_processor_status_approved",
        "processor_deposits",
        ["processor_id", "status", "approved_at"],
    )

    # === earnings_entries (append-only) ===
    op.create_table(
        "earnings_entries",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("processor_id", sa.Uuid(), nullable=False),
        sa.Column("shift_id", sa.Uuid(), nullable=True, comment="Shift the entry was earned in, if any"),
        sa.Column("deposit_id", sa.Uuid(), nullable=True, comment="Source deposit; at most one entry per deposit"),
        sa.Column("kind", sa.String(30), nullable=False, comment="HOURLY|DEPOSIT_COMMISSION"),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column(
            "details",
            postgresql.JSONB(),
            nullable=False,
            server_default="{}",
            comment="Inputs the amount was computed from",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("deposit_id"),
        sa.CheckConstraint("kind IN ('HOURLY', 'DEPOSIT_COMMISSION')", name="ck_earnings_entries_kind"),
    )
    op.create_index(
        "ix_earnings_entries_processor_created",
        "earnings_entries",
        ["processor_id", "created_at"],
    )
    op.create_index("ix_earnings_entries_shift_id", "earnings_entries", ["shift_id"])


def downgrade() -> None:
    op.drop_table("earnings_entries")
    op.drop_table("processor_deposits")
    op.drop_table("global_settings")
    op.drop_table("bonus_motivations")
    op.drop_table("bonus_grid")
    op.drop_table("processor_shifts")
    op.drop_table("shift_assignments")
    op.drop_table("shift_definitions")
