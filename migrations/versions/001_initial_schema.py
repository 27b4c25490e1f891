"""Initial schema: practitioners, pets, schedules, appointments, sequence counters.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

appointment_status = sa.Enum(
    "SCHEDULED", "CHECK_IN", "IN_PROGRESS", "COMPLETED", "CANCELLED", name="appointmentstatus"
)
booking_source = sa.Enum("STAFF", "PORTAL", name="bookingsource")


def upgrade() -> None:
    op.create_table(
        "practitioners",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("full_name", sa.String(), nullable=False),
        sa.Column("is_bookable", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "pets",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("pet_code", sa.String(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_pets_pet_code"), "pets", ["pet_code"], unique=True)

    op.create_table(
        "weekly_schedule_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("day_of_week", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_working", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.ForeignKeyConstraint(["practitioner_id"], ["practitioners.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("practitioner_id", "day_of_week", name="uq_weekly_schedule_practitioner_day"),
    )
    op.create_index(
        op.f("ix_weekly_schedule_entries_practitioner_id"), "weekly_schedule_entries", ["practitioner_id"]
    )

    op.create_table(
        "schedule_breaks",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("day_of_week", sa.Integer(), nullable=True),
        sa.Column("specific_date", sa.Date(), nullable=True),
        sa.ForeignKeyConstraint(["practitioner_id"], ["practitioners.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_schedule_breaks_practitioner_id"), "schedule_breaks", ["practitioner_id"])
    op.create_index(op.f("ix_schedule_breaks_specific_date"), "schedule_breaks", ["specific_date"])

    op.create_table(
        "days_off",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.ForeignKeyConstraint(["practitioner_id"], ["practitioners.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("practitioner_id", "date", name="uq_days_off_practitioner_date"),
    )
    op.create_index(op.f("ix_days_off_practitioner_id"), "days_off", ["practitioner_id"])

    op.create_table(
        "schedule_periods",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("working_days", sa.JSON(), nullable=False),
        sa.Column("work_start_time", sa.Time(), nullable=False),
        sa.Column("work_end_time", sa.Time(), nullable=False),
        sa.Column("break_start_time", sa.Time(), nullable=True),
        sa.Column("break_end_time", sa.Time(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["practitioner_id"], ["practitioners.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_schedule_periods_practitioner_id"), "schedule_periods", ["practitioner_id"])
    op.create_index(op.f("ix_schedule_periods_start_date"), "schedule_periods", ["start_date"])
    op.create_index(op.f("ix_schedule_periods_end_date"), "schedule_periods", ["end_date"])

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("pet_id", sa.Integer(), nullable=False),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("appointment_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False, server_default="30"),
        sa.Column("visit_type", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=True),
        sa.Column("status", appointment_status, nullable=False, server_default="SCHEDULED"),
        sa.Column("is_confirmed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source", booking_source, nullable=False, server_default="STAFF"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["practitioner_id"], ["practitioners.id"]),
        sa.ForeignKeyConstraint(["pet_id"], ["pets.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_appointments_pet_id"), "appointments", ["pet_id"])
    op.create_index(
        "ix_appointments_practitioner_date", "appointments", ["practitioner_id", "appointment_date"]
    )
    # Cancelled rows free their slot, so uniqueness covers active rows only
    op.create_index(
        "uq_active_practitioner_slot",
        "appointments",
        ["practitioner_id", "appointment_date", "appointment_time"],
        unique=True,
        postgresql_where=sa.text("status <> 'CANCELLED'"),
        sqlite_where=sa.text("status <> 'CANCELLED'"),
    )

    op.create_table(
        "sequence_counters",
        sa.Column("scope", sa.String(), nullable=False),
        sa.Column("period_key", sa.String(), nullable=False, server_default=""),
        sa.Column("last_value", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("scope", "period_key"),
    )


def downgrade() -> None:
    op.drop_table("sequence_counters")
    op.drop_index("uq_active_practitioner_slot", table_name="appointments")
    op.drop_index("ix_appointments_practitioner_date", table_name="appointments")
    op.drop_index(op.f("ix_appointments_pet_id"), table_name="appointments")
    op.drop_table("appointments")
    op.drop_index(op.f("ix_schedule_periods_end_date"), table_name="schedule_periods")
    op.drop_index(op.f("ix_schedule_periods_start_date"), table_name="schedule_periods")
    op.drop_index(op.f("ix_schedule_periods_practitioner_id"), table_name="schedule_periods")
    op.drop_table("schedule_periods")
    op.drop_index(op.f("ix_days_off_practitioner_id"), table_name="days_off")
    op.drop_table("days_off")
    op.drop_index(op.f("ix_schedule_breaks_specific_date"), table_name="schedule_breaks")
    op.drop_index(op.f("ix_schedule_breaks_practitioner_id"), table_name="schedule_breaks")
    op.drop_table("schedule_breaks")
    op.drop_index(op.f("ix_weekly_schedule_entries_practitioner_id"), table_name="weekly_schedule_entries")
    op.drop_table("weekly_schedule_entries")
    op.drop_index(op.f("ix_pets_pet_code"), table_name="pets")
    op.drop_table("pets")
    op.drop_table("practitioners")
    booking_source.drop(op.get_bind(), checkfirst=True)
    appointment_status.drop(op.get_bind(), checkfirst=True)
