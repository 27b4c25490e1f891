"""Slot reservations: short portal holds on a slot before booking.

Revision ID: 002_slot_reservations
Revises: 001_initial
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


revision: str = "002_slot_reservations"
down_revision: Union[str, None] = "001_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

reservation_status = sa.Enum("PENDING", "CONFIRMED", "RELEASED", "EXPIRED", name="reservationstatus")


def upgrade() -> None:
    op.create_table(
        "slot_reservations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("practitioner_id", sa.Integer(), nullable=False),
        sa.Column("reservation_date", sa.Date(), nullable=False),
        sa.Column("reservation_time", sa.Time(), nullable=False),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("session_id", sa.String(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("status", reservation_status, nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("released_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(["practitioner_id"], ["practitioners.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_slot_reservations_practitioner_date_status",
        "slot_reservations",
        ["practitioner_id", "reservation_date", "status"],
    )
    op.create_index(op.f("ix_slot_reservations_session_id"), "slot_reservations", ["session_id"])


def downgrade() -> None:
    op.drop_index(op.f("ix_slot_reservations_session_id"), table_name="slot_reservations")
    op.drop_index("ix_slot_reservations_practitioner_date_status", table_name="slot_reservations")
    op.drop_table("slot_reservations")
    reservation_status.drop(op.get_bind(), checkfirst=True)
