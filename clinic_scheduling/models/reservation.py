from datetime import UTC, date, datetime, time
from enum import Enum

from sqlalchemy import Index
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class ReservationStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    RELEASED = "RELEASED"
    EXPIRED = "EXPIRED"


class SlotReservation(SQLModel, table=True):
    """Short hold on a slot while a portal customer fills in the booking form.

    Only PENDING rows whose expires_at is still in the future hold the slot.
    """

    __tablename__ = "slot_reservations"
    __table_args__ = (
        Index("ix_slot_reservations_practitioner_date_status", "practitioner_id", "reservation_date", "status"),
    )
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id")
    reservation_date: date
    reservation_time: time
    duration_minutes: int = 30
    session_id: str = Field(index=True)
    customer_id: int | None = None
    status: ReservationStatus = Field(default=ReservationStatus.PENDING)
    expires_at: datetime
    confirmed_at: datetime | None = None
    released_at: datetime | None = None
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class SlotReservationPublic(SQLModel):
    id: int
    practitioner_id: int
    reservation_date: date
    reservation_time: str  # HH:MM
    duration_minutes: int
    session_id: str
    status: ReservationStatus
    expires_at: datetime
    expires_in_seconds: int
