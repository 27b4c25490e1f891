from datetime import UTC, date, datetime, time
from enum import Enum

from sqlalchemy import Index, text
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    SCHEDULED = "SCHEDULED"
    CHECK_IN = "CHECK_IN"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingSource(str, Enum):
    STAFF = "STAFF"
    PORTAL = "PORTAL"


# Only active appointments take part in slot uniqueness
_ACTIVE_ONLY = text("status <> 'CANCELLED'")

active_slot_index = Index(
    "uq_active_practitioner_slot",
    "practitioner_id",
    "appointment_date",
    "appointment_time",
    unique=True,
    postgresql_where=_ACTIVE_ONLY,
    sqlite_where=_ACTIVE_ONLY,
)


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    __table_args__ = (
        active_slot_index,
        Index("ix_appointments_practitioner_date", "practitioner_id", "appointment_date"),
    )
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id")
    pet_id: int = Field(foreign_key="pets.id", index=True)
    appointment_date: date
    appointment_time: time
    duration_minutes: int = 30
    visit_type: str
    reason: str | None = None
    status: AppointmentStatus = Field(default=AppointmentStatus.SCHEDULED)
    is_confirmed: bool = False
    source: BookingSource = Field(default=BookingSource.STAFF)
    created_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentPublic(SQLModel):
    id: int
    practitioner_id: int
    pet_id: int
    appointment_date: date
    appointment_time: str  # HH:MM
    duration_minutes: int
    visit_type: str
    reason: str | None = None
    status: AppointmentStatus
    is_confirmed: bool
    source: BookingSource
    created_at: datetime
