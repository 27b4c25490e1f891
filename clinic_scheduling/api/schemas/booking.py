from datetime import date, time

from pydantic import BaseModel, Field, field_validator

from clinic_scheduling.core.config import settings
from clinic_scheduling.models.appointment import AppointmentStatus
from clinic_scheduling.services.intervals import parse_hhmm
from clinic_scheduling.services.occupancy_service import OccupancyLevel


class BookAppointmentRequest(BaseModel):
    practitioner_id: int
    pet_id: int
    date: date
    time: time  # "HH:MM"
    duration_minutes: int = Field(default_factory=lambda: settings.default_appointment_duration_minutes)
    visit_type: str = Field(min_length=1)
    reason: str | None = None
    # Portal session holding the slot, if the customer reserved it first
    session_id: str | None = Field(default=None, max_length=128)

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, value: object) -> object:
        return parse_hhmm(value) if isinstance(value, str) else value


class StatusUpdateRequest(BaseModel):
    status: AppointmentStatus


class ConfirmationUpdateRequest(BaseModel):
    is_confirmed: bool


class SequenceCodeResponse(BaseModel):
    scope: str
    code: str


class OccupancyResponse(BaseModel):
    days_remaining: int
    level: OccupancyLevel
