from datetime import date, time

from pydantic import BaseModel, Field, field_validator

from clinic_scheduling.core.config import settings
from clinic_scheduling.services.intervals import parse_hhmm


class ReservationRequest(BaseModel):
    practitioner_id: int
    date: date
    time: time  # "HH:MM"
    duration_minutes: int = Field(default_factory=lambda: settings.default_appointment_duration_minutes)
    session_id: str = Field(min_length=1, max_length=128)

    @field_validator("time", mode="before")
    @classmethod
    def parse_time(cls, value: object) -> object:
        return parse_hhmm(value) if isinstance(value, str) else value


class ReservationSessionRequest(BaseModel):
    session_id: str = Field(min_length=1, max_length=128)


class ReleasedResponse(BaseModel):
    released: int
