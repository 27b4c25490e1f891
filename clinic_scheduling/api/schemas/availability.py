from datetime import date

from pydantic import BaseModel

from clinic_scheduling.services.schedule_service import UnavailableReason


class AvailabilityResponse(BaseModel):
    practitioner_id: int
    date: date
    duration_minutes: int
    slots: list[str]  # HH:MM, chronological
    unavailable_reason: UnavailableReason | None = None
    source: str | None = None


class SlotSuggestionPublic(BaseModel):
    date: date
    time: str
    label: str


class AlternativesResponse(BaseModel):
    practitioner_id: int
    date: date
    time: str
    alternatives: list[SlotSuggestionPublic]
