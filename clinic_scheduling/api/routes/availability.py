from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.api.deps import get_session
from clinic_scheduling.api.schemas.availability import (
    AlternativesResponse,
    AvailabilityResponse,
    SlotSuggestionPublic,
)
from clinic_scheduling.core.config import settings
from clinic_scheduling.core.errors import ValidationError
from clinic_scheduling.services.availability_service import ScheduleMode, find_alternatives, get_available_slots
from clinic_scheduling.services.intervals import format_hhmm, parse_hhmm

router = APIRouter(prefix="/availability", tags=["availability"])


@router.get("", response_model=AvailabilityResponse)
async def available_slots(
    practitioner_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    duration_minutes: int | None = Query(default=None),
    source: ScheduleMode | None = Query(default=None),
    # Portal session whose own hold should stay visible
    session_id: str | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> AvailabilityResponse:
    """Free start times (HH:MM) for one practitioner and date, or the reason there are none."""
    availability = await get_available_slots(
        session,
        practitioner_id,
        date_param,
        settings.default_appointment_duration_minutes if duration_minutes is None else duration_minutes,
        mode=source,
        reservation_session_id=session_id,
    )
    return AvailabilityResponse(
        practitioner_id=availability.practitioner_id,
        date=availability.date,
        duration_minutes=availability.duration_minutes,
        slots=availability.slots,
        unavailable_reason=availability.unavailable_reason,
        source=availability.source,
    )


@router.get("/alternatives", response_model=AlternativesResponse)
async def alternative_slots(
    practitioner_id: int = Query(...),
    date_param: date = Query(..., alias="date"),
    time_param: str = Query(..., alias="time"),
    duration_minutes: int | None = Query(default=None),
    session: AsyncSession = Depends(get_session),
) -> AlternativesResponse:
    try:
        start = parse_hhmm(time_param)
    except ValueError as exc:
        raise ValidationError(str(exc)) from exc
    suggestions = await find_alternatives(
        session,
        practitioner_id,
        date_param,
        start,
        settings.default_appointment_duration_minutes if duration_minutes is None else duration_minutes,
    )
    return AlternativesResponse(
        practitioner_id=practitioner_id,
        date=date_param,
        time=format_hhmm(start),
        alternatives=[SlotSuggestionPublic(date=s.date, time=s.time, label=s.label) for s in suggestions],
    )
