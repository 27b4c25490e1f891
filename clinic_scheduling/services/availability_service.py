import logging
from dataclasses import dataclass, field
from datetime import date, time, timedelta
from enum import Enum

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.core.config import settings
from clinic_scheduling.core.errors import ValidationError
from clinic_scheduling.models.schedule import DayOff
from clinic_scheduling.services.appointment_service import appointment_interval, list_active_appointments
from clinic_scheduling.services.intervals import (
    MINUTES_PER_DAY,
    Interval,
    format_hhmm,
    slot_starts,
    subtract,
    to_minutes,
)
from clinic_scheduling.services.reservation_service import list_active_reservations, reservation_interval
from clinic_scheduling.services.schedule_service import (
    DayWindow,
    PeriodSource,
    ScheduleMiss,
    UnavailableReason,
    WeeklyTemplateSource,
    get_practitioner,
)

logger = logging.getLogger(__name__)


class ScheduleMode(str, Enum):
    AUTO = "auto"
    WEEKLY = "weekly"
    PERIOD = "period"


@dataclass
class Availability:
    practitioner_id: int
    date: date
    duration_minutes: int
    slots: list[str] = field(default_factory=list)
    unavailable_reason: UnavailableReason | None = None
    source: str | None = None


def validate_duration(duration_minutes: int) -> None:
    if not 1 <= duration_minutes <= MINUTES_PER_DAY:
        raise ValidationError(f"duration_minutes must be between 1 and {MINUTES_PER_DAY}")


def _resolve_mode(mode: ScheduleMode | str | None) -> ScheduleMode:
    try:
        return ScheduleMode(mode or settings.schedule_mode)
    except ValueError:
        raise ValidationError(f"Unknown schedule mode: {mode}") from None


async def _has_day_off(session: AsyncSession, practitioner_id: int, d: date) -> bool:
    result = await session.execute(
        select(DayOff.id).where(DayOff.practitioner_id == practitioner_id, DayOff.date == d)
    )
    return result.first() is not None


async def resolve_day_window(
    session: AsyncSession, practitioner_id: int, d: date, mode: ScheduleMode
) -> DayWindow | ScheduleMiss:
    weekly = WeeklyTemplateSource()
    if mode == ScheduleMode.WEEKLY:
        return await weekly.window_for(session, practitioner_id, d)
    from_period = await PeriodSource().window_for(session, practitioner_id, d)
    if mode == ScheduleMode.PERIOD or isinstance(from_period, DayWindow):
        return from_period
    from_weekly = await weekly.window_for(session, practitioner_id, d)
    if isinstance(from_weekly, DayWindow):
        return from_weekly
    # Neither matched: blame the template only when it says something about this weekday
    return from_weekly if from_weekly.configured else from_period


async def _open_intervals(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    window: DayWindow,
    reservation_session_id: str | None = None,
) -> list[Interval]:
    booked = [appointment_interval(a) for a in await list_active_appointments(session, practitioner_id, d)]
    held = [
        reservation_interval(r)
        for r in await list_active_reservations(
            session, practitioner_id, d, exclude_session_id=reservation_session_id
        )
    ]
    return subtract(subtract([window.working], window.breaks), booked + held)


async def get_available_slots(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    duration_minutes: int,
    *,
    mode: ScheduleMode | str | None = None,
    step_minutes: int | None = None,
    reservation_session_id: str | None = None,
) -> Availability:
    """Free start times for ``practitioner_id`` on ``d``.

    The result either lists at least one slot or names the reason there are
    none. Live holds of other sessions count as taken. Nothing is locked; the
    booking path re-checks under its own policy.
    """
    validate_duration(duration_minutes)
    if step_minutes is not None and step_minutes <= 0:
        raise ValidationError("step_minutes must be positive")
    schedule_mode = _resolve_mode(mode)
    await get_practitioner(session, practitioner_id)

    availability = Availability(practitioner_id=practitioner_id, date=d, duration_minutes=duration_minutes)
    if await _has_day_off(session, practitioner_id, d):
        availability.unavailable_reason = UnavailableReason.DAY_OFF
        return availability

    window = await resolve_day_window(session, practitioner_id, d, schedule_mode)
    if isinstance(window, ScheduleMiss):
        availability.unavailable_reason = window.reason
        return availability

    availability.source = window.source
    step = step_minutes or settings.slot_step_minutes or duration_minutes
    free = await _open_intervals(session, practitioner_id, d, window, reservation_session_id)
    availability.slots = [format_hhmm(s) for s in slot_starts(free, duration_minutes, step)]
    if not availability.slots:
        availability.unavailable_reason = UnavailableReason.FULLY_BOOKED
    logger.debug(
        "Availability for practitioner %s on %s (%s): %d slots",
        practitioner_id, d, window.source, len(availability.slots),
    )
    return availability


async def is_slot_available(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    start: time,
    duration_minutes: int,
    *,
    mode: ScheduleMode | str | None = None,
) -> bool:
    """True when ``[start, start + duration)`` lies wholly inside free time."""
    validate_duration(duration_minutes)
    await get_practitioner(session, practitioner_id)
    if await _has_day_off(session, practitioner_id, d):
        return False
    window = await resolve_day_window(session, practitioner_id, d, _resolve_mode(mode))
    if isinstance(window, ScheduleMiss):
        return False
    wanted = Interval.starting_at(start, duration_minutes)
    return any(part.contains(wanted) for part in await _open_intervals(session, practitioner_id, d, window))


# --- Alternatives offered on conflict ---


@dataclass(frozen=True)
class SlotSuggestion:
    date: date
    time: str
    label: str
    # Minutes away from the requested start, across days
    distance: int


def _humanize_minutes(minutes: int) -> str:
    hours, rest = divmod(minutes, 60)
    if not hours:
        return f"{rest} min"
    if not rest:
        return "1 hour" if hours == 1 else f"{hours} hours"
    return f"{hours}h {rest}m"


def same_day_label(offset_minutes: int) -> str:
    direction = "later" if offset_minutes > 0 else "earlier"
    return f"{_humanize_minutes(abs(offset_minutes))} {direction}"


def next_day_label(days_ahead: int) -> str:
    return "Same time tomorrow" if days_ahead == 1 else f"Same time in {days_ahead} days"


async def find_alternatives(
    session: AsyncSession,
    practitioner_id: int,
    d: date,
    start: time,
    duration_minutes: int,
    *,
    limit: int | None = None,
    mode: ScheduleMode | str | None = None,
) -> list[SlotSuggestion]:
    """Nearby free slots: same day within the window, then the same time on later days."""
    limit = settings.alternatives_limit if limit is None else limit
    window = settings.alternatives_window_minutes
    requested = to_minutes(start)
    suggestions: list[SlotSuggestion] = []

    today = await get_available_slots(session, practitioner_id, d, duration_minutes, mode=mode)
    for slot in today.slots:
        offset = to_minutes(time.fromisoformat(slot)) - requested
        if offset != 0 and abs(offset) <= window:
            suggestions.append(SlotSuggestion(d, slot, same_day_label(offset), abs(offset)))

    wanted = format_hhmm(requested)
    found = 0
    # Look twice as far as needed so a few closed days do not starve the list
    for days_ahead in range(1, settings.alternatives_days_ahead * 2 + 1):
        if found >= settings.alternatives_days_ahead:
            break
        later = d + timedelta(days=days_ahead)
        day = await get_available_slots(session, practitioner_id, later, duration_minutes, mode=mode)
        if wanted in day.slots:
            found += 1
            suggestions.append(
                SlotSuggestion(later, wanted, next_day_label(days_ahead), days_ahead * MINUTES_PER_DAY)
            )

    suggestions.sort(key=lambda s: (s.distance, s.date, s.time))
    return suggestions[:limit]
