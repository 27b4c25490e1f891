import logging
from dataclasses import dataclass, field
from datetime import date, time
from enum import Enum
from typing import Protocol

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.core.db import violates_unique
from clinic_scheduling.core.errors import ConflictError, NotFoundError, ValidationError
from clinic_scheduling.models.practitioner import Practitioner
from clinic_scheduling.models.schedule import (
    BreakInput,
    DayOff,
    DayOffInput,
    ScheduleBreak,
    SchedulePeriod,
    SchedulePeriodInput,
    SchedulePeriodUpdate,
    WeeklyScheduleEntry,
    WeeklyScheduleEntryInput,
    Weekday,
    day_off_unique,
)
from clinic_scheduling.services.intervals import Interval

logger = logging.getLogger(__name__)

_DEFAULT_START = time(9, 0)
_DEFAULT_END = time(18, 0)
_DEFAULT_DAYS_OFF = {Weekday.FRIDAY, Weekday.SATURDAY}


async def get_practitioner(session: AsyncSession, practitioner_id: int) -> Practitioner:
    practitioner = await session.get(Practitioner, practitioner_id)
    if practitioner is None:
        raise NotFoundError(f"Practitioner {practitioner_id} not found", code="PRACTITIONER_NOT_FOUND")
    return practitioner


# --- Weekly template ---


async def get_weekly_schedule(session: AsyncSession, practitioner_id: int) -> list[WeeklyScheduleEntry]:
    result = await session.execute(
        select(WeeklyScheduleEntry)
        .where(WeeklyScheduleEntry.practitioner_id == practitioner_id)
        .order_by(WeeklyScheduleEntry.day_of_week)
    )
    return list(result.scalars().all())


async def get_schedule_for_day(
    session: AsyncSession, practitioner_id: int, day_of_week: int
) -> WeeklyScheduleEntry | None:
    result = await session.execute(
        select(WeeklyScheduleEntry).where(
            WeeklyScheduleEntry.practitioner_id == practitioner_id,
            WeeklyScheduleEntry.day_of_week == day_of_week,
        )
    )
    return result.scalar_one_or_none()


async def upsert_weekly_entry(
    session: AsyncSession, practitioner_id: int, data: WeeklyScheduleEntryInput
) -> WeeklyScheduleEntry:
    entry = await get_schedule_for_day(session, practitioner_id, data.day_of_week)
    if entry is None:
        entry = WeeklyScheduleEntry(practitioner_id=practitioner_id, day_of_week=data.day_of_week)
    entry.start_time = data.start_time
    entry.end_time = data.end_time
    entry.is_working = data.is_working
    session.add(entry)
    await session.flush()
    await session.refresh(entry)
    return entry


async def bulk_update_weekly_schedule(
    session: AsyncSession, practitioner_id: int, entries: list[WeeklyScheduleEntryInput]
) -> list[WeeklyScheduleEntry]:
    return [await upsert_weekly_entry(session, practitioner_id, e) for e in entries]


async def initialize_default_schedule(
    session: AsyncSession, practitioner_id: int
) -> list[WeeklyScheduleEntry]:
    """09:00-18:00 every day, Friday and Saturday off."""
    defaults = [
        WeeklyScheduleEntryInput(
            day_of_week=day,
            start_time=_DEFAULT_START,
            end_time=_DEFAULT_END,
            is_working=day not in _DEFAULT_DAYS_OFF,
        )
        for day in Weekday
    ]
    return await bulk_update_weekly_schedule(session, practitioner_id, defaults)


# --- Days off ---


async def list_days_off(
    session: AsyncSession,
    practitioner_id: int,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[DayOff]:
    q = select(DayOff).where(DayOff.practitioner_id == practitioner_id).order_by(DayOff.date)
    if start_date:
        q = q.where(DayOff.date >= start_date)
    if end_date:
        q = q.where(DayOff.date <= end_date)
    result = await session.execute(q)
    return list(result.scalars().all())


async def get_day_off(session: AsyncSession, practitioner_id: int, d: date) -> DayOff | None:
    result = await session.execute(
        select(DayOff).where(DayOff.practitioner_id == practitioner_id, DayOff.date == d)
    )
    return result.scalar_one_or_none()


async def create_day_off(session: AsyncSession, practitioner_id: int, data: DayOffInput) -> DayOff:
    if await get_day_off(session, practitioner_id, data.date):
        raise ConflictError(f"{data.date.isoformat()} is already a day off", code="DAY_OFF_EXISTS")
    day_off = DayOff(practitioner_id=practitioner_id, date=data.date, reason=data.reason)
    session.add(day_off)
    try:
        await session.flush()
    except IntegrityError as exc:
        # A concurrent request inserted the same date after our check
        if violates_unique(exc, day_off_unique):
            raise ConflictError(f"{data.date.isoformat()} is already a day off", code="DAY_OFF_EXISTS") from exc
        raise
    await session.refresh(day_off)
    return day_off


async def delete_day_off(session: AsyncSession, practitioner_id: int, day_off_id: int) -> None:
    day_off = await session.get(DayOff, day_off_id)
    if day_off is None or day_off.practitioner_id != practitioner_id:
        raise NotFoundError("Day off not found")
    await session.delete(day_off)
    await session.flush()


# --- Breaks ---


async def list_breaks(session: AsyncSession, practitioner_id: int) -> list[ScheduleBreak]:
    result = await session.execute(
        select(ScheduleBreak)
        .where(ScheduleBreak.practitioner_id == practitioner_id)
        .order_by(ScheduleBreak.day_of_week, ScheduleBreak.start_time)
    )
    return list(result.scalars().all())


async def get_breaks_for_date(session: AsyncSession, practitioner_id: int, d: date) -> list[ScheduleBreak]:
    """Recurring breaks on the date's weekday plus one-time breaks on the date itself."""
    result = await session.execute(
        select(ScheduleBreak)
        .where(
            ScheduleBreak.practitioner_id == practitioner_id,
            or_(
                and_(ScheduleBreak.is_recurring.is_(True), ScheduleBreak.day_of_week == d.weekday()),
                and_(ScheduleBreak.is_recurring.is_(False), ScheduleBreak.specific_date == d),
            ),
        )
        .order_by(ScheduleBreak.start_time)
    )
    return list(result.scalars().all())


def _apply_break_input(brk: ScheduleBreak, data: BreakInput) -> None:
    brk.start_time = data.start_time
    brk.end_time = data.end_time
    brk.description = data.description
    brk.is_recurring = data.is_recurring
    brk.day_of_week = data.day_of_week if data.is_recurring else None
    brk.specific_date = None if data.is_recurring else data.specific_date


async def create_break(session: AsyncSession, practitioner_id: int, data: BreakInput) -> ScheduleBreak:
    brk = ScheduleBreak(
        practitioner_id=practitioner_id, start_time=data.start_time, end_time=data.end_time
    )
    _apply_break_input(brk, data)
    session.add(brk)
    await session.flush()
    await session.refresh(brk)
    return brk


async def _get_own_break(session: AsyncSession, practitioner_id: int, break_id: int) -> ScheduleBreak:
    brk = await session.get(ScheduleBreak, break_id)
    if brk is None or brk.practitioner_id != practitioner_id:
        raise NotFoundError("Break not found")
    return brk


async def update_break(
    session: AsyncSession, practitioner_id: int, break_id: int, data: BreakInput
) -> ScheduleBreak:
    brk = await _get_own_break(session, practitioner_id, break_id)
    _apply_break_input(brk, data)
    session.add(brk)
    await session.flush()
    await session.refresh(brk)
    return brk


async def delete_break(session: AsyncSession, practitioner_id: int, break_id: int) -> None:
    brk = await _get_own_break(session, practitioner_id, break_id)
    await session.delete(brk)
    await session.flush()


# --- Schedule periods ---


async def list_schedule_periods(session: AsyncSession, practitioner_id: int) -> list[SchedulePeriod]:
    result = await session.execute(
        select(SchedulePeriod)
        .where(SchedulePeriod.practitioner_id == practitioner_id, SchedulePeriod.is_active.is_(True))
        .order_by(SchedulePeriod.start_date.desc(), SchedulePeriod.id.desc())
    )
    return list(result.scalars().all())


async def get_schedule_period_for_date(
    session: AsyncSession, practitioner_id: int, d: date
) -> SchedulePeriod | None:
    """Active period containing ``d`` that works on its weekday.

    Periods may overlap; the one with the latest start_date wins, then the most
    recently created (highest id).
    """
    result = await session.execute(
        select(SchedulePeriod)
        .where(
            SchedulePeriod.practitioner_id == practitioner_id,
            SchedulePeriod.is_active.is_(True),
            SchedulePeriod.start_date <= d,
            SchedulePeriod.end_date >= d,
        )
        .order_by(SchedulePeriod.start_date.desc(), SchedulePeriod.id.desc())
    )
    # working_days is a JSON list, filtered here to stay portable across backends
    for period in result.scalars().all():
        if period.covers(d):
            return period
    return None


async def create_schedule_period(
    session: AsyncSession, practitioner_id: int, data: SchedulePeriodInput
) -> SchedulePeriod:
    period = SchedulePeriod(practitioner_id=practitioner_id, **data.model_dump())
    session.add(period)
    await session.flush()
    await session.refresh(period)
    return period


async def _get_own_period(session: AsyncSession, practitioner_id: int, period_id: int) -> SchedulePeriod:
    period = await session.get(SchedulePeriod, period_id)
    if period is None or period.practitioner_id != practitioner_id:
        raise NotFoundError("Schedule period not found")
    return period


async def update_schedule_period(
    session: AsyncSession, practitioner_id: int, period_id: int, data: SchedulePeriodUpdate
) -> SchedulePeriod:
    period = await _get_own_period(session, practitioner_id, period_id)
    current = period.model_dump(include=set(SchedulePeriodInput.model_fields))
    try:
        merged = SchedulePeriodInput.model_validate({**current, **data.model_dump(exclude_unset=True)})
    except PydanticValidationError as exc:
        raise ValidationError(f"Invalid schedule period: {exc.errors()[0]['msg']}") from exc
    for key, value in merged.model_dump().items():
        setattr(period, key, value)
    session.add(period)
    await session.flush()
    await session.refresh(period)
    return period


async def deactivate_schedule_period(session: AsyncSession, practitioner_id: int, period_id: int) -> None:
    period = await _get_own_period(session, practitioner_id, period_id)
    period.is_active = False
    session.add(period)
    await session.flush()


async def delete_schedule_period(session: AsyncSession, practitioner_id: int, period_id: int) -> None:
    period = await _get_own_period(session, practitioner_id, period_id)
    await session.delete(period)
    await session.flush()


# --- Schedule sources ---


class UnavailableReason(str, Enum):
    NOT_WORKING_DAY = "NOT_WORKING_DAY"
    DAY_OFF = "DAY_OFF"
    NO_ACTIVE_PERIOD = "NO_ACTIVE_PERIOD"
    FULLY_BOOKED = "FULLY_BOOKED"


@dataclass(frozen=True)
class DayWindow:
    """Working hours of one date plus the intervals to carve out of them."""

    source: str
    working: Interval
    breaks: list[Interval] = field(default_factory=list)


@dataclass(frozen=True)
class ScheduleMiss:
    reason: UnavailableReason
    # True when the source has configuration for that day, just not a working one
    configured: bool = False


class ScheduleSource(Protocol):
    name: str

    async def window_for(
        self, session: AsyncSession, practitioner_id: int, d: date
    ) -> DayWindow | ScheduleMiss: ...


def _break_intervals(breaks: list[ScheduleBreak]) -> list[Interval]:
    return [Interval.between(b.start_time, b.end_time) for b in breaks]


class WeeklyTemplateSource:
    name = "weekly"

    async def window_for(
        self, session: AsyncSession, practitioner_id: int, d: date
    ) -> DayWindow | ScheduleMiss:
        entry = await get_schedule_for_day(session, practitioner_id, d.weekday())
        if entry is None or not entry.is_working:
            return ScheduleMiss(UnavailableReason.NOT_WORKING_DAY, configured=entry is not None)
        breaks = await get_breaks_for_date(session, practitioner_id, d)
        return DayWindow(
            source=self.name,
            working=Interval.between(entry.start_time, entry.end_time),
            breaks=_break_intervals(breaks),
        )


class PeriodSource:
    name = "period"

    async def window_for(
        self, session: AsyncSession, practitioner_id: int, d: date
    ) -> DayWindow | ScheduleMiss:
        period = await get_schedule_period_for_date(session, practitioner_id, d)
        if period is None:
            return ScheduleMiss(UnavailableReason.NO_ACTIVE_PERIOD)
        breaks = _break_intervals(await get_breaks_for_date(session, practitioner_id, d))
        if period.break_start_time is not None and period.break_end_time is not None:
            breaks.append(Interval.between(period.break_start_time, period.break_end_time))
        logger.debug("Period %s selected for practitioner %s on %s", period.id, practitioner_id, d)
        return DayWindow(
            source=self.name,
            working=Interval.between(period.work_start_time, period.work_end_time),
            breaks=breaks,
        )
