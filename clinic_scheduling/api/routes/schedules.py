from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_scheduling.api.deps import get_session, require_staff
from clinic_scheduling.core.security import TokenClaims
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
)
from clinic_scheduling.services import schedule_service

router = APIRouter(
    prefix="/practitioners/{practitioner_id}",
    tags=["schedules"],
    dependencies=[Depends(require_staff)],
)


async def _practitioner_id(practitioner_id: int, session: AsyncSession = Depends(get_session)) -> int:
    await schedule_service.get_practitioner(session, practitioner_id)
    return practitioner_id


# --- Weekly template ---


@router.get("/schedule", response_model=list[WeeklyScheduleEntry])
async def read_weekly_schedule(
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> list[WeeklyScheduleEntry]:
    return await schedule_service.get_weekly_schedule(session, practitioner_id)


@router.put("/schedule", response_model=list[WeeklyScheduleEntry])
async def replace_weekly_schedule(
    entries: list[WeeklyScheduleEntryInput],
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> list[WeeklyScheduleEntry]:
    return await schedule_service.bulk_update_weekly_schedule(session, practitioner_id, entries)


@router.post("/schedule/defaults", response_model=list[WeeklyScheduleEntry])
async def reset_weekly_schedule(
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> list[WeeklyScheduleEntry]:
    return await schedule_service.initialize_default_schedule(session, practitioner_id)


# --- Breaks ---


@router.get("/breaks", response_model=list[ScheduleBreak])
async def read_breaks(
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> list[ScheduleBreak]:
    return await schedule_service.list_breaks(session, practitioner_id)


@router.post("/breaks", response_model=ScheduleBreak, status_code=status.HTTP_201_CREATED)
async def add_break(
    body: BreakInput,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> ScheduleBreak:
    return await schedule_service.create_break(session, practitioner_id, body)


@router.put("/breaks/{break_id}", response_model=ScheduleBreak)
async def edit_break(
    break_id: int,
    body: BreakInput,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> ScheduleBreak:
    return await schedule_service.update_break(session, practitioner_id, break_id, body)


@router.delete("/breaks/{break_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_break(
    break_id: int,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> None:
    await schedule_service.delete_break(session, practitioner_id, break_id)


# --- Days off ---


@router.get("/days-off", response_model=list[DayOff])
async def read_days_off(
    from_date: date | None = Query(default=None),
    to_date: date | None = Query(default=None),
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> list[DayOff]:
    return await schedule_service.list_days_off(session, practitioner_id, from_date, to_date)


@router.post("/days-off", response_model=DayOff, status_code=status.HTTP_201_CREATED)
async def add_day_off(
    body: DayOffInput,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> DayOff:
    return await schedule_service.create_day_off(session, practitioner_id, body)


@router.delete("/days-off/{day_off_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_day_off(
    day_off_id: int,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> None:
    await schedule_service.delete_day_off(session, practitioner_id, day_off_id)


# --- Schedule periods ---


@router.get("/schedule-periods", response_model=list[SchedulePeriod])
async def read_schedule_periods(
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> list[SchedulePeriod]:
    return await schedule_service.list_schedule_periods(session, practitioner_id)


@router.post("/schedule-periods", response_model=SchedulePeriod, status_code=status.HTTP_201_CREATED)
async def add_schedule_period(
    body: SchedulePeriodInput,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> SchedulePeriod:
    return await schedule_service.create_schedule_period(session, practitioner_id, body)


@router.patch("/schedule-periods/{period_id}", response_model=SchedulePeriod)
async def edit_schedule_period(
    period_id: int,
    body: SchedulePeriodUpdate,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> SchedulePeriod:
    return await schedule_service.update_schedule_period(session, practitioner_id, period_id, body)


@router.post("/schedule-periods/{period_id}/deactivate", status_code=status.HTTP_204_NO_CONTENT)
async def deactivate_schedule_period(
    period_id: int,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> None:
    await schedule_service.deactivate_schedule_period(session, practitioner_id, period_id)


@router.delete("/schedule-periods/{period_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_schedule_period(
    period_id: int,
    practitioner_id: int = Depends(_practitioner_id),
    session: AsyncSession = Depends(get_session),
) -> None:
    await schedule_service.delete_schedule_period(session, practitioner_id, period_id)
