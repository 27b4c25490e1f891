from datetime import date, time, timedelta

import pydantic
import pytest

from clinic_scheduling.core.errors import ConflictError, NotFoundError, ValidationError
from clinic_scheduling.models import (
    BreakInput,
    DayOffInput,
    SchedulePeriodInput,
    SchedulePeriodUpdate,
    Weekday,
    WeeklyScheduleEntryInput,
)
from clinic_scheduling.services import schedule_service as svc
from factories import MONDAY, add_practitioner


@pytest.fixture
async def practitioner_id(session):
    return (await add_practitioner(session)).id


class TestWeeklyTemplate:
    async def test_default_schedule(self, session, practitioner_id):
        entries = await svc.initialize_default_schedule(session, practitioner_id)

        assert [e.day_of_week for e in entries] == list(range(7))
        off = {e.day_of_week for e in entries if not e.is_working}
        assert off == {Weekday.FRIDAY, Weekday.SATURDAY}
        assert all(e.start_time == time(9, 0) and e.end_time == time(18, 0) for e in entries)

    async def test_upsert_replaces_existing_day(self, session, practitioner_id):
        await svc.initialize_default_schedule(session, practitioner_id)
        await svc.upsert_weekly_entry(
            session,
            practitioner_id,
            WeeklyScheduleEntryInput(day_of_week=Weekday.MONDAY, start_time=time(8, 0), end_time=time(12, 0)),
        )

        entries = await svc.get_weekly_schedule(session, practitioner_id)
        monday = await svc.get_schedule_for_day(session, practitioner_id, Weekday.MONDAY)

        assert len(entries) == 7
        assert (monday.start_time, monday.end_time) == (time(8, 0), time(12, 0))

    def test_window_must_be_ordered(self):
        with pytest.raises(pydantic.ValidationError):
            WeeklyScheduleEntryInput(day_of_week=0, start_time=time(17, 0), end_time=time(9, 0))


class TestBreaks:
    async def test_breaks_for_date(self, session, practitioner_id):
        await svc.create_break(
            session,
            practitioner_id,
            BreakInput(start_time=time(12, 0), end_time=time(13, 0), day_of_week=Weekday.MONDAY),
        )
        await svc.create_break(
            session,
            practitioner_id,
            BreakInput(
                start_time=time(15, 0), end_time=time(15, 30), is_recurring=False, specific_date=MONDAY
            ),
        )
        await svc.create_break(
            session,
            practitioner_id,
            BreakInput(start_time=time(10, 0), end_time=time(10, 15), day_of_week=Weekday.TUESDAY),
        )

        monday = await svc.get_breaks_for_date(session, practitioner_id, MONDAY)
        next_monday = await svc.get_breaks_for_date(session, practitioner_id, MONDAY + timedelta(days=7))

        assert [b.start_time for b in monday] == [time(12, 0), time(15, 0)]
        assert [b.start_time for b in next_monday] == [time(12, 0)]

    async def test_update_switches_anchor(self, session, practitioner_id):
        brk = await svc.create_break(
            session,
            practitioner_id,
            BreakInput(start_time=time(12, 0), end_time=time(13, 0), day_of_week=Weekday.MONDAY),
        )
        updated = await svc.update_break(
            session,
            practitioner_id,
            brk.id,
            BreakInput(start_time=time(12, 0), end_time=time(12, 30), is_recurring=False, specific_date=MONDAY),
        )
        assert updated.day_of_week is None
        assert updated.specific_date == MONDAY

    async def test_delete_other_practitioners_break(self, session, practitioner_id):
        brk = await svc.create_break(
            session,
            practitioner_id,
            BreakInput(start_time=time(12, 0), end_time=time(13, 0), day_of_week=Weekday.MONDAY),
        )
        with pytest.raises(NotFoundError):
            await svc.delete_break(session, practitioner_id + 1, brk.id)

    @pytest.mark.parametrize(
        "fields",
        [
            {"is_recurring": True},
            {"is_recurring": True, "day_of_week": 0, "specific_date": MONDAY},
            {"is_recurring": False, "day_of_week": 0},
            {"is_recurring": False},
        ],
    )
    def test_break_anchor_rules(self, fields):
        with pytest.raises(pydantic.ValidationError):
            BreakInput(start_time=time(12, 0), end_time=time(13, 0), **fields)


class TestDaysOff:
    async def test_create_list_delete(self, session, practitioner_id):
        first = await svc.create_day_off(session, practitioner_id, DayOffInput(date=MONDAY, reason="training"))
        await svc.create_day_off(session, practitioner_id, DayOffInput(date=MONDAY + timedelta(days=10)))

        in_range = await svc.list_days_off(session, practitioner_id, MONDAY, MONDAY + timedelta(days=5))
        assert [d.id for d in in_range] == [first.id]

        await svc.delete_day_off(session, practitioner_id, first.id)
        assert await svc.get_day_off(session, practitioner_id, MONDAY) is None

    async def test_duplicate_day_off(self, session, practitioner_id):
        await svc.create_day_off(session, practitioner_id, DayOffInput(date=MONDAY))
        with pytest.raises(ConflictError) as exc_info:
            await svc.create_day_off(session, practitioner_id, DayOffInput(date=MONDAY))
        assert exc_info.value.code == "DAY_OFF_EXISTS"

    async def test_concurrent_duplicate_is_a_conflict(self, session, practitioner_id, monkeypatch):
        # Both requests pass the lookup before either row is written
        async def nothing_yet(*_args):
            return None

        monkeypatch.setattr(svc, "get_day_off", nothing_yet)
        await svc.create_day_off(session, practitioner_id, DayOffInput(date=MONDAY))

        with pytest.raises(ConflictError) as exc_info:
            await svc.create_day_off(session, practitioner_id, DayOffInput(date=MONDAY))
        assert exc_info.value.code == "DAY_OFF_EXISTS"


class TestSchedulePeriods:
    def _input(self, **overrides) -> SchedulePeriodInput:
        fields = dict(
            start_date=date(2026, 10, 1),
            end_date=date(2026, 10, 31),
            working_days=[3, 0, 1, 0],
            work_start_time=time(9, 0),
            work_end_time=time(17, 0),
        )
        fields.update(overrides)
        return SchedulePeriodInput(**fields)

    def test_working_days_are_normalised(self):
        assert self._input().working_days == [0, 1, 3]

    @pytest.mark.parametrize(
        "overrides",
        [
            {"start_date": date(2026, 11, 1)},
            {"working_days": [7]},
            {"work_start_time": time(18, 0)},
            {"break_start_time": time(12, 0)},
            {"break_start_time": time(13, 0), "break_end_time": time(12, 0)},
        ],
    )
    def test_invalid_period(self, overrides):
        with pytest.raises(pydantic.ValidationError):
            self._input(**overrides)

    async def test_lookup_by_date(self, session, practitioner_id):
        period = await svc.create_schedule_period(session, practitioner_id, self._input())

        assert (await svc.get_schedule_period_for_date(session, practitioner_id, MONDAY)).id == period.id
        # 2026-10-22 is a Thursday (3); 2026-10-23 a Friday
        assert await svc.get_schedule_period_for_date(session, practitioner_id, date(2026, 10, 22)) is not None
        assert await svc.get_schedule_period_for_date(session, practitioner_id, date(2026, 10, 23)) is None
        assert await svc.get_schedule_period_for_date(session, practitioner_id, date(2026, 11, 2)) is None

    async def test_partial_update_is_revalidated(self, session, practitioner_id):
        period = await svc.create_schedule_period(session, practitioner_id, self._input())

        updated = await svc.update_schedule_period(
            session, practitioner_id, period.id, SchedulePeriodUpdate(work_end_time=time(13, 0))
        )
        assert updated.work_end_time == time(13, 0)
        assert updated.work_start_time == time(9, 0)

        with pytest.raises(ValidationError):
            await svc.update_schedule_period(
                session, practitioner_id, period.id, SchedulePeriodUpdate(end_date=date(2026, 9, 1))
            )

    async def test_deactivate_and_delete(self, session, practitioner_id):
        first = await svc.create_schedule_period(session, practitioner_id, self._input())
        second = await svc.create_schedule_period(
            session, practitioner_id, self._input(start_date=date(2026, 10, 10))
        )

        assert [p.id for p in await svc.list_schedule_periods(session, practitioner_id)] == [second.id, first.id]

        await svc.deactivate_schedule_period(session, practitioner_id, second.id)
        assert [p.id for p in await svc.list_schedule_periods(session, practitioner_id)] == [first.id]

        await svc.delete_schedule_period(session, practitioner_id, first.id)
        assert await svc.list_schedule_periods(session, practitioner_id) == []

    async def test_unknown_practitioner(self, session):
        with pytest.raises(NotFoundError):
            await svc.get_practitioner(session, 12345)
