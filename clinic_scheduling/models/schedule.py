from datetime import UTC, date, datetime, time
from enum import IntEnum

from pydantic import model_validator
from sqlalchemy import JSON, Column, UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class Weekday(IntEnum):
    """Same numbering as date.weekday()."""

    MONDAY = 0
    TUESDAY = 1
    WEDNESDAY = 2
    THURSDAY = 3
    FRIDAY = 4
    SATURDAY = 5
    SUNDAY = 6


def _check_window(start: time | None, end: time | None, what: str) -> None:
    if start is not None and end is not None and start >= end:
        raise ValueError(f"{what} start must be before its end")


# --- Legacy weekly template ---


class WeeklyScheduleEntry(SQLModel, table=True):
    __tablename__ = "weekly_schedule_entries"
    __table_args__ = (
        UniqueConstraint("practitioner_id", "day_of_week", name="uq_weekly_schedule_practitioner_day"),
    )
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id", index=True)
    day_of_week: int
    start_time: time
    end_time: time
    is_working: bool = True


class WeeklyScheduleEntryInput(SQLModel):
    day_of_week: int = Field(ge=0, le=6)
    start_time: time
    end_time: time
    is_working: bool = True

    @model_validator(mode="after")
    def check_window(self) -> "WeeklyScheduleEntryInput":
        _check_window(self.start_time, self.end_time, "Working window")
        return self


class ScheduleBreak(SQLModel, table=True):
    __tablename__ = "schedule_breaks"
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id", index=True)
    start_time: time
    end_time: time
    description: str | None = None
    is_recurring: bool = True
    day_of_week: int | None = None  # set only when recurring
    specific_date: date | None = Field(default=None, index=True)  # set only when one-time


class BreakInput(SQLModel):
    start_time: time
    end_time: time
    description: str | None = None
    is_recurring: bool = True
    day_of_week: int | None = Field(default=None, ge=0, le=6)
    specific_date: date | None = None

    @model_validator(mode="after")
    def check_anchor(self) -> "BreakInput":
        _check_window(self.start_time, self.end_time, "Break")
        if self.is_recurring:
            if self.day_of_week is None or self.specific_date is not None:
                raise ValueError("A recurring break needs day_of_week and no specific_date")
        elif self.specific_date is None or self.day_of_week is not None:
            raise ValueError("A one-time break needs specific_date and no day_of_week")
        return self


day_off_unique = UniqueConstraint("practitioner_id", "date", name="uq_days_off_practitioner_date")


class DayOff(SQLModel, table=True):
    __tablename__ = "days_off"
    __table_args__ = (day_off_unique,)
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id", index=True)
    date: date
    reason: str | None = None


class DayOffInput(SQLModel):
    date: date
    reason: str | None = None


# --- Date-ranged schedule periods ---


class SchedulePeriod(SQLModel, table=True):
    __tablename__ = "schedule_periods"
    id: int | None = Field(default=None, primary_key=True)
    practitioner_id: int = Field(foreign_key="practitioners.id", index=True)
    start_date: date = Field(index=True)
    end_date: date = Field(index=True)
    working_days: list[int] = Field(sa_column=Column(JSON, nullable=False))
    work_start_time: time
    work_end_time: time
    break_start_time: time | None = None
    break_end_time: time | None = None
    is_active: bool = True
    created_at: datetime = Field(default_factory=_utc_naive_now)

    def covers(self, d: date) -> bool:
        return self.start_date <= d <= self.end_date and d.weekday() in self.working_days


class SchedulePeriodInput(SQLModel):
    start_date: date
    end_date: date
    working_days: list[int]
    work_start_time: time
    work_end_time: time
    break_start_time: time | None = None
    break_end_time: time | None = None

    @model_validator(mode="after")
    def check_consistency(self) -> "SchedulePeriodInput":
        if self.start_date > self.end_date:
            raise ValueError("start_date must not be after end_date")
        if any(d not in range(7) for d in self.working_days):
            raise ValueError("working_days must be weekday numbers 0..6")
        self.working_days = sorted(set(self.working_days))
        _check_window(self.work_start_time, self.work_end_time, "Working window")
        if (self.break_start_time is None) != (self.break_end_time is None):
            raise ValueError("break_start_time and break_end_time go together")
        _check_window(self.break_start_time, self.break_end_time, "Break")
        return self


class SchedulePeriodUpdate(SQLModel):
    start_date: date | None = None
    end_date: date | None = None
    working_days: list[int] | None = None
    work_start_time: time | None = None
    work_end_time: time | None = None
    break_start_time: time | None = None
    break_end_time: time | None = None
