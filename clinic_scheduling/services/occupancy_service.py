import math
from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum

from clinic_scheduling.core.config import settings


class OccupancyLevel(str, Enum):
    RED = "RED"
    YELLOW = "YELLOW"
    GREEN = "GREEN"


@dataclass(frozen=True)
class Occupancy:
    days_remaining: int
    level: OccupancyLevel


def _as_datetime(value: date | datetime) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.combine(value, time.min)


def days_remaining(expected_checkout: date | datetime, today: date | datetime) -> int:
    """Whole days until checkout, rounded up; never negative."""
    checkout, now = _as_datetime(expected_checkout), _as_datetime(today)
    if (checkout.tzinfo is None) != (now.tzinfo is None):
        checkout, now = checkout.replace(tzinfo=None), now.replace(tzinfo=None)
    return max(0, math.ceil((checkout - now).total_seconds() / 86400))


def classify(
    expected_checkout: date | datetime,
    today: date | datetime | None = None,
    *,
    red_days: int | None = None,
    yellow_days: int | None = None,
) -> Occupancy:
    red = settings.boarding_red_days if red_days is None else red_days
    yellow = settings.boarding_yellow_days if yellow_days is None else yellow_days
    remaining = days_remaining(expected_checkout, today or date.today())
    if remaining <= red:
        level = OccupancyLevel.RED
    elif remaining <= yellow:
        level = OccupancyLevel.YELLOW
    else:
        level = OccupancyLevel.GREEN
    return Occupancy(days_remaining=remaining, level=level)
