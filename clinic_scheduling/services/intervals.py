from collections.abc import Iterable
from dataclasses import dataclass
from datetime import time

MINUTES_PER_DAY = 24 * 60


@dataclass(frozen=True, order=True)
class Interval:
    """Half-open [start, end) in minutes since midnight."""

    start: int
    end: int

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"Invalid interval [{self.start}, {self.end})")

    @classmethod
    def between(cls, start: time, end: time) -> "Interval":
        return cls(to_minutes(start), to_minutes(end))

    @classmethod
    def starting_at(cls, start: time, duration_minutes: int) -> "Interval":
        begin = to_minutes(start)
        return cls(begin, begin + duration_minutes)

    @property
    def duration(self) -> int:
        return self.end - self.start

    @property
    def is_empty(self) -> bool:
        return self.end == self.start

    def overlaps(self, other: "Interval") -> bool:
        return self.start < other.end and other.start < self.end

    def contains(self, other: "Interval") -> bool:
        return self.start <= other.start and other.end <= self.end

    def __str__(self) -> str:
        return f"{format_hhmm(self.start)}-{format_hhmm(self.end)}"


def to_minutes(t: time) -> int:
    return t.hour * 60 + t.minute


def from_minutes(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise ValueError(f"{minutes} minutes is outside a single day")
    return time(minutes // 60, minutes % 60)


def format_hhmm(value: int | time) -> str:
    minutes = to_minutes(value) if isinstance(value, time) else value
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def parse_hhmm(value: str) -> time:
    """Parse "HH:MM" strictly; raises ValueError on anything else."""
    hours, sep, minutes = value.partition(":")
    if not sep or len(hours) != 2 or len(minutes) != 2 or not (hours + minutes).isdigit():
        raise ValueError(f"Expected HH:MM, got {value!r}")
    return time(int(hours), int(minutes))


def merge(intervals: Iterable[Interval]) -> list[Interval]:
    """Sort and coalesce overlapping or touching intervals, dropping empty ones."""
    merged: list[Interval] = []
    for current in sorted(i for i in intervals if not i.is_empty):
        if merged and current.start <= merged[-1].end:
            last = merged[-1]
            merged[-1] = Interval(last.start, max(last.end, current.end))
        else:
            merged.append(current)
    return merged


def subtract(base: Iterable[Interval], cuts: Iterable[Interval]) -> list[Interval]:
    """Remove every cut from the base intervals; result is sorted and non-empty."""
    remaining = merge(base)
    for cut in merge(cuts):
        pieces: list[Interval] = []
        for part in remaining:
            if not part.overlaps(cut):
                pieces.append(part)
                continue
            if part.start < cut.start:
                pieces.append(Interval(part.start, cut.start))
            if cut.end < part.end:
                pieces.append(Interval(cut.end, part.end))
        remaining = pieces
    return remaining


def slot_starts(open_intervals: Iterable[Interval], duration: int, step: int) -> list[int]:
    """Candidate starts, every ``step`` minutes from each interval's start, that fit whole."""
    if duration <= 0 or step <= 0:
        raise ValueError("duration and step must be positive")
    starts: list[int] = []
    for interval in sorted(open_intervals):
        current = interval.start
        while current + duration <= interval.end:
            starts.append(current)
            current += step
    return starts
