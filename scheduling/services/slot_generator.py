"""
slot_generator.py
-----------------
Resolves a staff member's working window for a date and generates candidate
appointment starts inside it on the fixed 10-minute grid.

Candidates are not filtered for conflicts here; see conflict_detector.py.
"""

from dataclasses import dataclass
from datetime import datetime, time

from .exceptions import InvalidDurationError
from .time_grid import (
    SLOT_GRID_MINUTES,
    format_minutes,
    minutes_to_time,
    parse_time_to_minutes,
    snap_to_grid,
)


@dataclass(frozen=True)
class WorkingWindow:
    """Half-open [start, end) in minutes since midnight."""
    start: int
    end: int


@dataclass(frozen=True, order=True)
class Slot:
    """A bookable interval; start is always on the grid."""
    start: int
    end: int

    @property
    def start_time(self) -> time:
        return minutes_to_time(self.start)

    @property
    def end_time(self) -> time:
        return minutes_to_time(self.end)

    def as_dict(self) -> dict:
        return {"start_time": format_minutes(self.start), "end_time": format_minutes(self.end)}


def resolve_window(schedule, exception=None):
    """
    Turn a WorkingHours row and an optional ScheduleException into a window.

    Returns None when there is nothing to book: no schedule, an inactive
    schedule, or an exception that marks the day off. An exception with times
    replaces the weekly window for that date.
    """
    if exception is not None:
        if exception.start_time is None or exception.end_time is None:
            return None
        start = parse_time_to_minutes(exception.start_time)
        end = parse_time_to_minutes(exception.end_time)
    else:
        if schedule is None or not schedule.is_active:
            return None
        start = parse_time_to_minutes(schedule.start_time)
        end = parse_time_to_minutes(schedule.end_time)

    if start >= end:
        return None
    return WorkingWindow(start=start, end=end)


def minutes_not_before(now: datetime) -> int:
    """
    The first whole minute at or after 'now'.

    A clock reading of 10:10:30 yields 10:11, so a slot never starts in the
    past.
    """
    minutes = now.hour * 60 + now.minute
    if now.second or now.microsecond:
        minutes += 1
    return minutes


def generate_candidate_starts(window, duration_minutes: int, not_before: int | None = None):
    """
    Candidate slots in ascending order.

    Args:
        window: WorkingWindow or None
        duration_minutes: service duration, must be > 0
        not_before: earliest allowed start in minutes (pass the current
            wall-clock minute when the date is today)

    Raises:
        InvalidDurationError: if duration_minutes <= 0
    """
    if duration_minutes is None or duration_minutes <= 0:
        raise InvalidDurationError(f"Service duration must be positive, got {duration_minutes!r}")

    if window is None:
        return []

    start = window.start
    if not_before is not None:
        start = max(start, not_before)

    slots = []
    current = snap_to_grid(start, SLOT_GRID_MINUTES)
    while current + duration_minutes <= window.end:
        slots.append(Slot(start=current, end=current + duration_minutes))
        current += SLOT_GRID_MINUTES
    return slots
