"""
time_grid.py
------------
Helpers to normalize time-of-day values into minute offsets and back.

Stored times arrive with inconsistent precision depending on the write path
("10:00", "10:00:00", "10:00:00.000000" or a datetime.time), so every
comparison in the scheduling services goes through parse_time_to_minutes().
"""

from datetime import date, time

from .exceptions import MalformedTimeError

# Published slots always sit on :00, :10, :20, :30, :40, :50.
SLOT_GRID_MINUTES = 10
MINUTES_PER_DAY = 24 * 60


def parse_time_to_minutes(value) -> int:
    """
    Convert a time-of-day into minutes since midnight.

    Accepts datetime.time or strings shaped like HH:MM, HH:MM:SS or
    HH:MM:SS.ffffff. Seconds and fractions are dropped before the hour/minute
    pair is read.

    Raises:
        MalformedTimeError: non-numeric parts, missing minute, hour > 23 or
        minute > 59.
    """
    if isinstance(value, time):
        return value.hour * 60 + value.minute

    if not isinstance(value, str):
        raise MalformedTimeError(f"Unsupported time value: {value!r}")

    text = value.strip()
    # Strip the fractional suffix first, then anything past HH:MM.
    text = text.split(".", 1)[0]
    parts = text.split(":")
    if len(parts) < 2:
        raise MalformedTimeError(f"Expected HH:MM, got {value!r}")

    hour_raw, minute_raw = parts[0].strip(), parts[1].strip()
    if not hour_raw.isdigit() or not minute_raw.isdigit():
        raise MalformedTimeError(f"Non-numeric time value: {value!r}")

    hour, minute = int(hour_raw), int(minute_raw)
    if hour > 23 or minute > 59:
        raise MalformedTimeError(f"Time out of range: {value!r}")
    return hour * 60 + minute


def minutes_to_time(minutes: int) -> time:
    if not 0 <= minutes < MINUTES_PER_DAY:
        raise MalformedTimeError(f"Minute offset out of range: {minutes}")
    return time(minutes // 60, minutes % 60)


def format_minutes(minutes: int) -> str:
    """Render a minute offset as zero-padded 'HH:MM'."""
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def snap_to_grid(minutes: int, grid: int = SLOT_GRID_MINUTES) -> int:
    """Round up to the next grid boundary (a value on the grid is kept)."""
    return -(-minutes // grid) * grid


def weekday_index(day: date) -> int:
    """0 = Sunday ... 6 = Saturday, the convention WorkingHours.weekday uses."""
    return day.isoweekday() % 7
