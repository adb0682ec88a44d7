# barbershop/core.py
"""
Time-window helpers shared by the scheduling engine.

Clock values ("HH:MM") are converted to integer minutes from midnight and
every interval is half-open: [start, end).
"""

import re
from datetime import date, datetime
from typing import Iterator, Optional, Tuple
from zoneinfo import ZoneInfo

CLOCK_RE = re.compile(r"^([01]?[0-9]|2[0-3]):([0-5][0-9])$")

MINUTES_PER_DAY = 24 * 60
END_OF_DAY = "24:00"

DAY_NAMES = ["Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday"]


def to_minutes(clock: str, allow_end_of_day: bool = False) -> int:
    """
    Convert "HH:MM" to minutes from midnight. "24:00" (1440) is only
    accepted with allow_end_of_day, for the end of a window.
    """
    if not isinstance(clock, str):
        raise ValueError(f"Invalid time {clock!r}, expected HH:MM")
    if allow_end_of_day and clock.strip() == END_OF_DAY:
        return MINUTES_PER_DAY
    match = CLOCK_RE.match(clock.strip())
    if match is None:
        raise ValueError(f"Invalid time {clock!r}, expected HH:MM")
    return int(match.group(1)) * 60 + int(match.group(2))


def to_clock(minutes: int) -> str:
    """Convert minutes from midnight to "HH:MM"."""
    if minutes < 0 or minutes > MINUTES_PER_DAY:
        raise ValueError(f"Minute offset out of range: {minutes}")
    return f"{minutes // 60:02d}:{minutes % 60:02d}"


def normalize_clock(clock: str, allow_end_of_day: bool = False) -> str:
    """"9:05" -> "09:05"."""
    return to_clock(to_minutes(clock, allow_end_of_day))


def overlaps(a_start, a_end, b_start, b_end) -> bool:
    # touching endpoints do not conflict
    return a_start < b_end and b_start < a_end


def contains(outer_start, outer_end, start, end) -> bool:
    return outer_start <= start and end <= outer_end


def clip(start: int, end: int, lo: int, hi: int) -> Optional[Tuple[int, int]]:
    """Clip [start, end) to [lo, hi). None when nothing is left."""
    s = max(start, lo)
    e = min(end, hi)
    if s >= e:
        return None
    return s, e


def slot_grid(start: int, end: int, step: int) -> Iterator[int]:
    t = start
    while t < end:
        yield t
        t += step


def weekday_of(day: date) -> int:
    # 0 = Monday ... 6 = Sunday, taken from the calendar date itself
    return day.weekday()


def local_now(timezone: str) -> datetime:
    """Current salon wall-clock time as a naive datetime."""
    return datetime.now(ZoneInfo(timezone)).replace(tzinfo=None)


def minutes_of(moment: datetime) -> int:
    return moment.hour * 60 + moment.minute
