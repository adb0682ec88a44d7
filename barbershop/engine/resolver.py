# barbershop/engine/resolver.py
"""
Schedule resolution.

Merges business hours, recurring breaks and date exceptions into one
effective working window (plus blocked sub-intervals) for a single date.

Precedence:
  1. closing exceptions (day_off / vacation / holiday) close the day
  2. special_hours exceptions replace the window
  3. the weekday's BusinessHours record
Breaks are applied on top of whichever window won, clipped to it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, List, Optional, Tuple

from ..core import clip, to_minutes, weekday_of
from ..models import BusinessHours, RecurringBreak, ScheduleException
from .schedule_rules import (
    CLOSING_EXCEPTION_TYPES,
    break_applies_on,
    exception_covers,
    type_description,
)

logger = logging.getLogger(__name__)

NOT_A_BUSINESS_DAY = "Not a business day"


@dataclass(frozen=True)
class ScheduleSnapshot:
    """Read-only copy of a salon's schedule configuration."""
    salon_id: int
    hours: Dict[int, BusinessHours] = field(default_factory=dict)
    breaks: Tuple[RecurringBreak, ...] = ()
    exceptions: Tuple[ScheduleException, ...] = ()


@dataclass(frozen=True)
class BlockedInterval:
    name: str
    start: int
    end: int


@dataclass(frozen=True)
class DayResolution:
    date: date
    is_business_day: bool
    type: str
    reason: Optional[str] = None
    window: Optional[Tuple[int, int]] = None
    is_special: bool = False
    blocked_intervals: Tuple[BlockedInterval, ...] = ()


def matching_exceptions(snapshot: ScheduleSnapshot, day: date) -> List[ScheduleException]:
    found = [e for e in snapshot.exceptions if e.is_active and exception_covers(e, day)]
    found.sort(key=lambda e: (e.start_date, e.id or 0))
    return found


def resolve_day(snapshot: ScheduleSnapshot, day: date) -> DayResolution:
    exceptions = matching_exceptions(snapshot, day)

    # closing is stronger than customizing
    for exc in exceptions:
        if exc.exception_type in CLOSING_EXCEPTION_TYPES:
            return DayResolution(
                date=day,
                is_business_day=False,
                type=exc.exception_type,
                reason=exc.reason or exc.name or type_description(exc.exception_type),
            )

    window = None
    is_special = False
    day_type = "regular"
    for exc in exceptions:
        if exc.exception_type == "special_hours":
            window = (
                to_minutes(exc.special_start_time),
                to_minutes(exc.special_end_time, allow_end_of_day=True),
            )
            is_special = True
            day_type = "special_hours"
            break

    weekday = weekday_of(day)
    if window is None:
        hours = snapshot.hours.get(weekday)
        if hours is None or not hours.is_active:
            return DayResolution(
                date=day,
                is_business_day=False,
                type="closed",
                reason=NOT_A_BUSINESS_DAY,
            )
        window = (to_minutes(hours.start_time), to_minutes(hours.end_time, allow_end_of_day=True))

    if window[0] >= window[1]:
        # stored configuration is validated on write; a bad row closes the day
        logger.warning(f"Salon {snapshot.salon_id}: empty window on {day.isoformat()}")
        return DayResolution(date=day, is_business_day=False, type="closed", reason=NOT_A_BUSINESS_DAY)

    blocked = []
    for brk in snapshot.breaks:
        if not break_applies_on(brk, weekday):
            continue
        brk_start = to_minutes(brk.start_time)
        brk_end = to_minutes(brk.end_time, allow_end_of_day=True)
        clipped = clip(brk_start, brk_end, window[0], window[1])
        if clipped is None:
            continue
        blocked.append(BlockedInterval(name=brk.name, start=clipped[0], end=clipped[1]))
    blocked.sort(key=lambda b: (b.start, b.end))

    return DayResolution(
        date=day,
        is_business_day=True,
        type=day_type,
        window=window,
        is_special=is_special,
        blocked_intervals=tuple(blocked),
    )
