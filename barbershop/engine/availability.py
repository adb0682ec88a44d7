# barbershop/engine/availability.py
"""
Read side of the engine: day status for calendars and the slot grid for a
single day.

Closed days and empty grids are ordinary results carrying a reason; nothing
here raises for them.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Dict, List, Optional, Sequence, Tuple

from ..config import Settings
from ..core import minutes_of, to_clock
from ..models import Appointment, Barber
from .occupancy import SlotAvailability, filter_slots
from .resolver import BlockedInterval, ScheduleSnapshot, resolve_day
from .slots import generate_slots

MAX_CALENDAR_DAYS = 62

PAST_DATE = "Date is in the past"


@dataclass(frozen=True)
class DayStatus:
    date: date
    available: bool
    type: str
    reason: Optional[str] = None
    window: Optional[Tuple[str, str]] = None


@dataclass(frozen=True)
class Availability:
    date: date
    is_business_day: bool
    type: str
    reason: Optional[str]
    window: Optional[Tuple[str, str]]
    is_special: bool
    breaks: Tuple[BlockedInterval, ...]
    total_duration: int
    available_slots: Tuple[str, ...]
    all_slots: Tuple[SlotAvailability, ...]


def _clock_window(window) -> Optional[Tuple[str, str]]:
    if window is None:
        return None
    return to_clock(window[0]), to_clock(window[1])


def resolve_day_status(snapshot: ScheduleSnapshot, day: date, now: datetime) -> DayStatus:
    if day < now.date():
        return DayStatus(date=day, available=False, type="past", reason=PAST_DATE)

    resolution = resolve_day(snapshot, day)
    return DayStatus(
        date=day,
        available=resolution.is_business_day,
        type=resolution.type,
        reason=resolution.reason,
        window=_clock_window(resolution.window),
    )


def resolve_day_statuses(
    snapshot: ScheduleSnapshot,
    start: date,
    end: date,
    now: datetime,
) -> List[DayStatus]:
    if end < start:
        raise ValueError("end must be on or after start")
    if (end - start).days + 1 > MAX_CALENDAR_DAYS:
        raise ValueError(f"range cannot exceed {MAX_CALENDAR_DAYS} days")

    days = []
    current = start
    while current <= end:
        days.append(resolve_day_status(snapshot, current, now))
        current += timedelta(days=1)
    return days


def candidate_slots(
    snapshot: ScheduleSnapshot,
    day: date,
    total_duration: int,
    now: datetime,
    settings: Settings,
):
    """Resolve the day and list the start minutes its grid allows."""
    resolution = resolve_day(snapshot, day)
    if not resolution.is_business_day or day < now.date():
        return resolution, []

    starts = list(generate_slots(
        resolution.window,
        resolution.blocked_intervals,
        total_duration,
        settings.slot_minutes,
        is_today=day == now.date(),
        now_minutes=minutes_of(now),
        buffer_minutes=settings.booking_buffer_minutes,
    ))
    return resolution, starts


def compute_availability(
    snapshot: ScheduleSnapshot,
    day: date,
    roster: Sequence[Barber],
    appointments_by_barber: Dict[int, List[Appointment]],
    total_duration: int,
    now: datetime,
    settings: Settings,
) -> Availability:
    if total_duration <= 0:
        raise ValueError("total_duration must be > 0")

    resolution, starts = candidate_slots(snapshot, day, total_duration, now, settings)

    day_type = resolution.type
    reason = resolution.reason
    if day < now.date():
        day_type, reason = "past", PAST_DATE

    slots = filter_slots(starts, total_duration, roster, appointments_by_barber, now)

    return Availability(
        date=day,
        is_business_day=resolution.is_business_day,
        type=day_type,
        reason=reason,
        window=_clock_window(resolution.window),
        is_special=resolution.is_special,
        breaks=resolution.blocked_intervals,
        total_duration=total_duration,
        available_slots=tuple(s.time for s in slots if s.available),
        all_slots=tuple(slots),
    )
