# barbershop/engine/schedule_rules.py
"""
Rules over stored schedule records: validation on write, and the derived
values (durations, descriptions) computed on demand instead of being stored.
"""

import logging
from datetime import date

from ..core import DAY_NAMES, to_minutes
from .errors import InvalidScheduleConfig

logger = logging.getLogger(__name__)

RECURRENCE_TYPES = ("daily", "weekly", "specific_days")
EXCEPTION_TYPES = ("day_off", "special_hours", "vacation", "holiday")
CLOSING_EXCEPTION_TYPES = ("day_off", "vacation", "holiday")

EXCEPTION_TYPE_DESCRIPTIONS = {
    "day_off": "Day off",
    "special_hours": "Special hours",
    "vacation": "Vacation",
    "holiday": "Holiday",
}

SHORT_DAY_NAMES = ["Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun"]


def _clock(value, label: str, end: bool = False) -> int:
    try:
        return to_minutes(value, allow_end_of_day=end)
    except ValueError:
        raise InvalidScheduleConfig(f"{label} must be a valid HH:MM time")


def _check_days(days) -> None:
    for day in days:
        if not isinstance(day, int) or not (0 <= day <= 6):
            raise InvalidScheduleConfig("days must be integers between 0 and 6")
    if len(days) != len(set(days)):
        raise InvalidScheduleConfig("days cannot contain duplicates")


# ── Validation ───────────────────────────────────────────────────────────


def validate_business_hours(day_of_week: int, is_active: bool, start_time: str, end_time: str) -> None:
    if not (0 <= day_of_week <= 6):
        raise InvalidScheduleConfig("day_of_week must be between 0 and 6")
    start = _clock(start_time, "start_time")
    end = _clock(end_time, "end_time", end=True)
    if is_active and start >= end:
        raise InvalidScheduleConfig("start_time must be before end_time")


def validate_break(start_time: str, end_time: str, recurrence_type: str, specific_days) -> None:
    if _clock(start_time, "start_time") >= _clock(end_time, "end_time", end=True):
        raise InvalidScheduleConfig("start_time must be before end_time")
    if recurrence_type not in RECURRENCE_TYPES:
        raise InvalidScheduleConfig(f"recurrence_type must be one of {', '.join(RECURRENCE_TYPES)}")
    days = list(specific_days or [])
    _check_days(days)
    if recurrence_type == "specific_days" and not days:
        raise InvalidScheduleConfig("specific_days requires at least one day")
    if recurrence_type == "weekly" and not days:
        logger.warning("Weekly break saved without days; it will apply every day")


def validate_exception(
    exception_type: str,
    start_date: date,
    end_date: date,
    special_start_time=None,
    special_end_time=None,
) -> None:
    if exception_type not in EXCEPTION_TYPES:
        raise InvalidScheduleConfig(f"exception_type must be one of {', '.join(EXCEPTION_TYPES)}")
    if start_date > end_date:
        raise InvalidScheduleConfig("start_date must be on or before end_date")
    if exception_type == "special_hours":
        if not special_start_time or not special_end_time:
            raise InvalidScheduleConfig("special_hours requires special_start_time and special_end_time")
        start = _clock(special_start_time, "special_start_time")
        end = _clock(special_end_time, "special_end_time", end=True)
        if start >= end:
            raise InvalidScheduleConfig("special_start_time must be before special_end_time")


# ── Matching ─────────────────────────────────────────────────────────────


def break_applies_on(brk, weekday: int) -> bool:
    if not brk.is_active:
        return False
    if brk.recurrence_type == "daily":
        return True
    if brk.recurrence_type == "specific_days":
        return weekday in (brk.specific_days or [])
    if brk.recurrence_type == "weekly":
        # without days a weekly break keeps the legacy every-day behaviour
        if brk.specific_days:
            return weekday in brk.specific_days
        return True
    return False


def exception_covers(exc, day: date) -> bool:
    if not exc.is_recurring_annually:
        return exc.start_date <= day <= exc.end_date
    if day < exc.start_date:
        # repeats from its first occurrence on
        return False

    # compare (month, day) only so Feb 29 ranges still work in other years
    target = (day.month, day.day)
    start = (exc.start_date.month, exc.start_date.day)
    end = (exc.end_date.month, exc.end_date.day)
    if (exc.end_date - exc.start_date).days >= 365:
        return True
    if start <= end:
        return start <= target <= end
    # wraps the new year, e.g. Dec 24 - Jan 2
    return target >= start or target <= end


# ── Derived values ───────────────────────────────────────────────────────


def break_duration(brk) -> int:
    return to_minutes(brk.end_time, allow_end_of_day=True) - to_minutes(brk.start_time)


def recurrence_description(brk) -> str:
    if brk.recurrence_type == "daily":
        return "Every day"
    if brk.recurrence_type == "weekly":
        if brk.specific_days:
            return "Weekly: " + ", ".join(SHORT_DAY_NAMES[d] for d in sorted(brk.specific_days))
        return "Weekly"
    if brk.recurrence_type == "specific_days":
        if not brk.specific_days:
            return "No days selected"
        return "Only: " + ", ".join(SHORT_DAY_NAMES[d] for d in sorted(brk.specific_days))
    return "Unspecified"


def is_day_off(exc) -> bool:
    return exc.exception_type in CLOSING_EXCEPTION_TYPES


def has_special_hours(exc) -> bool:
    return bool(exc.exception_type == "special_hours" and exc.special_start_time and exc.special_end_time)


def duration_days(exc) -> int:
    return (exc.end_date - exc.start_date).days + 1


def type_description(exception_type: str) -> str:
    return EXCEPTION_TYPE_DESCRIPTIONS.get(exception_type, "Unspecified")


def day_name(day_of_week: int) -> str:
    return DAY_NAMES[day_of_week]
