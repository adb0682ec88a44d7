# barbershop/engine/occupancy.py

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Sequence, Tuple

from ..core import overlaps, to_clock, to_minutes
from ..models import Appointment, Barber

CANCELADA = "CANCELADA"
EXPIRADA = "EXPIRADA"
ESPERANDO_PAGO = "ESPERANDO_PAGO"

RELEASED_STATUSES = (CANCELADA, EXPIRADA)


@dataclass(frozen=True)
class BarberRef:
    id: int
    name: str

    @classmethod
    def of(cls, barber: Barber) -> "BarberRef":
        return cls(id=barber.id, name=barber.name)


@dataclass(frozen=True)
class SlotAvailability:
    time: str
    available: bool
    available_barbers: Tuple[BarberRef, ...] = ()


def hold_has_expired(appt: Appointment, now: datetime) -> bool:
    return (
        appt.status == ESPERANDO_PAGO
        and appt.hold_expires_at is not None
        and appt.hold_expires_at < now
    )


def is_blocking(appt: Appointment, now: datetime) -> bool:
    """Whether the appointment still occupies its interval at `now`."""
    if appt.status in RELEASED_STATUSES:
        return False
    # an unpaid hold past its deadline is free even before the sweep marks it
    if hold_has_expired(appt, now):
        return False
    return True


def interval_of(appt: Appointment) -> Tuple[int, int]:
    start = to_minutes(appt.time)
    return start, start + appt.duration


def barber_is_free(
    start: int,
    duration: int,
    appointments: Iterable[Appointment],
    now: datetime,
) -> bool:
    end = start + duration
    for appt in appointments:
        if not is_blocking(appt, now):
            continue
        appt_start, appt_end = interval_of(appt)
        if overlaps(start, end, appt_start, appt_end):
            return False
    return True


def free_barbers(
    start: int,
    duration: int,
    roster: Sequence[Barber],
    appointments_by_barber: Dict[int, List[Appointment]],
    now: datetime,
) -> List[Barber]:
    return [
        b for b in roster
        if barber_is_free(start, duration, appointments_by_barber.get(b.id, ()), now)
    ]


def filter_slots(
    candidates: Iterable[int],
    total_duration: int,
    roster: Sequence[Barber],
    appointments_by_barber: Dict[int, List[Appointment]],
    now: datetime,
) -> List[SlotAvailability]:
    """
    Mark each candidate start as available when at least one roster barber is
    free for the whole block. A pinned barber is simply a one-entry roster.
    """
    result = []
    for start in candidates:
        free = free_barbers(start, total_duration, roster, appointments_by_barber, now)
        result.append(SlotAvailability(
            time=to_clock(start),
            available=bool(free),
            available_barbers=tuple(BarberRef.of(b) for b in free),
        ))
    return result
