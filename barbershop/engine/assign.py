# barbershop/engine/assign.py

from datetime import datetime
from typing import Dict, List, Sequence

from ..models import Appointment, Barber
from .errors import NoBarberAvailable
from .occupancy import is_blocking


def booking_count(appointments: Sequence[Appointment], now: datetime) -> int:
    """Blocking bookings of the day; a multi-service group counts once."""
    keys = set()
    for appt in appointments:
        if is_blocking(appt, now):
            keys.add(appt.group_id or f"appt:{appt.id}")
    return len(keys)


def pick_barber(
    free: Sequence[Barber],
    appointments_by_barber: Dict[int, List[Appointment]],
    now: datetime,
) -> Barber:
    """
    Least-loaded barber among the free candidates. Ties keep roster order,
    so the choice is deterministic.
    """
    if not free:
        raise NoBarberAvailable()

    best = None
    best_load = None
    for barber in free:
        load = booking_count(appointments_by_barber.get(barber.id, []), now)
        if best is None or load < best_load:
            best = barber
            best_load = load
    return best
