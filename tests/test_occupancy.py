from datetime import timedelta

import pytest

from barbershop.core import to_minutes
from barbershop.engine.assign import booking_count, pick_barber
from barbershop.engine.errors import NoBarberAvailable
from barbershop.engine.occupancy import (
    barber_is_free,
    filter_slots,
    free_barbers,
    hold_has_expired,
    is_blocking,
)
from barbershop.models import Appointment, Barber

from conftest import NOW, TUESDAY

ANA = Barber(id=1, salon_id=1, name="Ana")
BETO = Barber(id=2, salon_id=1, name="Beto")


def _appt(id, barber, time, duration=30, status="CONFIRMADA", group_id=None, hold_expires_at=None):
    return Appointment(
        id=id,
        salon_id=1,
        barber_id=barber.id,
        service_id=1,
        date=TUESDAY,
        time=time,
        duration=duration,
        status=status,
        group_id=group_id,
        hold_expires_at=hold_expires_at,
        client_name="Luis",
        client_email="luis@example.com",
    )


def test_touching_appointments_do_not_conflict() -> None:
    busy = [_appt(1, ANA, "10:00")]
    assert not barber_is_free(to_minutes("10:00"), 30, busy, NOW)
    assert not barber_is_free(to_minutes("09:45"), 30, busy, NOW)
    assert barber_is_free(to_minutes("09:30"), 30, busy, NOW)
    assert barber_is_free(to_minutes("10:30"), 30, busy, NOW)


def test_released_statuses_do_not_block() -> None:
    for status in ("CANCELADA", "EXPIRADA"):
        assert not is_blocking(_appt(1, ANA, "10:00", status=status), NOW)
    for status in ("PENDIENTE", "CONFIRMADA", "COMPLETADA", "NO_ASISTIO"):
        assert is_blocking(_appt(1, ANA, "10:00", status=status), NOW)


def test_hold_stops_blocking_once_its_deadline_passes() -> None:
    hold = _appt(1, ANA, "10:00", status="ESPERANDO_PAGO", hold_expires_at=NOW + timedelta(minutes=15))

    assert is_blocking(hold, NOW)
    assert not hold_has_expired(hold, NOW + timedelta(minutes=15))
    assert hold_has_expired(hold, NOW + timedelta(minutes=16))
    assert not is_blocking(hold, NOW + timedelta(minutes=16))


def test_free_barbers_keeps_roster_order() -> None:
    by_barber = {ANA.id: [_appt(1, ANA, "10:00")]}
    assert free_barbers(to_minutes("10:00"), 30, [ANA, BETO], by_barber, NOW) == [BETO]
    assert free_barbers(to_minutes("11:00"), 30, [ANA, BETO], by_barber, NOW) == [ANA, BETO]


def test_filter_slots_marks_each_candidate() -> None:
    by_barber = {
        ANA.id: [_appt(1, ANA, "10:00")],
        BETO.id: [_appt(2, BETO, "10:00", duration=60)],
    }
    slots = filter_slots([570, 600, 630], 30, [ANA, BETO], by_barber, NOW)

    assert [(s.time, s.available) for s in slots] == [
        ("09:30", True),
        ("10:00", False),
        ("10:30", True),
    ]
    assert [b.name for b in slots[2].available_barbers] == ["Ana"]


def test_booking_count_counts_a_group_once() -> None:
    rows = [
        _appt(1, ANA, "10:00", group_id="g1"),
        _appt(2, ANA, "10:30", group_id="g1"),
        _appt(3, ANA, "12:00"),
        _appt(4, ANA, "15:00", status="CANCELADA"),
    ]
    assert booking_count(rows, NOW) == 2


def test_pick_barber_prefers_the_least_loaded() -> None:
    by_barber = {ANA.id: [_appt(1, ANA, "09:00"), _appt(2, ANA, "11:00")], BETO.id: [_appt(3, BETO, "09:00")]}
    assert pick_barber([ANA, BETO], by_barber, NOW) is BETO


def test_pick_barber_breaks_ties_by_roster_order() -> None:
    assert pick_barber([ANA, BETO], {}, NOW) is ANA
    assert pick_barber([BETO, ANA], {}, NOW) is BETO


def test_pick_barber_without_candidates() -> None:
    with pytest.raises(NoBarberAvailable):
        pick_barber([], {}, NOW)
