from datetime import datetime, timedelta

import pytest
from sqlmodel import Session, select

from barbershop.engine.errors import (
    HoldExpired,
    InvalidPaymentToken,
    InvalidTransition,
    NotFound,
    SlotNoLongerAvailable,
)
from barbershop.engine.events import APPOINTMENT_EXPIRED, APPOINTMENT_STATUS_CHANGED
from barbershop.engine.holds import TERMINAL_STATUSES, TRANSITIONS, can_transition
from barbershop.models import Appointment

from conftest import NOW, TUESDAY, make_request


@pytest.fixture
def booked(session, salon, allocator):
    return allocator.book(session, salon, make_request(TUESDAY, "10:00", barber_id=1), now=NOW)


@pytest.fixture
def group(session, salon, allocator):
    return allocator.book(session, salon, make_request(TUESDAY, "15:00", service_ids=(1, 2), barber_id=2), now=NOW)


def _statuses(session, ids):
    rows = session.exec(select(Appointment).where(Appointment.id.in_(ids))).all()
    for row in rows:
        session.refresh(row)
    return {row.status for row in rows}


def test_terminal_statuses_have_no_way_out() -> None:
    for status in TERMINAL_STATUSES:
        assert not any(can_transition(status, action) for action in TRANSITIONS)


def test_request_payment_opens_a_hold(session, salon, machine, booked) -> None:
    rows = machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)

    assert rows[0].status == "ESPERANDO_PAGO"
    assert rows[0].hold_expires_at == NOW + timedelta(minutes=15)
    assert rows[0].payment_token


def test_stored_datetimes_round_trip(engine, session, salon, allocator, machine, booked) -> None:
    machine.cancel(session, booked.appointment_ids[0], now=NOW + timedelta(minutes=1))
    again = allocator.book(session, salon, make_request(TUESDAY, "10:00", barber_id=1), now=NOW)
    machine.request_payment(session, salon, again.appointment_ids[0], now=NOW)

    with Session(engine) as fresh:
        held = fresh.get(Appointment, again.appointment_ids[0])
        assert held.hold_expires_at == NOW + timedelta(minutes=15)
        assert held.hold_expires_at.tzinfo is None
        assert held.created_at == NOW
        cancelled = fresh.get(Appointment, booked.appointment_ids[0])
        assert cancelled.cancelled_at == NOW + timedelta(minutes=1)

    # the sweep compares the stored deadline against salon time
    assert machine.sweep_expired_holds(session, now=NOW + timedelta(minutes=15)) == 1


def test_salon_hold_minutes_override_the_default(session, salon, machine, booked) -> None:
    salon.hold_minutes = 5
    session.add(salon)
    session.commit()

    rows = machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    assert rows[0].hold_expires_at == NOW + timedelta(minutes=5)


def test_confirm_payment_within_the_hold(session, salon, machine, booked, received) -> None:
    rows = machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    token = rows[0].payment_token

    status = machine.confirm_payment(
        session, token, appointment_id=booked.appointment_ids[0], now=NOW + timedelta(minutes=10)
    )

    assert status == "CONFIRMADA"
    row = session.get(Appointment, booked.appointment_ids[0])
    assert row.hold_expires_at is None
    assert row.payment_token is None
    changes = [(e["from_status"], e["to_status"]) for e in received if e["type"] == APPOINTMENT_STATUS_CHANGED]
    assert changes == [("PENDIENTE", "ESPERANDO_PAGO"), ("ESPERANDO_PAGO", "CONFIRMADA")]


def test_wrong_token_is_rejected(session, salon, machine, booked) -> None:
    machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)

    with pytest.raises(InvalidPaymentToken):
        machine.confirm_payment(session, "not-the-token", appointment_id=booked.appointment_ids[0], now=NOW)
    assert _statuses(session, booked.appointment_ids) == {"ESPERANDO_PAGO"}


def test_late_payment_expires_the_hold(session, salon, machine, booked, received) -> None:
    rows = machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    token = rows[0].payment_token
    late = NOW + timedelta(minutes=16)

    with pytest.raises(HoldExpired):
        machine.confirm_payment(session, token, appointment_id=booked.appointment_ids[0], now=late)
    assert _statuses(session, booked.appointment_ids) == {"EXPIRADA"}
    assert any(e["type"] == APPOINTMENT_EXPIRED for e in received)

    # asking again still answers with the expiry
    with pytest.raises(HoldExpired):
        machine.confirm_payment(session, token, appointment_id=booked.appointment_ids[0], now=late)


def test_confirm_requires_a_pending_hold(session, machine, booked) -> None:
    with pytest.raises(InvalidTransition):
        machine.confirm_payment(session, "token", appointment_id=booked.appointment_ids[0], now=NOW)


def test_expired_hold_frees_the_slot_before_any_sweep(session, salon, allocator, machine, booked) -> None:
    machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    later = NOW + timedelta(minutes=16)

    result = allocator.book(session, salon, make_request(TUESDAY, "10:00", barber_id=1), now=later)
    assert result.barber.name == "Ana"


def test_live_hold_keeps_blocking(session, salon, allocator, machine, booked) -> None:
    machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    with pytest.raises(SlotNoLongerAvailable):
        allocator.book(session, salon, make_request(TUESDAY, "10:00", barber_id=1), now=NOW + timedelta(minutes=5))


def test_group_moves_together(session, salon, machine, group) -> None:
    rows = machine.request_payment(session, salon, group.appointment_ids[1], now=NOW)
    assert len(rows) == 2
    token = rows[0].payment_token
    assert {r.payment_token for r in rows} == {token}

    machine.confirm_payment(session, token, group_id=group.group_id, now=NOW)
    assert _statuses(session, group.appointment_ids) == {"CONFIRMADA"}


def test_sweep_releases_only_overdue_holds(session, salon, machine, booked, group, received) -> None:
    machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    machine.request_payment(session, salon, group.appointment_ids[0], now=NOW + timedelta(minutes=10))

    released = machine.sweep_expired_holds(session, now=NOW + timedelta(minutes=20))

    assert released == 1
    assert _statuses(session, booked.appointment_ids) == {"EXPIRADA"}
    assert _statuses(session, group.appointment_ids) == {"ESPERANDO_PAGO"}
    expired = [e for e in received if e["type"] == APPOINTMENT_EXPIRED]
    assert [e["appointment_ids"] for e in expired] == [booked.appointment_ids]

    # the group expires as one booking
    assert machine.sweep_expired_holds(session, now=NOW + timedelta(minutes=30)) == 1
    assert _statuses(session, group.appointment_ids) == {"EXPIRADA"}


def test_sweep_with_nothing_overdue(session, machine, booked) -> None:
    assert machine.sweep_expired_holds(session, now=NOW) == 0


def test_approve_then_cancel(session, salon, machine, booked) -> None:
    machine.approve(session, salon, booked.appointment_ids[0])
    assert _statuses(session, booked.appointment_ids) == {"CONFIRMADA"}
    with pytest.raises(InvalidTransition):
        machine.approve(session, salon, booked.appointment_ids[0])

    rows = machine.cancel(session, booked.appointment_ids[0], salon_id=salon.id, reason="Sick", now=NOW)
    assert rows[0].status == "CANCELADA"
    assert rows[0].cancel_reason == "Sick"
    assert rows[0].cancelled_at == NOW
    with pytest.raises(InvalidTransition):
        machine.cancel(session, booked.appointment_ids[0], now=NOW)


def test_cancelled_booking_frees_the_slot(session, salon, allocator, machine, booked) -> None:
    machine.cancel(session, booked.appointment_ids[0], now=NOW)
    allocator.book(session, salon, make_request(TUESDAY, "10:00", barber_id=1), now=NOW)


def test_other_salon_cannot_touch_the_booking(session, machine, booked) -> None:
    with pytest.raises(NotFound):
        machine.cancel(session, booked.appointment_ids[0], salon_id=999, now=NOW)
    with pytest.raises(NotFound):
        machine.cancel(session, 12345, now=NOW)


def test_complete_only_after_the_start(session, salon, machine, booked) -> None:
    machine.approve(session, salon, booked.appointment_ids[0])

    with pytest.raises(InvalidTransition):
        machine.complete(session, salon, booked.appointment_ids[0], now=datetime(2026, 3, 3, 9, 59))
    rows = machine.complete(session, salon, booked.appointment_ids[0], now=datetime(2026, 3, 3, 10, 0))
    assert rows[0].status == "COMPLETADA"


def test_no_show_needs_a_confirmed_booking(session, salon, machine, booked) -> None:
    after = datetime(2026, 3, 3, 11, 0)
    with pytest.raises(InvalidTransition):
        machine.mark_no_show(session, salon, booked.appointment_ids[0], now=after)

    machine.approve(session, salon, booked.appointment_ids[0])
    rows = machine.mark_no_show(session, salon, booked.appointment_ids[0], now=after)
    assert rows[0].status == "NO_ASISTIO"


def test_events_are_published_after_the_lock_is_released(session, salon, machine, events, booked, group) -> None:
    held_locks = []
    events.subscribe(lambda event: held_locks.append((event["type"], len(machine.locks))))

    token = machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)[0].payment_token
    machine.confirm_payment(session, token, appointment_id=booked.appointment_ids[0], now=NOW)

    token = machine.request_payment(session, salon, group.appointment_ids[0], now=NOW)[0].payment_token
    with pytest.raises(HoldExpired):
        machine.confirm_payment(session, token, group_id=group.group_id, now=NOW + timedelta(minutes=20))

    assert APPOINTMENT_EXPIRED in [t for t, _ in held_locks]
    assert len(held_locks) == 5
    assert all(count == 0 for _, count in held_locks)


def test_sweep_publishes_outside_the_lock(session, salon, machine, events, booked) -> None:
    held_locks = []
    machine.request_payment(session, salon, booked.appointment_ids[0], now=NOW)
    events.subscribe(lambda event: held_locks.append(len(machine.locks)))

    assert machine.sweep_expired_holds(session, now=NOW + timedelta(minutes=30)) == 1
    assert held_locks == [0, 0]
