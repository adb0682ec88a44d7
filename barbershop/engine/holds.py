# barbershop/engine/holds.py
"""
Appointment status lifecycle, including the pre-payment hold.

    PENDIENTE --request_payment--> ESPERANDO_PAGO --confirm_payment--> CONFIRMADA
    PENDIENTE --approve--> CONFIRMADA
    ESPERANDO_PAGO --(deadline passes)--> EXPIRADA
    PENDIENTE | ESPERANDO_PAGO | CONFIRMADA --cancel--> CANCELADA
    CONFIRMADA --complete / no_show--> COMPLETADA / NO_ASISTIO   (after start)

A transition applies to a whole booking: every appointment sharing the
group_id moves together. Expiry is also evaluated at read time by the
occupancy filter, so the sweep here only makes it visible (status change and
notification).
"""

import logging
import secrets
from collections import OrderedDict
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Tuple

from sqlmodel import Session

from ..config import Settings, get_settings
from ..core import local_now, to_minutes
from ..models import Appointment, User
from . import repository
from .errors import HoldExpired, InvalidPaymentToken, InvalidTransition, NotFound
from .events import APPOINTMENT_EXPIRED, APPOINTMENT_STATUS_CHANGED, EventSink, event_sink
from .locks import KeyedLocks, booking_locks
from .occupancy import hold_has_expired

logger = logging.getLogger(__name__)

PENDIENTE = "PENDIENTE"
CONFIRMADA = "CONFIRMADA"
ESPERANDO_PAGO = "ESPERANDO_PAGO"
COMPLETADA = "COMPLETADA"
CANCELADA = "CANCELADA"
EXPIRADA = "EXPIRADA"
NO_ASISTIO = "NO_ASISTIO"

Event = Tuple[str, Dict[str, Any]]

STATUSES = (PENDIENTE, CONFIRMADA, ESPERANDO_PAGO, COMPLETADA, CANCELADA, EXPIRADA, NO_ASISTIO)
TERMINAL_STATUSES = (COMPLETADA, CANCELADA, EXPIRADA, NO_ASISTIO)

# action -> (allowed source statuses, target status)
TRANSITIONS = {
    "request_payment": ((PENDIENTE,), ESPERANDO_PAGO),
    "approve": ((PENDIENTE,), CONFIRMADA),
    "confirm_payment": ((ESPERANDO_PAGO,), CONFIRMADA),
    "expire": ((ESPERANDO_PAGO,), EXPIRADA),
    "cancel": ((PENDIENTE, ESPERANDO_PAGO, CONFIRMADA), CANCELADA),
    "complete": ((CONFIRMADA,), COMPLETADA),
    "no_show": ((CONFIRMADA,), NO_ASISTIO),
}


def can_transition(status: str, action: str) -> bool:
    sources, _ = TRANSITIONS[action]
    return status in sources


def booking_key(rows: List[Appointment]):
    first = rows[0]
    return first.salon_id, first.barber_id, first.date


def booking_start(rows: List[Appointment]) -> datetime:
    first = min(rows, key=lambda r: to_minutes(r.time))
    start = datetime.combine(first.date, datetime.min.time())
    return start + timedelta(minutes=to_minutes(first.time))


class HoldStateMachine:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        locks: Optional[KeyedLocks] = None,
        events: Optional[EventSink] = None,
    ):
        self.settings = settings or get_settings()
        self.locks = locks or booking_locks
        self.events = events or event_sink

    # ── Helpers ──────────────────────────────────────────────────────────

    def _now(self, now: Optional[datetime]) -> datetime:
        return now or local_now(self.settings.timezone)

    def _load(
        self,
        session: Session,
        appointment_id: Optional[int] = None,
        group_id: Optional[str] = None,
        salon_id: Optional[int] = None,
    ) -> List[Appointment]:
        rows = repository.load_booking(session, appointment_id=appointment_id, group_id=group_id)
        if not rows or (salon_id is not None and rows[0].salon_id != salon_id):
            raise NotFound("Appointment not found")
        for row in rows:
            session.refresh(row)
        return rows

    def _apply(self, session: Session, rows: List[Appointment], action: str, **changes) -> List[Event]:
        """Move the booking to the action's target status. Returns the events to publish."""
        sources, target = TRANSITIONS[action]
        current = rows[0].status
        if any(r.status not in sources for r in rows):
            raise InvalidTransition(f"Cannot {action.replace('_', ' ')} an appointment that is {current}")

        for row in rows:
            row.status = target
            for name, value in changes.items():
                setattr(row, name, value)
            session.add(row)
        try:
            repository.commit(session)
        except Exception:
            session.rollback()
            raise
        for row in rows:
            session.refresh(row)

        logger.info(f"Appointments {[r.id for r in rows]}: {current} -> {target}")
        return [(APPOINTMENT_STATUS_CHANGED, {
            "salon_id": rows[0].salon_id,
            "appointment_ids": [r.id for r in rows],
            "group_id": rows[0].group_id,
            "from_status": current,
            "to_status": target,
            "client_email": rows[0].client_email,
        })]

    def _publish(self, events: List[Event]) -> None:
        # only after the booking lock is released
        for event_type, payload in events:
            self.events.emit(event_type, payload)

    def _transition(
        self,
        session: Session,
        action: str,
        appointment_id: Optional[int] = None,
        group_id: Optional[str] = None,
        salon_id: Optional[int] = None,
        **changes,
    ) -> List[Appointment]:
        rows = self._load(session, appointment_id, group_id, salon_id)
        with self.locks.acquire(booking_key(rows)):
            rows = self._load(session, appointment_id, group_id, salon_id)
            events = self._apply(session, rows, action, **changes)
        self._publish(events)
        return rows

    # ── Owner / client actions ───────────────────────────────────────────

    def request_payment(
        self,
        session: Session,
        salon: User,
        appointment_id: int,
        now: Optional[datetime] = None,
    ) -> List[Appointment]:
        now = self._now(now)
        hold_minutes = salon.hold_minutes or self.settings.default_hold_minutes
        return self._transition(
            session,
            "request_payment",
            appointment_id=appointment_id,
            salon_id=salon.id,
            hold_expires_at=now + timedelta(minutes=hold_minutes),
            payment_token=secrets.token_urlsafe(24),
        )

    def approve(self, session: Session, salon: User, appointment_id: int) -> List[Appointment]:
        return self._transition(session, "approve", appointment_id=appointment_id, salon_id=salon.id)

    def cancel(
        self,
        session: Session,
        appointment_id: int,
        salon_id: Optional[int] = None,
        reason: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> List[Appointment]:
        return self._transition(
            session,
            "cancel",
            appointment_id=appointment_id,
            salon_id=salon_id,
            cancelled_at=self._now(now),
            cancel_reason=reason,
            hold_expires_at=None,
            payment_token=None,
        )

    def _after_start(self, session, salon, appointment_id, action, now) -> List[Appointment]:
        now = self._now(now)
        rows = self._load(session, appointment_id=appointment_id, salon_id=salon.id)
        if booking_start(rows) > now:
            raise InvalidTransition("The appointment has not started yet")
        return self._transition(session, action, appointment_id=appointment_id, salon_id=salon.id)

    def complete(self, session: Session, salon: User, appointment_id: int, now: Optional[datetime] = None):
        return self._after_start(session, salon, appointment_id, "complete", now)

    def mark_no_show(self, session: Session, salon: User, appointment_id: int, now: Optional[datetime] = None):
        return self._after_start(session, salon, appointment_id, "no_show", now)

    # ── Payment ──────────────────────────────────────────────────────────

    def confirm_payment(
        self,
        session: Session,
        payment_token: str,
        appointment_id: Optional[int] = None,
        group_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> str:
        now = self._now(now)
        rows = self._load(session, appointment_id, group_id)

        expired = False
        with self.locks.acquire(booking_key(rows)):
            rows = self._load(session, appointment_id, group_id)
            status = rows[0].status
            if status == EXPIRADA:
                raise HoldExpired()
            if status != ESPERANDO_PAGO:
                raise InvalidTransition(f"Cannot confirm payment for an appointment that is {status}")
            if not payment_token or not secrets.compare_digest(rows[0].payment_token or "", payment_token):
                raise InvalidPaymentToken()

            if any(hold_has_expired(r, now) for r in rows):
                expired = True
                events = self._expire(session, rows)
            else:
                events = self._apply(
                    session,
                    rows,
                    "confirm_payment",
                    hold_expires_at=None,
                    payment_token=None,
                )

        self._publish(events)
        if expired:
            raise HoldExpired()
        return CONFIRMADA

    # ── Expiry ───────────────────────────────────────────────────────────

    def _expire(self, session: Session, rows: List[Appointment]) -> List[Event]:
        events = self._apply(session, rows, "expire", hold_expires_at=None, payment_token=None)
        first = rows[0]
        events.append((APPOINTMENT_EXPIRED, {
            "salon_id": first.salon_id,
            "appointment_ids": [r.id for r in rows],
            "group_id": first.group_id,
            "date": first.date.isoformat(),
            "time": min(r.time for r in rows),
            "total_amount": first.total_amount,
            "client_name": first.client_name,
            "client_email": first.client_email,
        }))
        return events

    def sweep_expired_holds(self, session: Session, now: Optional[datetime] = None) -> int:
        """Mark every overdue hold EXPIRADA. Returns the number of bookings released."""
        now = self._now(now)
        overdue = repository.find_overdue_holds(session, now)
        if not overdue:
            return 0

        bookings: Dict[str, Appointment] = OrderedDict()
        for appt in overdue:
            bookings.setdefault(appt.group_id or f"appt:{appt.id}", appt)

        released = 0
        for appt in bookings.values():
            with self.locks.acquire((appt.salon_id, appt.barber_id, appt.date)):
                rows = self._load(session, appointment_id=appt.id)
                if rows[0].status != ESPERANDO_PAGO or not all(
                    r.hold_expires_at is not None and r.hold_expires_at <= now for r in rows
                ):
                    continue
                events = self._expire(session, rows)
            self._publish(events)
            released += 1

        logger.info(f"Hold sweep: {len(overdue)} overdue appointment(s), {released} booking(s) released")
        return released
