# barbershop/engine/repository.py
"""
Storage boundary of the engine. Everything the allocator and availability
reads need from the database goes through here.
"""

import logging
from collections import defaultdict
from datetime import date, datetime
from functools import wraps
from typing import Dict, List, Optional, Sequence

from sqlalchemy.exc import InterfaceError, OperationalError
from sqlmodel import Session, select

from ..models import (
    Appointment,
    Barber,
    BusinessHours,
    RecurringBreak,
    ScheduleException,
    Service,
    User,
)
from .errors import StorageUnavailable
from .resolver import ScheduleSnapshot

logger = logging.getLogger(__name__)


def storage_guard(fn):
    @wraps(fn)
    def wrapper(*args, **kwargs):
        try:
            return fn(*args, **kwargs)
        except (OperationalError, InterfaceError) as e:
            logger.error(f"Storage failure in {fn.__name__}: {e}")
            raise StorageUnavailable() from e
    return wrapper


def _detached(row):
    return type(row)(**row.model_dump())


@storage_guard
def get_salon_by_username(session: Session, username: str) -> Optional[User]:
    return session.exec(
        select(User)
        .where(User.username == username.lower())
        .where(User.role == "owner")
    ).first()


@storage_guard
def load_schedule(session: Session, salon_id: int) -> ScheduleSnapshot:
    hours = session.exec(
        select(BusinessHours).where(BusinessHours.salon_id == salon_id)
    ).all()
    breaks = session.exec(
        select(RecurringBreak)
        .where(RecurringBreak.salon_id == salon_id)
        .where(RecurringBreak.is_active == True)  # noqa: E712
        .order_by(RecurringBreak.start_time)
    ).all()
    exceptions = session.exec(
        select(ScheduleException)
        .where(ScheduleException.salon_id == salon_id)
        .where(ScheduleException.is_active == True)  # noqa: E712
        .order_by(ScheduleException.start_date, ScheduleException.id)
    ).all()

    return ScheduleSnapshot(
        salon_id=salon_id,
        hours={h.day_of_week: _detached(h) for h in hours},
        breaks=tuple(_detached(b) for b in breaks),
        exceptions=tuple(_detached(e) for e in exceptions),
    )


@storage_guard
def load_roster(session: Session, salon_id: int, barber_id: Optional[int] = None) -> List[Barber]:
    """Active barbers in roster order (id ascending)."""
    stmt = (
        select(Barber)
        .where(Barber.salon_id == salon_id)
        .where(Barber.is_active == True)  # noqa: E712
    )
    if barber_id is not None:
        stmt = stmt.where(Barber.id == barber_id)
    return list(session.exec(stmt.order_by(Barber.id)).all())


@storage_guard
def load_services(session: Session, salon_id: int, service_ids: Sequence[int]) -> Dict[int, Service]:
    if not service_ids:
        return {}
    rows = session.exec(
        select(Service)
        .where(Service.salon_id == salon_id)
        .where(Service.id.in_(list(service_ids)))
        .where(Service.is_active == True)  # noqa: E712
    ).all()
    return {s.id: s for s in rows}


@storage_guard
def load_day_appointments(
    session: Session,
    salon_id: int,
    day: date,
    barber_ids: Sequence[int],
) -> Dict[int, List[Appointment]]:
    """Appointments of the day grouped by barber, released ones excluded."""
    by_barber: Dict[int, List[Appointment]] = defaultdict(list)
    if not barber_ids:
        return by_barber
    rows = session.exec(
        select(Appointment)
        .where(Appointment.salon_id == salon_id)
        .where(Appointment.date == day)
        .where(Appointment.barber_id.in_(list(barber_ids)))
        .where(Appointment.status.not_in(["CANCELADA", "EXPIRADA"]))
        .order_by(Appointment.time)
        # rows already in the session may be stale; always take current state
        .execution_options(populate_existing=True)
    ).all()
    for appt in rows:
        by_barber[appt.barber_id].append(appt)
    return by_barber


@storage_guard
def load_booking(session: Session, appointment_id: Optional[int] = None, group_id: Optional[str] = None) -> List[Appointment]:
    """
    All appointment rows of one booking. Given an appointment id that belongs
    to a group, the whole group is returned.
    """
    if group_id is None:
        if appointment_id is None:
            return []
        appt = session.get(Appointment, appointment_id)
        if appt is None:
            return []
        if appt.group_id is None:
            return [appt]
        group_id = appt.group_id

    return list(session.exec(
        select(Appointment)
        .where(Appointment.group_id == group_id)
        .order_by(Appointment.time, Appointment.id)
    ).all())


@storage_guard
def commit(session: Session) -> None:
    session.commit()


@storage_guard
def find_overdue_holds(session: Session, now: datetime) -> List[Appointment]:
    return list(session.exec(
        select(Appointment)
        .where(Appointment.status == "ESPERANDO_PAGO")
        .where(Appointment.hold_expires_at <= now)
        .order_by(Appointment.hold_expires_at, Appointment.id)
    ).all())


def roster_lock_statement(salon_id: int, barber_ids: Sequence[int]):
    return (
        select(Barber)
        .where(Barber.salon_id == salon_id)
        .where(Barber.id.in_(list(barber_ids)))
        .where(Barber.is_active == True)  # noqa: E712
        .order_by(Barber.id)
        .with_for_update()
    )


@storage_guard
def lock_roster(session: Session, salon_id: int, barber_ids: Sequence[int]) -> List[Barber]:
    """
    Row-lock the candidate barbers until the session commits or rolls back,
    always in id order. Serializes allocation across worker processes on
    databases with row locks; SQLite ignores FOR UPDATE.
    """
    if not barber_ids:
        return []
    return list(session.exec(
        roster_lock_statement(salon_id, barber_ids)
        .execution_options(populate_existing=True)
    ).all())
