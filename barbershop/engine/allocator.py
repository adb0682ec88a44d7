# barbershop/engine/allocator.py
"""
Booking allocation.

"Read current occupancy, decide, write" runs under the per-(salon, barber,
date) locks of every barber the request could land on. With barber "any" the
least-loaded free barber is chosen inside that same critical section, so two
concurrent requests never both win the last free chair.
"""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import List, Optional, Tuple, Union

from sqlmodel import Session

from ..config import Settings, get_settings
from ..core import local_now, to_clock, to_minutes
from ..models import Appointment, Barber, Service, User
from . import repository
from .assign import pick_barber
from .availability import candidate_slots
from .errors import (
    DayClosed,
    InvalidBookingRequest,
    NoBarberAvailable,
    SlotNoLongerAvailable,
)
from .events import APPOINTMENT_CREATED, EventSink, event_sink
from .locks import KeyedLocks, booking_locks
from .occupancy import BarberRef, free_barbers

logger = logging.getLogger(__name__)

ANY_BARBER = "any"
PENDIENTE = "PENDIENTE"


@dataclass
class BookingRequest:
    date: date
    time: str
    service_ids: List[int]
    client_name: str
    client_email: str
    barber_id: Union[int, str] = ANY_BARBER
    client_phone: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class BookingResult:
    appointment_ids: List[int]
    group_id: Optional[str]
    barber: BarberRef
    date: date
    time: str
    total_amount: float
    total_duration: int
    status: str
    deposit_amount: float = 0
    services: List[Tuple[int, str]] = field(default_factory=list)


class BookingAllocator:
    def __init__(
        self,
        settings: Optional[Settings] = None,
        locks: Optional[KeyedLocks] = None,
        events: Optional[EventSink] = None,
    ):
        self.settings = settings or get_settings()
        self.locks = locks or booking_locks
        self.events = events or event_sink

    # ── Validation ───────────────────────────────────────────────────────

    def _services(self, session: Session, salon_id: int, service_ids: List[int]) -> List[Service]:
        if not service_ids:
            raise InvalidBookingRequest("At least one service is required")
        if len(service_ids) != len(set(service_ids)):
            raise InvalidBookingRequest("service_ids cannot contain duplicates")

        found = repository.load_services(session, salon_id, service_ids)
        missing = [sid for sid in service_ids if sid not in found]
        if missing:
            raise InvalidBookingRequest(f"Service not available: {', '.join(str(m) for m in missing)}")
        # keep request order: it decides the order of the blocks
        return [found[sid] for sid in service_ids]

    @staticmethod
    def _pinned_barber(barber_id) -> Optional[int]:
        if barber_id is None or barber_id == ANY_BARBER:
            return None
        try:
            return int(barber_id)
        except (TypeError, ValueError):
            raise InvalidBookingRequest("barber_id must be a barber id or 'any'")

    # ── Allocation ───────────────────────────────────────────────────────

    def book(
        self,
        session: Session,
        salon: User,
        request: BookingRequest,
        now: Optional[datetime] = None,
    ) -> BookingResult:
        now = now or local_now(self.settings.timezone)

        try:
            start = to_minutes(request.time)
        except ValueError:
            raise InvalidBookingRequest("time must be HH:MM")
        if not request.client_name or not request.client_email:
            raise InvalidBookingRequest("client_name and client_email are required")
        if request.date < now.date():
            raise InvalidBookingRequest("Cannot book an appointment in the past")

        services = self._services(session, salon.id, request.service_ids)
        total_duration = sum(s.duration for s in services)

        pinned = self._pinned_barber(request.barber_id)
        roster = repository.load_roster(session, salon.id, pinned)
        if pinned is not None and not roster:
            raise InvalidBookingRequest("Barber not found")
        if not roster:
            raise NoBarberAvailable()

        keys = [(salon.id, b.id, request.date) for b in roster]
        with self.locks.acquire(*keys):
            try:
                rows, barber = self._allocate(session, salon, request, services, roster, pinned, start, now)
            except Exception:
                # releases the barber row locks too
                session.rollback()
                raise
            for row in rows:
                session.refresh(row)

        result = BookingResult(
            appointment_ids=[r.id for r in rows],
            group_id=rows[0].group_id,
            barber=BarberRef.of(barber),
            date=request.date,
            time=to_clock(start),
            total_amount=rows[0].total_amount,
            total_duration=total_duration,
            status=PENDIENTE,
            deposit_amount=rows[0].deposit_amount,
            services=[(s.id, s.name) for s in services],
        )
        logger.info(
            f"Salon {salon.id}: booked {result.appointment_ids} with barber {barber.id} "
            f"on {request.date} {result.time}"
        )

        self.events.emit(APPOINTMENT_CREATED, {
            "salon_id": salon.id,
            "appointment_ids": result.appointment_ids,
            "group_id": result.group_id,
            "barber": {"id": barber.id, "name": barber.name},
            "date": request.date.isoformat(),
            "time": result.time,
            "services": [name for _, name in result.services],
            "total_amount": result.total_amount,
            "deposit_amount": result.deposit_amount,
            "client_name": request.client_name,
            "client_email": request.client_email,
        })
        return result

    def _allocate(
        self,
        session: Session,
        salon: User,
        request: BookingRequest,
        services: List[Service],
        roster: List[Barber],
        pinned: Optional[int],
        start: int,
        now: datetime,
    ) -> Tuple[List[Appointment], Barber]:
        """Re-check and write. Runs inside the in-process locks."""
        total_duration = sum(s.duration for s in services)

        # other worker processes wait here until this session commits
        roster = repository.lock_roster(session, salon.id, [b.id for b in roster])
        if not roster:
            if pinned is not None:
                raise SlotNoLongerAvailable()
            raise NoBarberAvailable()

        snapshot = repository.load_schedule(session, salon.id)
        resolution, starts = candidate_slots(snapshot, request.date, total_duration, now, self.settings)
        if not resolution.is_business_day:
            raise DayClosed(resolution.reason)
        if start not in starts:
            raise InvalidBookingRequest(
                f"{to_clock(start)} is not a bookable start time for {total_duration} minutes"
            )

        appointments = repository.load_day_appointments(
            session, salon.id, request.date, [b.id for b in roster]
        )
        free = free_barbers(start, total_duration, roster, appointments, now)

        if pinned is not None:
            if not free:
                logger.warning(
                    f"Salon {salon.id}: barber {pinned} lost {request.date} {request.time}"
                )
                raise SlotNoLongerAvailable()
            barber = free[0]
        else:
            barber = pick_barber(free, appointments, now)

        rows = self._build_rows(salon, barber.id, request, services, start, now)
        session.add_all(rows)
        repository.commit(session)
        return rows, barber

    @staticmethod
    def _build_rows(
        salon: User,
        barber_id: int,
        request: BookingRequest,
        services: List[Service],
        start: int,
        now: datetime,
    ) -> List[Appointment]:
        group_id = uuid.uuid4().hex if len(services) > 1 else None
        total_amount = float(sum(s.price for s in services))
        deposit_amount = float(sum(s.deposit_amount for s in services if s.requires_deposit))

        rows = []
        offset = start
        for service in services:
            rows.append(Appointment(
                salon_id=salon.id,
                barber_id=barber_id,
                service_id=service.id,
                date=request.date,
                time=to_clock(offset),
                duration=service.duration,
                price=float(service.price),
                total_amount=total_amount,
                deposit_amount=deposit_amount,
                status=PENDIENTE,
                group_id=group_id,
                client_name=request.client_name,
                client_email=request.client_email.lower(),
                client_phone=request.client_phone,
                notes=request.notes,
                created_at=now,
            ))
            offset += service.duration
        return rows
