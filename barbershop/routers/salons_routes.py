# barbershop/routers/salons_routes.py
"""
Public booking endpoints, addressed by the salon's username. No token needed.

GET  /salons/{username}/services      bookable services, with deposit terms
GET  /salons/{username}/days          calendar of open/closed days
GET  /salons/{username}/availability  slot grid for one day
POST /salons/{username}/bookings      book a slot
"""

from datetime import date, timedelta
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlmodel import Session, select

from barbershop.cache import get_schedule_cache
from barbershop.config import get_settings
from barbershop.core import local_now, to_clock
from barbershop.db import get_session
from barbershop.deps import get_allocator
from barbershop.engine import repository
from barbershop.engine.allocator import ANY_BARBER, BookingAllocator, BookingRequest
from barbershop.engine.availability import (
    MAX_CALENDAR_DAYS,
    compute_availability,
    resolve_day_statuses,
)
from barbershop.models import Service, User
from barbershop.schemas import (
    AvailabilityResponse,
    BookingCreate,
    BookingPublic,
    CalendarResponse,
    ServicePublic,
)

router = APIRouter(
    prefix="/salons",
    tags=["booking"],
)


def _salon_or_404(session: Session, username: str) -> User:
    salon = repository.get_salon_by_username(session, username)
    if salon is None:
        raise HTTPException(status_code=404, detail="Salon not found")
    return salon


def _parse_service_ids(raw: Optional[str]) -> list:
    if not raw:
        return []
    try:
        return [int(part) for part in raw.split(",") if part.strip()]
    except ValueError:
        raise HTTPException(status_code=422, detail="service_ids must be a comma separated list of ids")


@router.get("/{username}/services", response_model=List[ServicePublic])
def salon_services(
    username: str,
    session: Session = Depends(get_session),
):
    salon = _salon_or_404(session, username)
    return session.exec(
        select(Service)
        .where(Service.salon_id == salon.id)
        .where(Service.is_active == True)  # noqa: E712
        .order_by(Service.name)
    ).all()


@router.get("/{username}/days", response_model=CalendarResponse)
def salon_days(
    username: str,
    start: Optional[date] = None,
    end: Optional[date] = None,
    session: Session = Depends(get_session),
):
    salon = _salon_or_404(session, username)
    now = local_now(get_settings().timezone)

    if start is None:
        start = now.date()
    if end is None:
        end = start + timedelta(days=30)
    if end < start:
        raise HTTPException(status_code=422, detail="end cannot be before start")
    if (end - start).days + 1 > MAX_CALENDAR_DAYS:
        raise HTTPException(status_code=422, detail=f"Range cannot exceed {MAX_CALENDAR_DAYS} days")

    snapshot = get_schedule_cache().get_or_load(
        salon.id, lambda: repository.load_schedule(session, salon.id)
    )
    days = resolve_day_statuses(snapshot, start, end, now)

    return {
        "salon": salon.username,
        "start": start,
        "end": end,
        "days": [
            {
                "date": d.date,
                "available": d.available,
                "type": d.type,
                "reason": d.reason,
                "window": list(d.window) if d.window else None,
            }
            for d in days
        ],
    }


@router.get("/{username}/availability", response_model=AvailabilityResponse)
def salon_availability(
    username: str,
    on_date: date = Query(..., alias="date"),
    barber_id: str = ANY_BARBER,
    service_ids: Optional[str] = None,
    duration: Optional[int] = Query(default=None, gt=0),
    session: Session = Depends(get_session),
):
    settings = get_settings()
    salon = _salon_or_404(session, username)
    now = local_now(settings.timezone)

    # 1) Total duration: from the requested services, or given directly
    ids = _parse_service_ids(service_ids)
    if ids:
        services = repository.load_services(session, salon.id, ids)
        missing = [sid for sid in ids if sid not in services]
        if missing:
            raise HTTPException(status_code=422, detail="Service not available")
        total_duration = sum(services[sid].duration for sid in ids)
    elif duration is not None:
        total_duration = duration
    else:
        raise HTTPException(status_code=422, detail="service_ids or duration is required")

    # 2) Roster: one barber or everybody
    pinned = None
    if barber_id != ANY_BARBER:
        try:
            pinned = int(barber_id)
        except ValueError:
            raise HTTPException(status_code=422, detail="barber_id must be a barber id or 'any'")
    roster = repository.load_roster(session, salon.id, pinned)
    if pinned is not None and not roster:
        raise HTTPException(status_code=404, detail="Barber not found")

    # 3) Schedule (cached) and current appointments (never cached)
    snapshot = get_schedule_cache().get_or_load(
        salon.id, lambda: repository.load_schedule(session, salon.id)
    )
    appointments = repository.load_day_appointments(session, salon.id, on_date, [b.id for b in roster])

    result = compute_availability(snapshot, on_date, roster, appointments, total_duration, now, settings)

    return {
        "salon": salon.username,
        "date": on_date,
        "barber_id": barber_id,
        "is_business_day": result.is_business_day,
        "type": result.type,
        "reason": result.reason,
        "window": list(result.window) if result.window else None,
        "is_special": result.is_special,
        "breaks": [
            {"name": b.name, "start": to_clock(b.start), "end": to_clock(b.end)}
            for b in result.breaks
        ],
        "total_duration": result.total_duration,
        "slot_minutes": settings.slot_minutes,
        "available_slots": list(result.available_slots),
        "all_slots": [
            {
                "time": s.time,
                "available": s.available,
                "available_barbers": [{"id": b.id, "name": b.name} for b in s.available_barbers],
            }
            for s in result.all_slots
        ],
    }


@router.post("/{username}/bookings", response_model=BookingPublic, status_code=201)
def salon_book(
    username: str,
    booking: BookingCreate,
    session: Session = Depends(get_session),
    allocator: BookingAllocator = Depends(get_allocator),
):
    salon = _salon_or_404(session, username)

    result = allocator.book(
        session,
        salon,
        BookingRequest(
            date=booking.date,
            time=booking.time,
            barber_id=booking.barber_id,
            service_ids=booking.service_ids,
            client_name=booking.client_name.strip(),
            client_email=booking.client_email.strip(),
            client_phone=booking.client_phone,
            notes=booking.notes,
        ),
    )

    return {
        "appointment_ids": result.appointment_ids,
        "group_id": result.group_id,
        "barber": {"id": result.barber.id, "name": result.barber.name},
        "date": result.date,
        "time": result.time,
        "total_amount": result.total_amount,
        "total_duration": result.total_duration,
        "deposit_amount": result.deposit_amount,
        "status": result.status,
    }
