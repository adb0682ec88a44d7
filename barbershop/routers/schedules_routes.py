# barbershop/routers/schedules_routes.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.cache import get_schedule_cache
from barbershop.core import normalize_clock
from barbershop.db import get_session
from barbershop.deps import get_current_salon
from barbershop.engine import schedule_rules as rules
from barbershop.models import BusinessHours, RecurringBreak, ScheduleException, User
from barbershop.schemas import (
    BreakCreate,
    BreakPublic,
    BusinessHoursItem,
    BusinessHoursPublic,
    ExceptionCreate,
    ExceptionPublic,
)

router = APIRouter(
    prefix="/schedules",
    tags=["schedules"],
)


def _hours_public(h: BusinessHours) -> dict:
    return {
        "day_of_week": h.day_of_week,
        "is_active": h.is_active,
        "start_time": h.start_time,
        "end_time": h.end_time,
        "day_name": rules.day_name(h.day_of_week),
    }


def _break_public(b: RecurringBreak) -> dict:
    return {
        "id": b.id,
        "name": b.name,
        "start_time": b.start_time,
        "end_time": b.end_time,
        "recurrence_type": b.recurrence_type,
        "specific_days": b.specific_days or [],
        "is_active": b.is_active,
        "duration": rules.break_duration(b),
        "recurrence_description": rules.recurrence_description(b),
    }


def _exception_public(e: ScheduleException) -> dict:
    return {
        "id": e.id,
        "name": e.name,
        "exception_type": e.exception_type,
        "start_date": e.start_date,
        "end_date": e.end_date,
        "special_start_time": e.special_start_time,
        "special_end_time": e.special_end_time,
        "is_recurring_annually": e.is_recurring_annually,
        "reason": e.reason,
        "is_active": e.is_active,
        "is_day_off": rules.is_day_off(e),
        "has_special_hours": rules.has_special_hours(e),
        "duration_days": rules.duration_days(e),
        "type_description": rules.type_description(e.exception_type),
    }


# ── Business hours ───────────────────────────────────────────────────────


@router.get("/business-hours", response_model=List[BusinessHoursPublic])
def get_business_hours(
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    rows = session.exec(
        select(BusinessHours)
        .where(BusinessHours.salon_id == salon.id)
        .order_by(BusinessHours.day_of_week)
    ).all()
    return [_hours_public(h) for h in rows]


@router.put("/business-hours", response_model=List[BusinessHoursPublic])
def put_business_hours(
    items: List[BusinessHoursItem],
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    days = [i.day_of_week for i in items]
    if len(days) != len(set(days)):
        raise HTTPException(status_code=422, detail="day_of_week cannot contain duplicates")
    for item in items:
        rules.validate_business_hours(item.day_of_week, item.is_active, item.start_time, item.end_time)

    # DB upsert: one record per salon and weekday
    for item in items:
        db_hours = session.exec(
            select(BusinessHours)
            .where(BusinessHours.salon_id == salon.id)
            .where(BusinessHours.day_of_week == item.day_of_week)
        ).first()
        if db_hours is None:
            db_hours = BusinessHours(salon_id=salon.id, day_of_week=item.day_of_week,
                                     start_time="", end_time="")
        db_hours.is_active = item.is_active
        db_hours.start_time = normalize_clock(item.start_time)
        db_hours.end_time = normalize_clock(item.end_time, allow_end_of_day=True)
        session.add(db_hours)

    session.commit()
    get_schedule_cache().invalidate(salon.id)
    return get_business_hours(session=session, salon=salon)


# ── Recurring breaks ─────────────────────────────────────────────────────


@router.get("/breaks", response_model=List[BreakPublic])
def list_breaks(
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    rows = session.exec(
        select(RecurringBreak)
        .where(RecurringBreak.salon_id == salon.id)
        .where(RecurringBreak.is_active == True)  # noqa: E712
        .order_by(RecurringBreak.name)
    ).all()
    return [_break_public(b) for b in rows]


@router.post("/breaks", response_model=BreakPublic, status_code=201)
def create_break(
    brk: BreakCreate,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    rules.validate_break(brk.start_time, brk.end_time, brk.recurrence_type.value, brk.specific_days)

    db_break = RecurringBreak(
        salon_id=salon.id,
        name=brk.name.strip(),
        start_time=normalize_clock(brk.start_time),
        end_time=normalize_clock(brk.end_time, allow_end_of_day=True),
        recurrence_type=brk.recurrence_type.value,
        specific_days=sorted(brk.specific_days),
    )
    session.add(db_break)
    session.commit()
    session.refresh(db_break)

    get_schedule_cache().invalidate(salon.id)
    return _break_public(db_break)


@router.delete("/breaks/{break_id}", status_code=204)
def delete_break(
    break_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    db_break = session.get(RecurringBreak, break_id)
    if db_break is None or db_break.salon_id != salon.id:
        raise HTTPException(status_code=404, detail="Break not found")

    session.delete(db_break)
    session.commit()
    get_schedule_cache().invalidate(salon.id)


# ── Exceptions ───────────────────────────────────────────────────────────


@router.get("/exceptions", response_model=List[ExceptionPublic])
def list_exceptions(
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    rows = session.exec(
        select(ScheduleException)
        .where(ScheduleException.salon_id == salon.id)
        .where(ScheduleException.is_active == True)  # noqa: E712
        .order_by(ScheduleException.start_date)
    ).all()
    return [_exception_public(e) for e in rows]


@router.post("/exceptions", response_model=ExceptionPublic, status_code=201)
def create_exception(
    exc: ExceptionCreate,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    rules.validate_exception(
        exc.exception_type.value,
        exc.start_date,
        exc.end_date,
        exc.special_start_time,
        exc.special_end_time,
    )

    special = exc.exception_type.value == "special_hours"
    db_exc = ScheduleException(
        salon_id=salon.id,
        name=exc.name.strip(),
        exception_type=exc.exception_type.value,
        start_date=exc.start_date,
        end_date=exc.end_date,
        special_start_time=normalize_clock(exc.special_start_time) if special else None,
        special_end_time=normalize_clock(exc.special_end_time, allow_end_of_day=True) if special else None,
        is_recurring_annually=exc.is_recurring_annually,
        reason=exc.reason,
    )
    session.add(db_exc)
    session.commit()
    session.refresh(db_exc)

    get_schedule_cache().invalidate(salon.id)
    return _exception_public(db_exc)


@router.delete("/exceptions/{exception_id}", status_code=204)
def delete_exception(
    exception_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    db_exc = session.get(ScheduleException, exception_id)
    if db_exc is None or db_exc.salon_id != salon.id:
        raise HTTPException(status_code=404, detail="Exception not found")

    session.delete(db_exc)
    session.commit()
    get_schedule_cache().invalidate(salon.id)
