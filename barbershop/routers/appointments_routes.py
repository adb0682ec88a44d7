# barbershop/routers/appointments_routes.py

from datetime import date
from typing import Optional, List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.auth import get_current_user
from barbershop.db import get_session
from barbershop.deps import get_current_salon, get_state_machine, require_role
from barbershop.engine.holds import STATUSES, HoldStateMachine
from barbershop.models import Appointment, User
from barbershop.schemas import (
    AppointmentPublic,
    CancelRequest,
    PaymentConfirm,
    PaymentConfirmed,
    PaymentRequestPublic,
)

router = APIRouter(
    tags=["appointments"],
)


def _check_status_filter(status: str):
    if status != "all" and status not in STATUSES:
        raise HTTPException(
            status_code=422,
            detail=f"status must be 'all' or one of {', '.join(STATUSES)}",
        )


@router.get("/appointments", response_model=List[AppointmentPublic])
def list_salon_appointments(
    status: str = "all",
    on_date: Optional[date] = None,
    barber_id: Optional[int] = None,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    _check_status_filter(status)

    stmt = select(Appointment).where(Appointment.salon_id == salon.id)
    if on_date is not None:
        stmt = stmt.where(Appointment.date == on_date)
    if barber_id is not None:
        stmt = stmt.where(Appointment.barber_id == barber_id)
    if status != "all":
        stmt = stmt.where(Appointment.status == status)

    stmt = stmt.order_by(Appointment.date, Appointment.time, Appointment.id)
    return session.exec(stmt).all()


@router.post("/appointments/{appt_id}/request-payment", response_model=PaymentRequestPublic)
def request_payment(
    appt_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
    machine: HoldStateMachine = Depends(get_state_machine),
):
    rows = machine.request_payment(session, salon, appt_id)
    return {
        "appointment_ids": [r.id for r in rows],
        "group_id": rows[0].group_id,
        "status": rows[0].status,
        "hold_expires_at": rows[0].hold_expires_at,
        "payment_token": rows[0].payment_token,
        "amount_due": rows[0].deposit_amount or rows[0].total_amount,
    }


@router.post("/appointments/{appt_id}/approve", response_model=List[AppointmentPublic])
def approve_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
    machine: HoldStateMachine = Depends(get_state_machine),
):
    return machine.approve(session, salon, appt_id)


@router.post("/appointments/{appt_id}/complete", response_model=List[AppointmentPublic])
def complete_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
    machine: HoldStateMachine = Depends(get_state_machine),
):
    return machine.complete(session, salon, appt_id)


@router.post("/appointments/{appt_id}/no-show", response_model=List[AppointmentPublic])
def no_show_appointment(
    appt_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
    machine: HoldStateMachine = Depends(get_state_machine),
):
    return machine.mark_no_show(session, salon, appt_id)


@router.post("/appointments/{appt_id}/cancel", response_model=List[AppointmentPublic])
def cancel_appointment(
    appt_id: int,
    body: Optional[CancelRequest] = None,
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
    machine: HoldStateMachine = Depends(get_state_machine),
):
    # 1) Find the appointment in DB
    target = session.get(Appointment, appt_id)
    if target is None:
        raise HTTPException(status_code=404, detail="Appointment not found")

    # 2) Authorization: salon owner OR client who booked
    is_owner = current_user["role"] == "owner" and current_user["id"] == target.salon_id
    is_client = current_user["email"] == target.client_email
    if not is_owner and not is_client:
        raise HTTPException(status_code=403, detail="Forbidden")

    reason = body.reason if body else None
    return machine.cancel(session, appt_id, reason=reason)


@router.post("/payments/confirm", response_model=PaymentConfirmed)
def confirm_payment(
    payment: PaymentConfirm,
    session: Session = Depends(get_session),
    machine: HoldStateMachine = Depends(get_state_machine),
):
    if payment.appointment_id is None and payment.group_id is None:
        raise HTTPException(status_code=422, detail="appointment_id or group_id is required")

    status = machine.confirm_payment(
        session,
        payment.payment_token,
        appointment_id=payment.appointment_id,
        group_id=payment.group_id,
    )
    return {"status": status}


@router.get("/clients/me/appointments", response_model=List[AppointmentPublic])
def list_my_appointments(
    status: str = "all",
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    require_role(current_user, "client")
    _check_status_filter(status)

    stmt = select(Appointment).where(Appointment.client_email == current_user["email"])
    if status != "all":
        stmt = stmt.where(Appointment.status == status)

    stmt = stmt.order_by(Appointment.date, Appointment.time)
    return session.exec(stmt).all()
