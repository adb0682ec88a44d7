# barbershop/routers/barbers_routes.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.deps import get_current_salon
from barbershop.models import Barber, User
from barbershop.schemas import BarberCreate, BarberPublic

router = APIRouter(
    prefix="/barbers",
    tags=["barbers"],
)


@router.get("", response_model=List[BarberPublic])
def list_barbers(
    include_inactive: bool = False,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    stmt = select(Barber).where(Barber.salon_id == salon.id)
    if not include_inactive:
        stmt = stmt.where(Barber.is_active == True)  # noqa: E712
    return session.exec(stmt.order_by(Barber.id)).all()


@router.post("", response_model=BarberPublic, status_code=201)
def create_barber(
    barber: BarberCreate,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    db_barber = Barber(salon_id=salon.id, name=barber.name.strip())
    session.add(db_barber)
    session.commit()
    session.refresh(db_barber)
    return db_barber


@router.delete("/{barber_id}", response_model=BarberPublic)
def deactivate_barber(
    barber_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    # Appointments keep pointing at the barber; it just stops taking new ones
    db_barber = session.get(Barber, barber_id)
    if db_barber is None or db_barber.salon_id != salon.id:
        raise HTTPException(status_code=404, detail="Barber not found")

    db_barber.is_active = False
    session.add(db_barber)
    session.commit()
    session.refresh(db_barber)
    return db_barber
