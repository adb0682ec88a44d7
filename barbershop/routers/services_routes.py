# barbershop/routers/services_routes.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.deps import get_current_salon
from barbershop.models import Service, User
from barbershop.schemas import ServiceCreate, ServicePublic

router = APIRouter(
    prefix="/services",
    tags=["services"],
)


@router.get("", response_model=List[ServicePublic])
def list_services(
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    return session.exec(
        select(Service)
        .where(Service.salon_id == salon.id)
        .where(Service.is_active == True)  # noqa: E712
        .order_by(Service.name)
    ).all()


@router.post("", response_model=ServicePublic, status_code=201)
def create_service(
    service: ServiceCreate,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    if service.requires_deposit and service.deposit_amount <= 0:
        raise HTTPException(status_code=422, detail="deposit_amount must be > 0 when a deposit is required")

    db_service = Service(salon_id=salon.id, **service.model_dump())
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service


@router.delete("/{service_id}", response_model=ServicePublic)
def deactivate_service(
    service_id: int,
    session: Session = Depends(get_session),
    salon: User = Depends(get_current_salon),
):
    db_service = session.get(Service, service_id)
    if db_service is None or db_service.salon_id != salon.id:
        raise HTTPException(status_code=404, detail="Service not found")

    db_service.is_active = False
    session.add(db_service)
    session.commit()
    session.refresh(db_service)
    return db_service
