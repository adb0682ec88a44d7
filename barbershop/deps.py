# barbershop/deps.py

from fastapi import Depends, HTTPException
from sqlmodel import Session

from .auth import get_current_user
from .db import get_session
from .engine.allocator import BookingAllocator
from .engine.holds import HoldStateMachine
from .models import User


def require_role(user: dict, role: str):
    if user["role"] != role:
        raise HTTPException(status_code=403, detail="Forbidden")


def get_current_salon(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
) -> User:
    """The owner account of the caller; every owner route is scoped by it."""
    require_role(current_user, "owner")
    salon = session.get(User, current_user["id"])
    if salon is None:
        raise HTTPException(status_code=404, detail="Salon not found")
    return salon


def get_allocator() -> BookingAllocator:
    return BookingAllocator()


def get_state_machine() -> HoldStateMachine:
    return HoldStateMachine()
