# barbershop/routers/users_routes.py

from fastapi import APIRouter, Depends, HTTPException
from sqlmodel import Session, select

from barbershop.db import get_session
from barbershop.models import User
from barbershop.schemas import UserCreate, UserPublic, UserRole
from barbershop.auth import get_current_user, hash_password

router = APIRouter(
    tags=["users"],
)


def _public(user: User) -> dict:
    return {
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "username": user.username,
        "salon_name": user.salon_name,
        "hold_minutes": user.hold_minutes,
    }


@router.get("/me", response_model=UserPublic)
def me(
    session: Session = Depends(get_session),
    current_user: dict = Depends(get_current_user),
):
    user = session.get(User, current_user["id"])
    return _public(user)


@router.post("/users", status_code=201, response_model=UserPublic)
def create_user(
    user: UserCreate,
    session: Session = Depends(get_session),
):
    email = user.email.strip().lower()

    # 1) Check if email already exists
    existing = session.exec(
        select(User).where(User.email == email)
    ).first()
    if existing is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    # 2) Owners need a public username for their booking page
    username = None
    if user.role == UserRole.owner:
        if not user.username or not user.salon_name:
            raise HTTPException(status_code=422, detail="Owners must provide username and salon_name")
        username = user.username.lower()
        taken = session.exec(
            select(User).where(User.username == username)
        ).first()
        if taken is not None:
            raise HTTPException(status_code=409, detail="Username already taken")

    # 3) Create user in DB
    db_user = User(
        email=email,
        password_hash=hash_password(user.password),
        role=user.role.value,
        username=username,
        salon_name=user.salon_name if user.role == UserRole.owner else None,
        hold_minutes=user.hold_minutes if user.role == UserRole.owner else None,
    )

    session.add(db_user)
    session.commit()
    session.refresh(db_user)  # fills db_user.id

    return _public(db_user)
