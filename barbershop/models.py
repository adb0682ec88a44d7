# barbershop/models.py

from typing import Optional, List
from datetime import datetime, date as Date

from sqlalchemy import UniqueConstraint, Index, DateTime
from sqlalchemy.types import JSON
from sqlmodel import SQLModel, Field, Column


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True, unique=True)
    password_hash: str
    role: str  # owner or client

    # salon profile, owners only
    username: Optional[str] = Field(default=None, index=True, unique=True)
    salon_name: Optional[str] = None
    hold_minutes: Optional[int] = None


class BusinessHours(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("salon_id", "day_of_week", name="uq_salon_day"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    salon_id: int = Field(foreign_key="user.id", index=True)
    day_of_week: int  # 0=Mon ... 6=Sun
    is_active: bool = True
    start_time: str
    end_time: str


class RecurringBreak(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    salon_id: int = Field(foreign_key="user.id", index=True)
    name: str
    start_time: str
    end_time: str
    recurrence_type: str  # daily, weekly, specific_days
    specific_days: List[int] = Field(default_factory=list, sa_column=Column(JSON))
    is_active: bool = True


class ScheduleException(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    salon_id: int = Field(foreign_key="user.id", index=True)
    name: str
    exception_type: str  # day_off, special_hours, vacation, holiday
    start_date: Date
    end_date: Date
    special_start_time: Optional[str] = None
    special_end_time: Optional[str] = None
    is_recurring_annually: bool = False
    reason: Optional[str] = None
    is_active: bool = True


class Barber(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    salon_id: int = Field(foreign_key="user.id", index=True)
    name: str
    is_active: bool = True


class Service(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    salon_id: int = Field(foreign_key="user.id", index=True)
    name: str
    duration: int  # minutes
    price: float = 0
    requires_deposit: bool = False
    deposit_amount: float = 0
    is_active: bool = True


class Appointment(SQLModel, table=True):
    __table_args__ = (
        Index("ix_appointment_salon_date_barber", "salon_id", "date", "barber_id"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    salon_id: int = Field(foreign_key="user.id")
    barber_id: int = Field(foreign_key="barber.id")
    service_id: int = Field(foreign_key="service.id")

    date: Date
    time: str  # block start, HH:MM
    duration: int  # minutes, copied from the service when booked
    price: float = 0
    total_amount: float = 0
    deposit_amount: float = 0  # owed up front for the whole group

    status: str = "PENDIENTE"
    group_id: Optional[str] = Field(default=None, index=True)
    # salon wall-clock time, stored naive
    hold_expires_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    payment_token: Optional[str] = Field(default=None, index=True)

    client_name: str
    client_email: str = Field(index=True)
    client_phone: Optional[str] = None
    notes: Optional[str] = None

    created_at: datetime = Field(default_factory=datetime.now, sa_column=Column(DateTime, nullable=False))
    cancelled_at: Optional[datetime] = Field(default=None, sa_column=Column(DateTime))
    cancel_reason: Optional[str] = None
