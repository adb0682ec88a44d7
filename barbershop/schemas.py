# barbershop/schemas.py

from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime, date
from typing import List, Optional, Union


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in: int  # seconds


class UserRole(str, Enum):
    owner = "owner"
    client = "client"


class RecurrenceType(str, Enum):
    daily = "daily"
    weekly = "weekly"
    specific_days = "specific_days"


class ExceptionType(str, Enum):
    day_off = "day_off"
    special_hours = "special_hours"
    vacation = "vacation"
    holiday = "holiday"


class UserPublic(BaseModel):
    id: int
    email: str
    role: UserRole
    username: Optional[str] = None
    salon_name: Optional[str] = None
    hold_minutes: Optional[int] = None


class UserCreate(BaseModel):
    email: str
    password: str = Field(min_length=8, max_length=72)
    role: UserRole
    username: Optional[str] = Field(default=None, pattern=r"^[a-zA-Z0-9_-]{3,40}$")
    salon_name: Optional[str] = Field(default=None, max_length=120)
    hold_minutes: Optional[int] = Field(default=None, gt=0, le=24 * 60)


# ── Schedules ────────────────────────────────────────────────────────────


class BusinessHoursItem(BaseModel):
    day_of_week: int = Field(ge=0, le=6)     # 0=Mon, 1=Tues....
    is_active: bool = True
    start_time: str = "09:00"
    end_time: str = "18:00"


class BusinessHoursPublic(BusinessHoursItem):
    day_name: str


class BreakCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    start_time: str
    end_time: str
    recurrence_type: RecurrenceType
    specific_days: List[int] = []


class BreakPublic(BreakCreate):
    id: int
    is_active: bool
    duration: int
    recurrence_description: str


class ExceptionCreate(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    exception_type: ExceptionType
    start_date: date
    end_date: date
    special_start_time: Optional[str] = None
    special_end_time: Optional[str] = None
    is_recurring_annually: bool = False
    reason: Optional[str] = Field(default=None, max_length=500)


class ExceptionPublic(ExceptionCreate):
    id: int
    is_active: bool
    is_day_off: bool
    has_special_hours: bool
    duration_days: int
    type_description: str


# ── Roster and services ──────────────────────────────────────────────────


class BarberCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class BarberRef(BaseModel):
    id: int
    name: str


class BarberPublic(BarberRef):
    is_active: bool


class ServiceCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    duration: int = Field(gt=0, le=12 * 60)
    price: float = Field(default=0, ge=0)
    requires_deposit: bool = False
    deposit_amount: float = Field(default=0, ge=0)


class ServicePublic(ServiceCreate):
    id: int
    is_active: bool


# ── Availability ─────────────────────────────────────────────────────────


class DayStatusPublic(BaseModel):
    date: date
    available: bool
    type: str
    reason: Optional[str] = None
    window: Optional[List[str]] = None


class CalendarResponse(BaseModel):
    salon: str
    start: date
    end: date
    days: List[DayStatusPublic]


class BreakInterval(BaseModel):
    name: str
    start: str
    end: str


class SlotPublic(BaseModel):
    time: str
    available: bool
    available_barbers: List[BarberRef]


class AvailabilityResponse(BaseModel):
    salon: str
    date: date
    barber_id: str
    is_business_day: bool
    type: str
    reason: Optional[str] = None
    window: Optional[List[str]] = None
    is_special: bool
    breaks: List[BreakInterval]
    total_duration: int
    slot_minutes: int
    available_slots: List[str]
    all_slots: List[SlotPublic]


# ── Booking ──────────────────────────────────────────────────────────────


class BookingCreate(BaseModel):
    date: date
    time: str
    barber_id: Union[int, str] = "any"
    service_ids: List[int] = Field(min_length=1)
    client_name: str = Field(min_length=1, max_length=100)
    client_email: str
    client_phone: Optional[str] = None
    notes: Optional[str] = Field(default=None, max_length=500)


class BookingPublic(BaseModel):
    appointment_ids: List[int]
    group_id: Optional[str] = None
    barber: BarberRef
    date: date
    time: str
    total_amount: float
    total_duration: int
    deposit_amount: float = 0
    status: str


class AppointmentPublic(BaseModel):
    id: int
    barber_id: int
    service_id: int
    date: date
    time: str
    duration: int
    price: float
    total_amount: float
    deposit_amount: float = 0
    status: str
    group_id: Optional[str] = None
    hold_expires_at: Optional[datetime] = None
    client_name: str
    client_email: str
    client_phone: Optional[str] = None
    notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


class PaymentRequestPublic(BaseModel):
    appointment_ids: List[int]
    group_id: Optional[str] = None
    status: str
    hold_expires_at: datetime
    payment_token: str
    amount_due: float  # the deposit when one is required, else the full price


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(default=None, max_length=500)


class PaymentConfirm(BaseModel):
    appointment_id: Optional[int] = None
    group_id: Optional[str] = None
    payment_token: str


class PaymentConfirmed(BaseModel):
    status: str
