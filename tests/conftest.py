import os

os.environ.setdefault("BARBERSHOP_DATABASE_URL", "sqlite://")
os.environ.setdefault("BARBERSHOP_HOLD_SWEEP_INTERVAL_SECONDS", "0")

from datetime import date, datetime, timedelta

import pytest
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

from barbershop.config import Settings
from barbershop.engine.allocator import BookingAllocator, BookingRequest
from barbershop.engine.events import EventSink
from barbershop.engine.holds import HoldStateMachine
from barbershop.engine.locks import KeyedLocks
from barbershop.models import Barber, BusinessHours, RecurringBreak, Service, User

# Monday 2 March 2026, 07:00 salon time
NOW = datetime(2026, 3, 2, 7, 0)
MONDAY = date(2026, 3, 2)
TUESDAY = date(2026, 3, 3)
SATURDAY = date(2026, 3, 7)


def make_settings(**overrides) -> Settings:
    values = dict(
        database_url="sqlite://",
        slot_minutes=30,
        booking_buffer_minutes=30,
        default_hold_minutes=15,
        hold_sweep_interval_seconds=0,
        schedule_cache_ttl_seconds=0,
    )
    values.update(overrides)
    return Settings(**values)


def seed_salon(session: Session, username: str = "elcorte") -> User:
    """Mon-Fri 09:00-18:00, lunch 13:00-14:00 every day, two barbers, three services."""
    salon = User(
        email=f"{username}@example.com",
        password_hash="x",
        role="owner",
        username=username,
        salon_name="El Corte",
    )
    session.add(salon)
    session.commit()
    session.refresh(salon)

    for day in range(7):
        session.add(BusinessHours(
            salon_id=salon.id,
            day_of_week=day,
            is_active=day < 5,
            start_time="09:00",
            end_time="18:00",
        ))
    session.add(RecurringBreak(
        salon_id=salon.id,
        name="Lunch",
        start_time="13:00",
        end_time="14:00",
        recurrence_type="daily",
    ))
    session.add(Barber(salon_id=salon.id, name="Ana"))
    session.add(Barber(salon_id=salon.id, name="Beto"))
    session.add(Service(salon_id=salon.id, name="Haircut", duration=30, price=150))
    session.add(Service(salon_id=salon.id, name="Beard", duration=15, price=80))
    session.add(Service(salon_id=salon.id, name="Fade", duration=45, price=200))
    session.commit()
    return salon


def make_request(day, time, service_ids=(1,), barber_id="any", **extra) -> BookingRequest:
    return BookingRequest(
        date=day,
        time=time,
        service_ids=list(service_ids),
        barber_id=barber_id,
        client_name=extra.pop("client_name", "Luis"),
        client_email=extra.pop("client_email", "luis@example.com"),
        **extra,
    )


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture
def salon(session):
    return seed_salon(session)


@pytest.fixture
def events():
    return EventSink()


@pytest.fixture
def received(events):
    got = []
    events.subscribe(got.append)
    return got


@pytest.fixture
def allocator(settings, events):
    return BookingAllocator(settings=settings, locks=KeyedLocks(), events=events)


@pytest.fixture
def machine(settings, events, allocator):
    return HoldStateMachine(settings=settings, locks=allocator.locks, events=events)


def future_weekday(weekday: int, min_days: int = 7) -> date:
    """A date at least min_days ahead falling on weekday (0=Mon)."""
    day = date.today() + timedelta(days=min_days)
    while day.weekday() != weekday:
        day += timedelta(days=1)
    return day
