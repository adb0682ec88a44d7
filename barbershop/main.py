# barbershop/main.py

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlmodel import Session

from .config import get_settings
from .db import create_db_and_tables, engine
from .engine.errors import BookingError
from .engine.holds import HoldStateMachine
from .routers import (
    appointments_routes,
    auth_routes,
    barbers_routes,
    salons_routes,
    schedules_routes,
    services_routes,
    users_routes,
)

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)


def sweep_once() -> int:
    with Session(engine) as session:
        return HoldStateMachine().sweep_expired_holds(session)


async def hold_sweep_loop(interval: int):
    while True:
        try:
            await asyncio.to_thread(sweep_once)
        except Exception as e:
            logger.error(f"Hold sweep failed: {e}")
        await asyncio.sleep(interval)


@asynccontextmanager
async def lifespan(app: FastAPI):
    create_db_and_tables()

    task = None
    if settings.hold_sweep_interval_seconds > 0:
        logger.info(f"Starting hold sweep (every {settings.hold_sweep_interval_seconds}s)")
        task = asyncio.create_task(hold_sweep_loop(settings.hold_sweep_interval_seconds))
    try:
        yield
    finally:
        if task is not None:
            task.cancel()
            logger.info("Hold sweep stopped")


app = FastAPI(title="Barbershop Booking API", lifespan=lifespan)


@app.exception_handler(BookingError)
def booking_error_handler(request: Request, exc: BookingError):
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.message, "code": exc.code},
    )


@app.get("/health")
def health_check():
    return {"status": "ok"}


app.include_router(users_routes.router)
app.include_router(auth_routes.router)
app.include_router(schedules_routes.router)
app.include_router(barbers_routes.router)
app.include_router(services_routes.router)
app.include_router(salons_routes.router)
app.include_router(appointments_routes.router)
