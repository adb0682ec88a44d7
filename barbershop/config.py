# barbershop/config.py

from functools import lru_cache
from pathlib import Path
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

BASE_DIR = Path(__file__).resolve().parents[1]


class Settings(BaseSettings):
    database_url: str = "sqlite:///./barbershop.db"

    secret_key: str = "change-me-later"
    access_token_expire_minutes: int = 30

    # All stored datetimes are wall-clock times in this zone
    timezone: str = "America/Mexico_City"

    slot_minutes: int = 30
    booking_buffer_minutes: int = 30
    default_hold_minutes: int = 15
    hold_sweep_interval_seconds: int = 30
    schedule_cache_ttl_seconds: int = 60
    # availability reads skip the schedule cache when unset
    redis_url: Optional[str] = None

    log_level: str = "INFO"

    model_config = SettingsConfigDict(
        env_prefix="BARBERSHOP_",
        env_file=BASE_DIR / ".env",
        extra="ignore",
    )

    @field_validator("slot_minutes")
    @classmethod
    def slot_minutes_divides_hour(cls, v: int) -> int:
        if v < 5 or v > 120 or (v <= 60 and 60 % v != 0) or (v > 60 and v % 60 != 0):
            raise ValueError(f"slot_minutes must evenly divide the hour, got {v}")
        return v

    @field_validator("booking_buffer_minutes", "hold_sweep_interval_seconds", "schedule_cache_ttl_seconds")
    @classmethod
    def not_negative(cls, v: int) -> int:
        if v < 0:
            raise ValueError("must be >= 0")
        return v

    @field_validator("default_hold_minutes")
    @classmethod
    def positive_hold(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("default_hold_minutes must be > 0")
        return v


@lru_cache
def get_settings() -> Settings:
    return Settings()
