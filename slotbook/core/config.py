from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    app_name: str = "Slotbook API"
    database_url: str = (
        "postgresql+psycopg2://slotbook:slotbook@db:5432/slotbook"  # pragma: allowlist secret
    )
    redis_url: str = "redis://redis:6379/0"
    timezone: str = "UTC"
    cors_origins: list[str] = ["http://localhost:3000"]
    rate_limit_requests: int = 120
    rate_limit_window_seconds: int = 60

    slot_granularity_minutes: int = Field(default=15, gt=0)
    default_reschedule_window_hours: float = Field(default=2.0, ge=0)

    sweep_grace_period_hours: int = Field(default=24, ge=0)
    sweep_lookback_months: int = Field(default=1, gt=0)
    sweep_batch_size: int = Field(default=20, gt=0)
    sweep_max_per_tenant: int = Field(default=100, gt=0)
    sweep_lock_timeout_seconds: int = 60 * 60
    sweep_hour: int = Field(default=0, ge=0, le=23)

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached settings instance."""

    return Settings()


settings = get_settings()
