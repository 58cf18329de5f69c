"""
Application configuration using Pydantic Settings.

Loads configuration from environment variables and .env files.
"""

from typing import Literal
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "MarketPulse"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: Literal["local", "development", "staging", "production"] = "local"
    LOG_LEVEL: str = "INFO"
    DEBUG: bool = False

    # Snapshot store
    STORE_BACKEND: Literal["redis", "memory"] = "redis"
    REDIS_URL: str = "redis://localhost:6379/0"
    REDIS_MAX_CONNECTIONS: int = 50
    KEY_PREFIX: str = "asx"

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"
    CELERY_TIMEZONE: str = "Australia/Sydney"

    # Previous close lookup
    PREV_CLOSE_LOOKBACK_DAYS: int = 7
    MIN_SNAPSHOT_ROWS: int = 50  # smaller snapshots are treated as partial writes

    # Pulse
    TOP_MOVERS_LIMIT: int = 5

    # Sector index
    SECTOR_BASE_LEVEL: float = 100.0
    SECTOR_MIN_COVERAGE: int = 200  # warn below this many constituents

    # Backfill
    BACKFILL_MAX_DAYS: int = 200

    # Pulse windows (period -> number of trading days)
    PULSE_WINDOWS: dict[str, int] = {"1d": 1, "5d": 5, "1m": 21}

    # Metrics
    METRICS_STREAM: str = "metrics"


# Global settings instance
settings = Settings()
