"""
Redis connection and key layout.

Provides the Redis client used by the snapshot store and the key names
shared by every reader and writer of pulse artifacts.
"""

from datetime import date
from typing import Optional
from redis import Redis
from marketpulse.core.config import settings

# Synchronous Redis client (for Celery tasks)
redis_client: Optional[Redis] = None


def get_redis() -> Redis:
    """Get synchronous Redis client."""
    global redis_client
    if redis_client is None:
        redis_client = Redis.from_url(
            settings.REDIS_URL,
            decode_responses=True,
            max_connections=settings.REDIS_MAX_CONNECTIONS,
        )
    return redis_client


class StoreKeys:
    """Key names for price snapshots, fundamentals and derived artifacts."""

    def __init__(self, prefix: Optional[str] = None):
        self.prefix = prefix or settings.KEY_PREFIX

    # Price snapshots
    @property
    def eod_latest(self) -> str:
        return f"{self.prefix}:universe:eod:latest"

    @property
    def eod_latest_date(self) -> str:
        return f"{self.prefix}:universe:eod:latestDate"

    @property
    def eod_prefix(self) -> str:
        return f"{self.prefix}:universe:eod:"

    def eod(self, day: date) -> str:
        return f"{self.eod_prefix}{day.isoformat()}"

    @property
    def eod_pattern(self) -> str:
        return f"{self.eod_prefix}20??-??-??"

    # Reference data
    @property
    def fundamentals(self) -> str:
        return f"{self.prefix}:universe:fundamentals:latest"

    # Market pulse
    def pulse_day(self, day: date) -> str:
        return f"{self.prefix}:market:pulse:day:{day.isoformat()}"

    @property
    def pulse_dates(self) -> str:
        return f"{self.prefix}:market:pulse:dates"

    def pulse_window(self, period: str) -> str:
        return f"{self.prefix}:market:pulse:window:{period}"

    # Sector index
    def sector_day(self, day: date) -> str:
        return f"{self.prefix}:sectors:day:{day.isoformat()}"

    @property
    def sector_latest(self) -> str:
        return f"{self.prefix}:sectors:latest"

    @property
    def sector_dates(self) -> str:
        return f"{self.prefix}:sectors:dates"
