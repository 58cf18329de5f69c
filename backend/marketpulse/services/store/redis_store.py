import logging
from typing import Optional

from redis import Redis, RedisError

from marketpulse.core.redis import get_redis
from marketpulse.services.store.base import SnapshotStore, StoreError

logger = logging.getLogger(__name__)


class RedisSnapshotStore(SnapshotStore):
    """Snapshot store backed by Redis (string keys holding JSON, plus sets)."""

    SCAN_COUNT = 500

    def __init__(self, client: Optional[Redis] = None):
        self.client = client or get_redis()

    def get_raw(self, key: str) -> Optional[str]:
        try:
            value = self.client.get(key)
        except RedisError as e:
            logger.warning(f"Redis GET {key} failed: {e}")
            return None
        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    def set_raw(self, key: str, value: str) -> None:
        try:
            self.client.set(key, value)
        except RedisError as e:
            raise StoreError(f"Redis SET {key} failed: {e}") from e

    def exists(self, key: str) -> bool:
        try:
            return bool(self.client.exists(key))
        except RedisError as e:
            logger.warning(f"Redis EXISTS {key} failed: {e}")
            return False

    def add_to_set(self, key: str, member: str) -> None:
        try:
            self.client.sadd(key, member)
        except RedisError as e:
            raise StoreError(f"Redis SADD {key} failed: {e}") from e

    def set_members(self, key: str) -> set[str]:
        try:
            members = self.client.smembers(key)
        except RedisError as e:
            logger.warning(f"Redis SMEMBERS {key} failed: {e}")
            return set()
        return {m.decode("utf-8") if isinstance(m, bytes) else m for m in members}

    def scan_keys(self, pattern: str) -> list[str]:
        try:
            keys = list(self.client.scan_iter(match=pattern, count=self.SCAN_COUNT))
        except RedisError as e:
            logger.warning(f"Redis SCAN {pattern} failed: {e}")
            return []
        return [k.decode("utf-8") if isinstance(k, bytes) else k for k in keys]
