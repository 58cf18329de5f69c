from typing import Dict, Type

from marketpulse.core.config import settings
from marketpulse.services.store.base import SnapshotStore, StoreError
from marketpulse.services.store.memory_store import InMemorySnapshotStore
from marketpulse.services.store.redis_store import RedisSnapshotStore

STORES: Dict[str, Type[SnapshotStore]] = {
    "redis": RedisSnapshotStore,
    "memory": InMemorySnapshotStore,
}


def get_snapshot_store(name: str | None = None) -> SnapshotStore:
    """Factory to get store instance."""
    name = name or settings.STORE_BACKEND
    store_class = STORES.get(name)
    if not store_class:
        raise ValueError(f"Unknown snapshot store: {name}")
    return store_class()


__all__ = [
    "SnapshotStore",
    "StoreError",
    "InMemorySnapshotStore",
    "RedisSnapshotStore",
    "get_snapshot_store",
]
