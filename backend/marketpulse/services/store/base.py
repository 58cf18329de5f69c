import json
import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """A write to the snapshot store failed."""


class SnapshotStore(ABC):
    """
    Key-value store holding price snapshots, reference data and derived artifacts.

    Reads never raise: an unreachable or missing key reads as None (or empty), which
    callers treat as unavailable input. Writes raise StoreError.
    """

    @abstractmethod
    def get_raw(self, key: str) -> Optional[str]:
        """Fetch the stored string value of a key."""
        raise NotImplementedError

    @abstractmethod
    def set_raw(self, key: str, value: str) -> None:
        """Store a string value (upsert)."""
        raise NotImplementedError

    @abstractmethod
    def exists(self, key: str) -> bool:
        raise NotImplementedError

    @abstractmethod
    def add_to_set(self, key: str, member: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def set_members(self, key: str) -> set[str]:
        raise NotImplementedError

    @abstractmethod
    def scan_keys(self, pattern: str) -> list[str]:
        """Keys matching a glob-style pattern."""
        raise NotImplementedError

    def get_str(self, key: str) -> Optional[str]:
        value = self.get_raw(key)
        if value is None:
            return None
        value = value.strip()
        return value or None

    def get_json(self, key: str) -> Any:
        raw = self.get_raw(key)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.warning("Ignoring undecodable JSON at %s", key)
            return None

    def set_str(self, key: str, value: str) -> None:
        self.set_raw(key, value)

    def set_json(self, key: str, document: Any) -> None:
        self.set_raw(key, json.dumps(document, separators=(",", ":"), ensure_ascii=False))
