from fnmatch import fnmatchcase
from typing import Optional

from marketpulse.services.store.base import SnapshotStore


class InMemorySnapshotStore(SnapshotStore):
    """Process-local store for tests and local runs."""

    def __init__(self):
        self.values: dict[str, str] = {}
        self.sets: dict[str, set[str]] = {}

    def get_raw(self, key: str) -> Optional[str]:
        return self.values.get(key)

    def set_raw(self, key: str, value: str) -> None:
        self.values[key] = value

    def exists(self, key: str) -> bool:
        return key in self.values or key in self.sets

    def add_to_set(self, key: str, member: str) -> None:
        self.sets.setdefault(key, set()).add(member)

    def set_members(self, key: str) -> set[str]:
        return set(self.sets.get(key, set()))

    def scan_keys(self, pattern: str) -> list[str]:
        keys = list(self.values) + list(self.sets)
        return sorted(k for k in keys if fnmatchcase(k, pattern))
