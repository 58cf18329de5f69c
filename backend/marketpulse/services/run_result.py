import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from marketpulse.core.metrics import metrics
from marketpulse.services.store import SnapshotStore, StoreError

logger = logging.getLogger(__name__)

STATUS_COMPLETED = "completed"
STATUS_PARTIAL = "partial"
STATUS_FAILED = "failed"
STATUS_NOT_READY = "not_ready"


@dataclass
class RunResult:
    """
    Outcome of one engine run.

    not_ready means the inputs are not there yet and the caller should retry later;
    it is not a computation error. writes records each artifact separately so a
    partial success stays visible.
    """
    status: str
    as_of_date: Optional[date] = None
    reason: Optional[str] = None
    writes: dict[str, bool] = field(default_factory=dict)
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def ready(self) -> bool:
        return self.status != STATUS_NOT_READY

    @classmethod
    def not_ready(cls, reason: str, as_of_date: Optional[date] = None) -> "RunResult":
        logger.warning("Input not ready%s: %s", f" for {as_of_date}" if as_of_date else "", reason)
        metrics.input_not_ready(reason, as_of=as_of_date.isoformat() if as_of_date else None)
        return cls(status=STATUS_NOT_READY, as_of_date=as_of_date, reason=reason)

    @classmethod
    def from_writes(
        cls, as_of_date: Optional[date], writes: dict[str, bool], **details: Any
    ) -> "RunResult":
        if not writes or all(writes.values()):
            status = STATUS_COMPLETED
        elif any(writes.values()):
            status = STATUS_PARTIAL
        else:
            status = STATUS_FAILED
        return cls(status=status, as_of_date=as_of_date, writes=dict(writes), details=details)

    def to_dict(self) -> dict[str, Any]:
        return {
            "status": self.status,
            "date": self.as_of_date.isoformat() if self.as_of_date else None,
            "reason": self.reason,
            "writes": dict(self.writes),
            **self.details,
        }


@dataclass(frozen=True)
class _SetMember:
    member: str


def set_member(member: str) -> _SetMember:
    """Wrap a value so write_artifact adds it to a set instead of overwriting a key."""
    return _SetMember(member)


def write_artifact(
    store: SnapshotStore,
    writes: dict[str, bool],
    artifact: str,
    key: str,
    value: Any,
    as_of_date: Optional[date] = None,
) -> bool:
    """Write one artifact (JSON document, or plain string / set member) and record the outcome."""
    try:
        if isinstance(value, _SetMember):
            store.add_to_set(key, value.member)
        elif isinstance(value, str):
            store.set_str(key, value)
        else:
            store.set_json(key, value)
    except StoreError as e:
        logger.error("Failed to write %s (%s): %s", artifact, key, e)
        metrics.artifact_write_failed(
            artifact, key, as_of=as_of_date.isoformat() if as_of_date else None
        )
        writes[artifact] = False
        return False

    writes[artifact] = True
    return True
