"""
Structured run metrics for pulse and sector jobs.

Each event is logged, kept in a bounded in-memory buffer and, when a Redis
client is attached, appended to the metrics stream for dashboards.
"""
import json
import logging
from collections import Counter
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from marketpulse.core.config import settings

logger = logging.getLogger(__name__)


@dataclass
class MetricEvent:
    timestamp: datetime
    category: str          # "pulse", "sector", "input", "store", "backfill"
    event_type: str
    as_of: Optional[str]   # trading date the event refers to
    value: float
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.category}/{self.event_type}"

    def to_json(self) -> str:
        payload = asdict(self)
        payload["timestamp"] = self.timestamp.isoformat()
        return json.dumps(payload)


class MetricsEmitter:
    """Emit job metrics to the log, a local buffer and an optional Redis stream."""

    def __init__(self, redis_client=None, buffer_size: int = 1000):
        self.redis = redis_client
        self.buffer_size = buffer_size
        self._buffer: List[MetricEvent] = []
        self._enabled = True

    def set_redis(self, redis_client) -> None:
        self.redis = redis_client

    def enable(self) -> None:
        self._enabled = True

    def disable(self) -> None:
        self._enabled = False

    def emit(
        self,
        category: str,
        event_type: str,
        value: float,
        as_of: str = None,
        metadata: dict = None,
    ) -> Optional[MetricEvent]:
        if not self._enabled:
            return None

        event = MetricEvent(
            timestamp=datetime.now(timezone.utc),
            category=category,
            event_type=event_type,
            as_of=as_of,
            value=value,
            metadata=metadata or {},
        )
        logger.info("METRIC [%s] as_of=%s value=%s %s", event.name, as_of, value, event.metadata)

        self._buffer.append(event)
        del self._buffer[:-self.buffer_size]

        if self.redis:
            try:
                self.redis.xadd(settings.METRICS_STREAM, {"data": event.to_json()})
            except Exception as e:
                logger.warning(f"Failed to publish metric to Redis: {e}")

        return event

    def pulse_computed(self, as_of: str, universe_count: int, breadth_pct: Optional[float],
                       constituents_used: int, turnover_coverage: int) -> MetricEvent:
        return self.emit(
            "pulse", "computed", universe_count,
            as_of=as_of,
            metadata={
                "breadth_pct": round(breadth_pct, 4) if breadth_pct is not None else None,
                "constituents_used": constituents_used,
                "turnover_coverage": turnover_coverage,
            },
        )

    def sector_snapshot_built(self, as_of: str, sectors: int, used_stocks: int,
                              prev_date: Optional[str]) -> MetricEvent:
        return self.emit(
            "sector", "snapshot_built", used_stocks,
            as_of=as_of,
            metadata={"sectors": sectors, "prev_date": prev_date},
        )

    def input_not_ready(self, reason: str, as_of: str = None) -> MetricEvent:
        """Input missing or too small; the scheduler retries on its next run."""
        return self.emit("input", "not_ready", 1.0, as_of=as_of, metadata={"reason": reason})

    def degraded_input(self, source: str, detail: dict, as_of: str = None) -> MetricEvent:
        return self.emit("input", "degraded", 1.0, as_of=as_of, metadata={"source": source, **detail})

    def artifact_write_failed(self, artifact: str, key: str, as_of: str = None) -> MetricEvent:
        return self.emit(
            "store", "write_failed", 1.0, as_of=as_of, metadata={"artifact": artifact, "key": key}
        )

    def backfill_completed(self, kind: str, computed: int, skipped: int,
                           failed: int) -> MetricEvent:
        return self.emit(
            "backfill", "completed", computed,
            metadata={"kind": kind, "skipped": skipped, "failed": failed},
        )

    def get_buffer(self) -> List[MetricEvent]:
        return list(self._buffer)

    def counts(self) -> Counter:
        """Buffered events per "category/event_type"."""
        return Counter(event.name for event in self._buffer)

    def clear_buffer(self) -> int:
        count = len(self._buffer)
        self._buffer = []
        return count


metrics = MetricsEmitter()
