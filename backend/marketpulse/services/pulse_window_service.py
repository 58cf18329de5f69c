import logging
from datetime import datetime, timezone
from typing import Optional

from marketpulse.core.config import settings
from marketpulse.core.redis import StoreKeys
from marketpulse.engine.pulse_window import build_pulse_window
from marketpulse.models.base import parse_ymd
from marketpulse.services.run_result import RunResult, write_artifact
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)


class PulseWindowService:
    """Precompute multi-day pulse windows (1d / 5d / 1m) from stored daily pulses."""

    def __init__(
        self,
        store: SnapshotStore,
        keys: Optional[StoreKeys] = None,
        windows: Optional[dict[str, int]] = None,
    ):
        self.store = store
        self.keys = keys or StoreKeys()
        self.windows = windows or settings.PULSE_WINDOWS

    def load_recent_pulses(self, count: int) -> list[dict]:
        """Most recent stored pulses, newest first."""
        dates = sorted(
            (d for d in map(parse_ymd, self.store.set_members(self.keys.pulse_dates)) if d),
            reverse=True,
        )
        pulses = []
        for day in dates[:count]:
            document = self.store.get_json(self.keys.pulse_day(day))
            if isinstance(document, dict) and document.get("asOfDate"):
                pulses.append(document)
        pulses.sort(key=lambda p: str(p["asOfDate"]), reverse=True)
        return pulses

    def refresh_windows(self) -> RunResult:
        longest = max(self.windows.values(), default=0)
        pulses = self.load_recent_pulses(longest)
        if not pulses:
            return RunResult.not_ready("no pulse history available to build windows")

        generated_at = datetime.now(timezone.utc)
        writes: dict[str, bool] = {}
        window_days: dict[str, int] = {}
        for period, days in self.windows.items():
            window = build_pulse_window(period, pulses[:days])
            window.generated_at = generated_at
            window_days[period] = window.window_days
            write_artifact(
                self.store, writes, f"window_{period}", self.keys.pulse_window(period),
                window.to_document(), window.as_of_date,
            )

        as_of_date = parse_ymd(pulses[0]["asOfDate"])
        logger.info("Pulse windows refreshed as of %s: %s", as_of_date, window_days)
        return RunResult.from_writes(as_of_date, writes, window_days=window_days)
