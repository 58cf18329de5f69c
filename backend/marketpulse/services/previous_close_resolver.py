import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Iterable, Optional

from marketpulse.core.config import settings
from marketpulse.core.redis import StoreKeys
from marketpulse.models.base import extract_rows
from marketpulse.models.price_row import parse_price_rows
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class PreviousCloses:
    """Baseline closes for percentage-change math."""
    closes: dict[str, float] = field(default_factory=dict)
    prev_date_used: Optional[date] = None

    @property
    def available(self) -> bool:
        return self.prev_date_used is not None


def build_close_map(raw_rows: Iterable) -> dict[str, float]:
    """code -> close for every row with a positive close."""
    return {
        row.code: row.close
        for row in parse_price_rows(raw_rows)
        if row.close is not None and row.close > 0
    }


class PreviousCloseResolver:
    """
    Find the nearest earlier day with a usable price snapshot.

    Walks back one calendar day at a time. Weekends and holidays have no stored
    snapshot and are skipped naturally. A day needs at least min_rows positive
    closes, the same bar a snapshot clears to be computed at all.
    """

    def __init__(
        self,
        store: SnapshotStore,
        keys: Optional[StoreKeys] = None,
        min_rows: Optional[int] = None,
    ):
        self.store = store
        self.keys = keys or StoreKeys()
        self.min_rows = settings.MIN_SNAPSHOT_ROWS if min_rows is None else min_rows

    def resolve(self, as_of_date: date, max_lookback_days: Optional[int] = None) -> PreviousCloses:
        lookback = (
            settings.PREV_CLOSE_LOOKBACK_DAYS if max_lookback_days is None else max_lookback_days
        )

        for offset in range(1, lookback + 1):
            candidate = as_of_date - timedelta(days=offset)
            rows = extract_rows(self.store.get_json(self.keys.eod(candidate)))
            if not rows:
                continue

            closes = build_close_map(rows)
            if not closes or len(closes) < self.min_rows:
                logger.warning(
                    "Skipping snapshot %s: only %s usable closes (need %s)",
                    candidate,
                    len(closes),
                    self.min_rows,
                )
                continue

            logger.info("Previous closes for %s taken from %s", as_of_date, candidate)
            return PreviousCloses(closes=closes, prev_date_used=candidate)

        logger.warning(
            "No usable snapshot within %s days before %s", lookback, as_of_date
        )
        return PreviousCloses()
