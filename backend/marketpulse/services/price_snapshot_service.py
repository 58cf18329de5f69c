import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Optional

from marketpulse.core.config import settings
from marketpulse.core.redis import StoreKeys
from marketpulse.models.base import extract_rows, parse_ymd
from marketpulse.models.price_row import PriceRow, parse_price_rows
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)

DATE_FIELDS = ("date", "asOfDate", "asOf", "latest")


@dataclass
class PriceSnapshot:
    """Parsed rows of one day's price snapshot, or the reason there is none."""
    as_of_date: Optional[date] = None
    rows: list[PriceRow] = field(default_factory=list)
    reason: Optional[str] = None

    @property
    def ready(self) -> bool:
        return self.reason is None


def _decode(raw: Optional[str]) -> Any:
    if raw is None:
        return None
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def date_from_value(value: Any) -> Optional[date]:
    """A YYYY-MM-DD date from a plain string, an ISO timestamp or a JSON object holding one."""
    if isinstance(value, dict):
        for name in DATE_FIELDS:
            day = parse_ymd(value.get(name))
            if day is not None:
                return day
        return None
    if isinstance(value, str):
        decoded = _decode(value)
        if isinstance(decoded, dict):
            return date_from_value(decoded)
        if isinstance(decoded, str):
            return parse_ymd(decoded)
    return parse_ymd(value)


class PriceSnapshotService:
    """Read per-day and latest price snapshots from the store."""

    def __init__(
        self,
        store: SnapshotStore,
        keys: Optional[StoreKeys] = None,
        min_rows: Optional[int] = None,
    ):
        self.store = store
        self.keys = keys or StoreKeys()
        self.min_rows = settings.MIN_SNAPSHOT_ROWS if min_rows is None else min_rows

    def latest_date(self) -> Optional[date]:
        """
        Trading date of the latest snapshot: the date its rows (or the document)
        carry, else the pointer key when the latest key holds no rows.
        """
        document = _decode(self.store.get_raw(self.keys.eod_latest))
        rows = extract_rows(document)
        if rows is not None:
            return self._date_of(document, parse_price_rows(rows))
        return date_from_value(document) or date_from_value(
            self.store.get_str(self.keys.eod_latest_date)
        )

    def load_latest(self) -> PriceSnapshot:
        document = _decode(self.store.get_raw(self.keys.eod_latest))
        raw_rows = extract_rows(document)

        if raw_rows is None:
            # The latest key may only hold a date pointer
            day = date_from_value(document) or date_from_value(
                self.store.get_str(self.keys.eod_latest_date)
            )
            if day is None:
                return PriceSnapshot(reason="no latest price snapshot")
            return self.load(day)

        rows = parse_price_rows(raw_rows)
        as_of_date = self._date_of(document, rows)
        if as_of_date is None:
            return PriceSnapshot(rows=rows, reason="latest price snapshot has no trading date")
        return self._checked(as_of_date, rows)

    def load(self, day: date) -> PriceSnapshot:
        raw_rows = extract_rows(self.store.get_json(self.keys.eod(day)))
        if raw_rows is None:
            return PriceSnapshot(as_of_date=day, reason=f"missing price snapshot for {day}")
        return self._checked(day, parse_price_rows(raw_rows))

    def _checked(self, day: date, rows: list[PriceRow]) -> PriceSnapshot:
        if len(rows) < self.min_rows:
            return PriceSnapshot(
                as_of_date=day,
                rows=rows,
                reason=f"price snapshot for {day} too small ({len(rows)} rows)",
            )
        return PriceSnapshot(as_of_date=day, rows=rows)

    def _date_of(self, document: Any, rows: list[PriceRow]) -> Optional[date]:
        # The pointer is written after the rows and may lag behind them
        day = next((row.trade_date for row in rows if row.trade_date), None)
        if day is None and isinstance(document, dict):
            day = date_from_value(document)
        if day is None:
            day = date_from_value(self.store.get_str(self.keys.eod_latest_date))
        return day

    def available_dates(self) -> list[date]:
        """Every date with a stored snapshot, ascending."""
        days = set()
        prefix = self.keys.eod_prefix
        for key in self.store.scan_keys(self.keys.eod_pattern):
            suffix = key[len(prefix):] if key.startswith(prefix) else ""
            day = parse_ymd(suffix) if len(suffix) == 10 else None
            if day is not None:
                days.add(day)
        return sorted(days)
