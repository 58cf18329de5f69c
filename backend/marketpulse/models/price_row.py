import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Optional

from marketpulse.models.base import coerce_float, first_float, normalize_code, parse_ymd

logger = logging.getLogger(__name__)

CLOSE_FIELDS = ("close", "price", "last")
PCT_CHANGE_FIELDS = ("pctChange", "changePct", "change_percent")


@dataclass(frozen=True)
class PriceRow:
    """
    One instrument on one trading day.
    Missing or invalid numbers stay None, they are never coerced to zero.
    """
    code: str
    close: Optional[float] = None
    volume: Optional[float] = None
    pct_change: Optional[float] = None
    trade_date: Optional[date] = None

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["PriceRow"]:
        if not isinstance(raw, dict):
            return None
        code = normalize_code(raw.get("code"))
        if code is None:
            return None

        pct_change = None
        for name in PCT_CHANGE_FIELDS:
            pct_change = coerce_float(raw.get(name))
            if pct_change is not None:
                break

        return cls(
            code=code,
            close=first_float(raw, *CLOSE_FIELDS),
            volume=coerce_float(raw.get("volume")),
            pct_change=pct_change,
            trade_date=parse_ymd(raw.get("date")),
        )


def parse_price_rows(raw_rows: Iterable[Any]) -> list[PriceRow]:
    """Parse stored rows, dropping rows without a code and repeated codes."""
    rows: list[PriceRow] = []
    seen: set[str] = set()
    duplicates = 0
    for raw in raw_rows:
        row = PriceRow.from_raw(raw)
        if row is None:
            continue
        if row.code in seen:
            duplicates += 1
            continue
        seen.add(row.code)
        rows.append(row)

    if duplicates:
        logger.warning("Dropped %s duplicate price rows", duplicates)
    return rows
