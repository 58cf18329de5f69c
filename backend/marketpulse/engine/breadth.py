from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

from marketpulse.models.price_row import PriceRow


@dataclass
class BreadthResult:
    advancers: int = 0
    decliners: int = 0
    flat: int = 0
    turnover: float = 0.0
    turnover_coverage: int = 0

    @property
    def classified(self) -> int:
        return self.advancers + self.decliners + self.flat

    @property
    def breadth_pct(self) -> float | None:
        denominator = self.advancers + self.decliners
        if denominator == 0:
            return None
        return self.advancers / denominator * 100

    @property
    def total_turnover(self) -> float | None:
        return self.turnover if self.turnover_coverage > 0 else None


def resolve_pct_change(row: PriceRow, prev_closes: Mapping[str, float]) -> float | None:
    """
    Percent change for a row: the row's own change field when finite, otherwise
    derived from the previous close.
    """
    if row.pct_change is not None and math.isfinite(row.pct_change):
        return row.pct_change
    if row.close is None:
        return None
    prev_close = prev_closes.get(row.code)
    if prev_close is None or not prev_close > 0:
        return None
    pct = (row.close - prev_close) / prev_close * 100
    return pct if math.isfinite(pct) else None


def compute_pct_changes(
    rows: Sequence[PriceRow], prev_closes: Mapping[str, float]
) -> list[float | None]:
    return [resolve_pct_change(row, prev_closes) for row in rows]


def aggregate_breadth(
    rows: Sequence[PriceRow],
    prev_closes: Mapping[str, float],
    pcts: Sequence[float | None] | None = None,
) -> BreadthResult:
    """Advance/decline/flat counts and notional turnover in one pass."""
    if pcts is None:
        pcts = compute_pct_changes(rows, prev_closes)

    result = BreadthResult()
    for row, pct in zip(rows, pcts):
        if (
            row.close is not None
            and row.volume is not None
            and row.close >= 0
            and row.volume >= 0
        ):
            result.turnover += row.close * row.volume
            result.turnover_coverage += 1

        if pct is None or not math.isfinite(pct):
            continue
        if pct > 0:
            result.advancers += 1
        elif pct < 0:
            result.decliners += 1
        else:
            result.flat += 1

    return result
