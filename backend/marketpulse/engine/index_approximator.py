from __future__ import annotations

import math
from typing import Mapping, Sequence

from marketpulse.models.daily_pulse import IndexApprox, Mover
from marketpulse.models.fundamentals import FundamentalsRecord
from marketpulse.models.price_row import PriceRow


def approximate_index(
    rows: Sequence[PriceRow],
    pcts: Sequence[float | None],
    fundamentals: Mapping[str, FundamentalsRecord],
) -> IndexApprox:
    """
    Market-cap-weighted return of index members.

    constituents_used separates a flat market (pct 0 with many constituents) from
    missing coverage (pct None, zero constituents).
    """
    weighted_sum = 0.0
    weight_sum = 0.0
    used = 0

    for row, pct in zip(rows, pcts):
        if pct is None or not math.isfinite(pct):
            continue
        record = fundamentals.get(row.code)
        if record is None or not record.index_member or not record.has_market_cap:
            continue
        weighted_sum += pct * record.market_cap
        weight_sum += record.market_cap
        used += 1

    return IndexApprox(
        pct=weighted_sum / weight_sum if weight_sum > 0 else None,
        constituents_used=used,
    )


def rank_movers(
    rows: Sequence[PriceRow],
    pcts: Sequence[float | None],
    limit: int = 5,
) -> tuple[list[Mover], list[Mover]]:
    """Top gainers and losers among rows with a finite change; ties keep row order."""
    movers = [
        Mover(code=row.code, pct=pct)
        for row, pct in zip(rows, pcts)
        if pct is not None and math.isfinite(pct)
    ]
    gainers = sorted(movers, key=lambda m: m.pct, reverse=True)[:limit]
    losers = sorted(movers, key=lambda m: m.pct)[:limit]
    return gainers, losers
