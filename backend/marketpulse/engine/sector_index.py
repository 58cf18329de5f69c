from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import Any, Mapping, Sequence

from marketpulse.models.base import coerce_float
from marketpulse.models.fundamentals import FundamentalsRecord
from marketpulse.models.price_row import PriceRow
from marketpulse.models.sector_snapshot import SectorCoverage, SectorEntry, SectorSnapshot

BASE_LEVEL = 100.0


@dataclass
class _SectorAccumulator:
    weighted_return: float = 0.0
    weight: float = 0.0
    stocks: int = 0
    mcap: float = 0.0


def _usable_level(value: Any) -> float | None:
    level = coerce_float(value)
    if level is None or level <= 0:
        return None
    return level


def build_sector_snapshot(
    snapshot_date: date,
    prev_date: date | None,
    rows: Sequence[PriceRow],
    prev_closes: Mapping[str, float],
    fundamentals: Mapping[str, FundamentalsRecord],
    prev_level_by_sector: Mapping[str, float],
    base_level: float = BASE_LEVEL,
) -> SectorSnapshot:
    """
    Market-cap-weighted sector returns for one day, chained onto prior levels.

    Pure: the caller folds the returned levels (see sector_levels) into its rolling
    map before building the next day. Sectors seen before but without usable
    constituents today keep their previous level with ret1d None.
    """
    accumulators: dict[str, _SectorAccumulator] = {}
    used = 0

    for row in rows:
        if row.close is None or row.close <= 0:
            continue
        prev_close = prev_closes.get(row.code)
        if prev_close is None or not prev_close > 0:
            continue
        record = fundamentals.get(row.code)
        if record is None or not record.sector or not record.has_market_cap:
            continue

        ret = row.close / prev_close - 1
        if not math.isfinite(ret):
            continue

        acc = accumulators.setdefault(record.sector, _SectorAccumulator())
        acc.weighted_return += record.market_cap * ret
        acc.weight += record.market_cap
        acc.stocks += 1
        acc.mcap += record.market_cap
        used += 1

    entries: list[SectorEntry] = []
    for sector, acc in accumulators.items():
        ret1d = acc.weighted_return / acc.weight if acc.weight > 0 else None
        prev_level = _usable_level(prev_level_by_sector.get(sector)) or base_level
        level = prev_level * (1 + ret1d) if ret1d is not None else prev_level
        entries.append(
            SectorEntry(
                sector=sector,
                ret1d=ret1d,
                level=level,
                coverage=SectorCoverage(stocks=acc.stocks, mcap=acc.mcap),
            )
        )

    # Carry sectors with no usable constituents today
    for sector, value in prev_level_by_sector.items():
        if sector in accumulators:
            continue
        prev_level = _usable_level(value)
        if prev_level is None:
            continue
        entries.append(SectorEntry(sector=sector, ret1d=None, level=prev_level))

    entries.sort(key=lambda e: (e.ret1d is None, -(e.ret1d or 0.0), e.sector))

    return SectorSnapshot(
        snapshot_date=snapshot_date,
        prev_date=prev_date,
        used_stocks=used,
        sectors=entries,
    )


def sector_levels(snapshot: SectorSnapshot) -> dict[str, float]:
    return {entry.sector: entry.level for entry in snapshot.sectors}


def levels_from_document(document: Any) -> dict[str, float]:
    """Levels from a stored sector snapshot document; unusable entries are skipped."""
    levels: dict[str, float] = {}
    if not isinstance(document, dict) or not isinstance(document.get("sectors"), list):
        return levels
    for entry in document["sectors"]:
        if not isinstance(entry, dict) or not entry.get("sector"):
            continue
        level = _usable_level(entry.get("level"))
        if level is not None:
            levels[str(entry["sector"])] = level
    return levels
