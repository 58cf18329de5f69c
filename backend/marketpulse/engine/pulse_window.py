from __future__ import annotations

from typing import Any, Sequence

import pandas as pd

from marketpulse.models.base import coerce_float, parse_ymd
from marketpulse.models.daily_pulse import IndexApprox, Mover
from marketpulse.models.pulse_window import PulseWindow


def _clean(series: pd.Series) -> pd.Series:
    return pd.to_numeric(series, errors="coerce").dropna()


def compound_pct(series: pd.Series) -> float | None:
    """Compound daily percent moves: (prod(1 + p/100) - 1) * 100."""
    values = _clean(series)
    if values.empty:
        return None
    return float(((1 + values / 100).prod() - 1) * 100)


def mean_or_none(series: pd.Series) -> float | None:
    values = _clean(series)
    return None if values.empty else float(values.mean())


def sum_or_none(series: pd.Series) -> float | None:
    values = _clean(series)
    return None if values.empty else float(values.sum())


def _index_pct(pulse: dict) -> Any:
    index = pulse.get("indexApprox") or pulse.get("asx200") or {}
    return index.get("pct") if isinstance(index, dict) else None


def _movers(raw: Any) -> list[Mover]:
    movers = []
    for item in raw if isinstance(raw, list) else []:
        if not isinstance(item, dict) or not item.get("code"):
            continue
        pct = coerce_float(item.get("pct"))
        if pct is not None:
            movers.append(Mover(code=str(item["code"]), pct=pct))
    return movers


def _int_or_none(value: Any) -> int | None:
    number = coerce_float(value)
    return int(number) if number is not None else None


def build_pulse_window(period: str, pulses: Sequence[dict]) -> PulseWindow:
    """
    Aggregate daily pulse documents ordered most recent first.
    """
    if not pulses:
        return PulseWindow(
            period=period, window_days=0, index_approx=IndexApprox(constituents_used=None)
        )

    latest = pulses[0]
    frame = pd.DataFrame(
        {
            "index_pct": [_index_pct(p) for p in pulses],
            "breadth_pct": [p.get("breadthPct") for p in pulses],
            "turnover": [p.get("totalTurnover", p.get("totalTurnoverAud")) for p in pulses],
        },
        dtype=object,
    )
    latest_index = latest.get("indexApprox") or latest.get("asx200")
    if not isinstance(latest_index, dict):
        latest_index = {}

    return PulseWindow(
        period=period,
        window_days=len(pulses),
        window_start_date=parse_ymd(pulses[-1].get("asOfDate")),
        window_end_date=parse_ymd(latest.get("asOfDate")),
        as_of_date=parse_ymd(latest.get("asOfDate")),
        prev_date_used=parse_ymd(latest.get("prevDateUsed")),
        universe_count=_int_or_none(latest.get("universeCount")),
        index_approx=IndexApprox(
            pct=compound_pct(frame["index_pct"]),
            constituents_used=_int_or_none(latest_index.get("constituentsUsed")),
        ),
        advancers=_int_or_none(latest.get("advancers")),
        decliners=_int_or_none(latest.get("decliners")),
        flat=_int_or_none(latest.get("flat")),
        breadth_pct=mean_or_none(frame["breadth_pct"]),
        total_turnover=sum_or_none(frame["turnover"]),
        turnover_coverage=_int_or_none(latest.get("turnoverCoverage")),
        top_gainers=_movers(latest.get("topGainers")),
        top_losers=_movers(latest.get("topLosers")),
    )
