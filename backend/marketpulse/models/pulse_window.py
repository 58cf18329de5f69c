from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from marketpulse.models.base import DocumentModel
from marketpulse.models.daily_pulse import IndexApprox, Mover


class PulseWindow(DocumentModel):
    """
    Multi-day view over the most recent daily pulses.

    Index return is compounded and breadth averaged across the window; turnover is
    summed. Counts and movers are those of the latest day.
    """
    period: str
    window_days: int = Field(alias="windowDays")
    window_start_date: Optional[date] = Field(default=None, alias="windowStartDate")
    window_end_date: Optional[date] = Field(default=None, alias="windowEndDate")
    as_of_date: Optional[date] = Field(default=None, alias="asOfDate")
    prev_date_used: Optional[date] = Field(default=None, alias="prevDateUsed")
    universe_count: Optional[int] = Field(default=None, alias="universeCount")
    index_approx: IndexApprox = Field(default_factory=IndexApprox, alias="indexApprox")
    advancers: Optional[int] = None
    decliners: Optional[int] = None
    flat: Optional[int] = None
    breadth_pct: Optional[float] = Field(default=None, alias="breadthPct")
    total_turnover: Optional[float] = Field(default=None, alias="totalTurnover")
    turnover_coverage: Optional[int] = Field(default=None, alias="turnoverCoverage")
    top_gainers: List[Mover] = Field(default_factory=list, alias="topGainers")
    top_losers: List[Mover] = Field(default_factory=list, alias="topLosers")
    generated_at: Optional[datetime] = Field(default=None, alias="generatedAt")
