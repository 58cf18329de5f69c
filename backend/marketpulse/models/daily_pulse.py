from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from marketpulse.models.base import DocumentModel


class Mover(DocumentModel):
    code: str
    pct: float


class IndexApprox(DocumentModel):
    """
    Market-cap-weighted index return and the number of constituents behind it.
    constituents_used is None only where no count was recorded, e.g. an empty window.
    """
    pct: Optional[float] = None
    constituents_used: Optional[int] = Field(default=0, alias="constituentsUsed")


class DailyPulse(DocumentModel):
    """
    Market pulse for one trading day.

    advancers + decliners + flat counts only rows with a computable change,
    so it may be smaller than universe_count.
    """
    as_of_date: date = Field(alias="asOfDate")
    prev_date_used: Optional[date] = Field(default=None, alias="prevDateUsed")
    universe_count: int = Field(default=0, alias="universeCount")
    advancers: int = 0
    decliners: int = 0
    flat: int = 0
    breadth_pct: Optional[float] = Field(default=None, alias="breadthPct")
    index_approx: IndexApprox = Field(default_factory=IndexApprox, alias="indexApprox")
    total_turnover: Optional[float] = Field(default=None, alias="totalTurnover")
    turnover_coverage: int = Field(default=0, alias="turnoverCoverage")
    top_gainers: List[Mover] = Field(default_factory=list, alias="topGainers")
    top_losers: List[Mover] = Field(default_factory=list, alias="topLosers")
    generated_at: Optional[datetime] = Field(default=None, alias="generatedAt")
