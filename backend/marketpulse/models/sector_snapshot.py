from datetime import date, datetime
from typing import List, Optional

from pydantic import Field

from marketpulse.models.base import DocumentModel


class SectorCoverage(DocumentModel):
    stocks: int = 0
    mcap: float = 0.0


class SectorEntry(DocumentModel):
    """
    One sector on one day.
    level is chained: previous level * (1 + ret1d), carried unchanged when ret1d is None.
    """
    sector: str
    ret1d: Optional[float] = None
    level: float
    coverage: SectorCoverage = Field(default_factory=SectorCoverage)


class SectorSnapshot(DocumentModel):
    snapshot_date: date = Field(alias="date")
    prev_date: Optional[date] = Field(default=None, alias="prevDate")
    method: str = "mcap_weighted"
    used_stocks: int = Field(default=0, alias="usedStocks")
    sectors: List[SectorEntry] = Field(default_factory=list)
    generated_at: Optional[datetime] = Field(default=None, alias="generatedAt")
