# Inputs
from marketpulse.models.price_row import PriceRow, parse_price_rows
from marketpulse.models.fundamentals import FundamentalsRecord

# Persisted documents
from marketpulse.models.daily_pulse import DailyPulse, IndexApprox, Mover
from marketpulse.models.sector_snapshot import SectorCoverage, SectorEntry, SectorSnapshot
from marketpulse.models.pulse_window import PulseWindow

__all__ = [
    "PriceRow",
    "parse_price_rows",
    "FundamentalsRecord",
    "DailyPulse",
    "IndexApprox",
    "Mover",
    "SectorCoverage",
    "SectorEntry",
    "SectorSnapshot",
    "PulseWindow",
]
