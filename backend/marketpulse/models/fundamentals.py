from dataclasses import dataclass
from typing import Any, Optional

from marketpulse.models.base import first_float, normalize_code

MARKET_CAP_FIELDS = ("marketCap", "marketCapAud", "market_cap", "marketcap", "mktCap")
INDEX_MEMBER_FIELDS = ("indexMember", "inAsx200", "asx200", "asx200Member", "asx200_member")
INDEX_NAME = "ASX200"
DEFAULT_SECTOR = "Other"


def normalize_sector(value: Any) -> str:
    text = "" if value is None else str(value).strip()
    if not text or text.upper() == "N/A":
        return DEFAULT_SECTOR
    return text


def to_index_flag(value: Any) -> bool:
    """Accepts 1, "1", True and "true"; everything else is False."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true")
    return False


@dataclass(frozen=True)
class FundamentalsRecord:
    """Latest-known reference data for one instrument."""
    code: str
    sector: str = DEFAULT_SECTOR
    market_cap: Optional[float] = None
    index_member: bool = False

    @property
    def has_market_cap(self) -> bool:
        return self.market_cap is not None and self.market_cap > 0

    @classmethod
    def from_raw(cls, raw: Any) -> Optional["FundamentalsRecord"]:
        if not isinstance(raw, dict):
            return None
        code = normalize_code(raw.get("code"))
        if code is None:
            return None

        index_member = any(to_index_flag(raw.get(name)) for name in INDEX_MEMBER_FIELDS)
        if not index_member and str(raw.get("index") or "").upper() == INDEX_NAME:
            index_member = True

        return cls(
            code=code,
            sector=normalize_sector(raw.get("sector")),
            market_cap=first_float(raw, *MARKET_CAP_FIELDS),
            index_member=index_member,
        )
