import math
import re
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict

_EXCHANGE_SUFFIX = re.compile(r"\.[A-Z0-9]{1,6}$", re.IGNORECASE)
_YMD = re.compile(r"^\d{4}-\d{2}-\d{2}")


def coerce_float(value: Any) -> Optional[float]:
    """Return a finite float, or None for missing, boolean or non-numeric input."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float, Decimal)):
        result = float(value)
    elif isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            result = float(text)
        except ValueError:
            return None
    else:
        return None
    return result if math.isfinite(result) else None


def first_float(raw: dict, *fields: str) -> Optional[float]:
    """First present field in ``fields`` coerced to float (later fields are fallbacks)."""
    for name in fields:
        if raw.get(name) is not None:
            return coerce_float(raw[name])
    return None


def normalize_code(value: Any) -> Optional[str]:
    """'bhp.ax ' -> 'BHP'."""
    if value is None:
        return None
    code = _EXCHANGE_SUFFIX.sub("", str(value).strip()).upper()
    return code or None


def parse_ymd(value: Any) -> Optional[date]:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not _YMD.match(text):
        return None
    try:
        return date.fromisoformat(text[:10])
    except ValueError:
        return None


def extract_rows(document: Any) -> Optional[list]:
    """Rows of a stored snapshot: a bare array, or an object carrying ``items``/``rows``."""
    if isinstance(document, list):
        return document
    if isinstance(document, dict):
        for field in ("items", "rows"):
            if isinstance(document.get(field), list):
                return document[field]
    return None


class DocumentModel(BaseModel):
    """Base for documents persisted to the snapshot store (camelCase keys)."""

    model_config = ConfigDict(populate_by_name=True)

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)
