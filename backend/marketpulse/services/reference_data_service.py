import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from marketpulse.core.metrics import metrics
from marketpulse.core.redis import StoreKeys
from marketpulse.models.base import extract_rows
from marketpulse.models.fundamentals import FundamentalsRecord
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)

PART_KEY_FIELDS = ("parts", "partKeys")


@dataclass
class ReferenceLoadReport:
    """What the last fundamentals load found."""
    mode: str = "missing"          # "single", "parts" or "missing"
    records: int = 0
    parts_expected: int = 0
    parts_loaded: int = 0
    missing_parts: list[str] = field(default_factory=list)

    @property
    def degraded(self) -> bool:
        return self.records == 0 or bool(self.missing_parts)


class ReferenceDataService:
    """
    Resolve the fundamentals reference table into one code -> record map.

    The table is stored either as a single items document or, when too large for
    one value, as a manifest listing partition keys.
    """

    def __init__(self, store: SnapshotStore, keys: Optional[StoreKeys] = None):
        self.store = store
        self.keys = keys or StoreKeys()
        self.last_load = ReferenceLoadReport()

    def load_fundamentals(self) -> dict[str, FundamentalsRecord]:
        report = ReferenceLoadReport()
        items = self._load_items(report)

        fundamentals: dict[str, FundamentalsRecord] = {}
        for raw in items:
            record = FundamentalsRecord.from_raw(raw)
            if record is not None:
                # Last record seen for a code wins
                fundamentals[record.code] = record

        report.records = len(fundamentals)
        self.last_load = report

        if report.degraded:
            logger.warning(
                "Fundamentals degraded: mode=%s records=%s missing_parts=%s",
                report.mode,
                report.records,
                len(report.missing_parts),
            )
            metrics.degraded_input(
                "fundamentals",
                {
                    "mode": report.mode,
                    "records": report.records,
                    "missing_parts": len(report.missing_parts),
                },
            )
        else:
            logger.info("Loaded %s fundamentals records (%s)", report.records, report.mode)

        return fundamentals

    def _load_items(self, report: ReferenceLoadReport) -> list[Any]:
        manifest = self.store.get_json(self.keys.fundamentals)
        if manifest is None:
            logger.warning("No fundamentals document at %s", self.keys.fundamentals)
            return []

        items = extract_rows(manifest)
        if items is not None:
            report.mode = "single"
            return items

        part_keys = self._part_keys(manifest)
        if not part_keys:
            logger.warning("Fundamentals document has neither items nor part keys")
            return []

        report.mode = "parts"
        report.parts_expected = len(part_keys)
        merged: list[Any] = []
        for key in part_keys:
            part_items = extract_rows(self.store.get_json(key))
            if part_items is None:
                logger.warning("Missing or malformed fundamentals part %s", key)
                report.missing_parts.append(key)
                continue
            report.parts_loaded += 1
            merged.extend(part_items)
        return merged

    def _part_keys(self, manifest: Any) -> list[str]:
        if not isinstance(manifest, dict):
            return []
        for name in PART_KEY_FIELDS:
            keys = manifest.get(name)
            if isinstance(keys, list):
                return [str(k) for k in keys if k]
        return []
