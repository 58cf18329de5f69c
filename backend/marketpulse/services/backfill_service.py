import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Optional

from marketpulse.core.config import settings
from marketpulse.core.metrics import metrics
from marketpulse.core.redis import StoreKeys
from marketpulse.engine.sector_index import levels_from_document, sector_levels
from marketpulse.models.base import parse_ymd
from marketpulse.services.market_pulse_service import MarketPulseService
from marketpulse.services.run_result import STATUS_COMPLETED, write_artifact
from marketpulse.services.sector_snapshot_service import SectorSnapshotService
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class BackfillReport:
    kind: str
    dates_found: int = 0
    dates_in_range: int = 0
    computed: int = 0
    skipped_existing: int = 0
    skipped_not_ready: int = 0
    failed: int = 0
    last_date: Optional[date] = None
    truncated: bool = False
    failures: list[str] = field(default_factory=list)
    levels: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "dates_found": self.dates_found,
            "dates_in_range": self.dates_in_range,
            "computed": self.computed,
            "skipped_existing": self.skipped_existing,
            "skipped_not_ready": self.skipped_not_ready,
            "failed": self.failed,
            "last_date": self.last_date.isoformat() if self.last_date else None,
            "truncated": self.truncated,
            "failures": self.failures[:20],
        }


class BackfillService:
    """
    Re-derive sector snapshots and daily pulses over stored price history.

    Dates are processed in ascending order with sector levels threaded through a
    rolling map, so the final levels match what daily runs would have produced.
    """

    def __init__(
        self,
        store: SnapshotStore,
        keys: Optional[StoreKeys] = None,
        min_rows: Optional[int] = None,
    ):
        self.store = store
        self.keys = keys or StoreKeys()
        self.sectors = SectorSnapshotService(store, self.keys, min_rows=min_rows)
        self.pulse = MarketPulseService(store, self.keys, min_rows=min_rows)
        self.snapshots = self.sectors.snapshots
        self.resolver = self.sectors.resolver
        self.reference = self.sectors.reference

    def _dates_in_range(
        self,
        report: BackfillReport,
        start: Optional[date],
        end: Optional[date],
        known_dates_key: str,
    ) -> list[date]:
        # Snapshot keys on disk plus dates already recorded for the artifact
        dates = set(self.snapshots.available_dates())
        dates.update(
            d for d in map(parse_ymd, self.store.set_members(known_dates_key)) if d is not None
        )
        report.dates_found = len(dates)
        selected = sorted(
            d for d in dates if (start is None or d >= start) and (end is None or d <= end)
        )
        report.dates_in_range = len(selected)
        return selected

    def _prior_levels(
        self, history: dict[date, dict[str, float]], day: date, prev_date: Optional[date]
    ) -> dict[str, float]:
        """Levels as of ``prev_date`` from this run, else from stored snapshots."""
        cutoff = prev_date if prev_date is not None else day - timedelta(days=1)
        earlier = [d for d in history if d <= cutoff and history[d]]
        if earlier:
            return dict(history[max(earlier)])
        levels, seeded_from = self.sectors.load_prior_levels(day, prev_date)
        if seeded_from:
            logger.info("Sector levels for %s seeded from %s", day, seeded_from)
        return levels

    def backfill_sectors(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        limit: Optional[int] = None,
        force: bool = False,
    ) -> BackfillReport:
        report = BackfillReport(kind="sectors")
        limit = settings.BACKFILL_MAX_DAYS if limit is None else limit
        dates = self._dates_in_range(report, start, end, self.keys.sector_dates)
        if not dates:
            logger.warning("No price snapshot dates found for sector backfill")
            return report

        fundamentals = self.reference.load_fundamentals()
        # Levels per processed date; each day chains onto its previous-close day
        history: dict[date, dict[str, float]] = {}

        for day in dates:
            sector_key = self.keys.sector_day(day)
            if not force and self.store.exists(sector_key):
                history[day] = levels_from_document(self.store.get_json(sector_key))
                report.skipped_existing += 1
                report.last_date = day
                continue

            if report.computed >= limit:
                report.truncated = True
                break

            snapshot = self.snapshots.load(day)
            if not snapshot.ready:
                logger.info("Skipping %s: %s", day, snapshot.reason)
                report.skipped_not_ready += 1
                continue

            previous = self.resolver.resolve(day)
            prior_levels = self._prior_levels(history, day, previous.prev_date_used)
            sector_snapshot = self.sectors.build(
                day, snapshot.rows, previous, fundamentals, prior_levels
            )
            history[day] = sector_levels(sector_snapshot)
            report.computed += 1

            writes = self.sectors.persist(sector_snapshot)
            if all(writes.values()):
                report.last_date = day
            else:
                report.failed += 1
                report.failures.append(f"{day}: {sorted(k for k, ok in writes.items() if not ok)}")

        self._advance_sector_latest(report.last_date)
        if history:
            report.levels = dict(history[max(history)])
        metrics.backfill_completed(
            "sectors", report.computed, report.skipped_existing, report.failed
        )
        logger.info(
            "Sector backfill: computed=%s skipped_existing=%s failed=%s last=%s",
            report.computed,
            report.skipped_existing,
            report.failed,
            report.last_date,
        )
        return report

    def _advance_sector_latest(self, last_date: Optional[date]) -> None:
        if last_date is None:
            return
        current = parse_ymd(self.store.get_str(self.keys.sector_latest))
        if current is not None and current > last_date:
            return
        write_artifact(
            self.store, {}, "sector_latest", self.keys.sector_latest, last_date.isoformat(), last_date
        )

    def backfill_pulse(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        force: bool = False,
        dry_run: bool = False,
    ) -> BackfillReport:
        report = BackfillReport(kind="pulse")
        dates = self._dates_in_range(report, start, end, self.keys.pulse_dates)
        if not dates:
            logger.warning("No price snapshot dates found for pulse backfill")
            return report

        fundamentals = self.reference.load_fundamentals()
        for day in dates:
            if not force and self.store.exists(self.keys.pulse_day(day)):
                report.skipped_existing += 1
                continue

            result = self.pulse.run_for_date(day, fundamentals=fundamentals, persist=not dry_run)
            if not result.ready:
                report.skipped_not_ready += 1
                continue

            report.computed += 1
            if result.status == STATUS_COMPLETED:
                report.last_date = day
            else:
                report.failed += 1
                report.failures.append(f"{day}: {result.status}")

        metrics.backfill_completed("pulse", report.computed, report.skipped_existing, report.failed)
        logger.info(
            "Pulse backfill%s: computed=%s skipped_existing=%s failed=%s",
            " (dry run)" if dry_run else "",
            report.computed,
            report.skipped_existing,
            report.failed,
        )
        return report
