import logging
from datetime import date, datetime, timezone
from typing import Mapping, Optional

from marketpulse.core.config import settings
from marketpulse.core.metrics import metrics
from marketpulse.core.redis import StoreKeys
from marketpulse.engine.sector_index import build_sector_snapshot, levels_from_document
from marketpulse.models.base import parse_ymd
from marketpulse.models.fundamentals import FundamentalsRecord
from marketpulse.models.price_row import PriceRow
from marketpulse.models.sector_snapshot import SectorSnapshot
from marketpulse.services.previous_close_resolver import PreviousCloseResolver, PreviousCloses
from marketpulse.services.price_snapshot_service import PriceSnapshotService
from marketpulse.services.reference_data_service import ReferenceDataService
from marketpulse.services.run_result import RunResult, set_member, write_artifact
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)


class SectorSnapshotService:
    """
    Build the daily sector snapshot and chain it onto stored sector levels.
    """

    def __init__(
        self,
        store: SnapshotStore,
        keys: Optional[StoreKeys] = None,
        min_rows: Optional[int] = None,
    ):
        self.store = store
        self.keys = keys or StoreKeys()
        self.snapshots = PriceSnapshotService(store, self.keys, min_rows=min_rows)
        self.resolver = PreviousCloseResolver(store, self.keys, min_rows=min_rows)
        self.reference = ReferenceDataService(store, self.keys)

    def run(self, as_of_date: Optional[date] = None) -> RunResult:
        """Build and persist the sector snapshot for a date (default: latest price snapshot)."""
        day = as_of_date or self.snapshots.latest_date()
        if day is None:
            return RunResult.not_ready("no date given and no latest price snapshot")

        snapshot = self.snapshots.load(day)
        if not snapshot.ready:
            return RunResult.not_ready(snapshot.reason, day)

        previous = self.resolver.resolve(day)
        fundamentals = self.reference.load_fundamentals()
        prior_levels, seeded_from = self.load_prior_levels(day, previous.prev_date_used)

        sector_snapshot = self.build(day, snapshot.rows, previous, fundamentals, prior_levels)
        writes = self.persist(sector_snapshot)

        return RunResult.from_writes(
            day,
            writes,
            prev_date=previous.prev_date_used.isoformat() if previous.prev_date_used else None,
            levels_seeded_from=seeded_from.isoformat() if seeded_from else None,
            used_stocks=sector_snapshot.used_stocks,
            sectors=len(sector_snapshot.sectors),
        )

    def build(
        self,
        day: date,
        rows: list[PriceRow],
        previous: PreviousCloses,
        fundamentals: Mapping[str, FundamentalsRecord],
        prior_levels: Mapping[str, float],
    ) -> SectorSnapshot:
        sector_snapshot = build_sector_snapshot(
            day,
            previous.prev_date_used,
            rows,
            previous.closes,
            fundamentals,
            prior_levels,
            base_level=settings.SECTOR_BASE_LEVEL,
        )
        sector_snapshot.generated_at = datetime.now(timezone.utc)

        if sector_snapshot.used_stocks < settings.SECTOR_MIN_COVERAGE:
            logger.warning(
                "Sector coverage lower than expected for %s: used=%s",
                day,
                sector_snapshot.used_stocks,
            )
        metrics.sector_snapshot_built(
            day.isoformat(),
            len(sector_snapshot.sectors),
            sector_snapshot.used_stocks,
            previous.prev_date_used.isoformat() if previous.prev_date_used else None,
        )
        return sector_snapshot

    def load_prior_levels(
        self, day: date, prev_date: Optional[date] = None
    ) -> tuple[dict[str, float], Optional[date]]:
        """
        Levels as of the day the returns are measured from.

        Uses the stored snapshot for ``prev_date`` (or the latest stored one before
        it). Without a previous-close day, the latest stored snapshot before ``day``.
        A snapshot between ``prev_date`` and ``day`` already holds part of today's
        move and is never used.
        """
        cutoff = prev_date if prev_date is not None and prev_date < day else None
        known = sorted(
            (
                d for d in (parse_ymd(m) for m in self.store.set_members(self.keys.sector_dates))
                if d is not None and d < day and (cutoff is None or d <= cutoff)
            ),
            reverse=True,
        )
        candidates = list(known)
        if cutoff is not None and cutoff not in candidates:
            candidates.insert(0, cutoff)

        for candidate in candidates:
            levels = levels_from_document(self.store.get_json(self.keys.sector_day(candidate)))
            if levels:
                return levels, candidate

        logger.info("No prior sector levels before %s; sectors start at base level", day)
        return {}, None

    def persist(self, sector_snapshot: SectorSnapshot) -> dict[str, bool]:
        """Write the snapshot, then the latest pointer and date set only if it landed."""
        writes: dict[str, bool] = {}
        day = sector_snapshot.snapshot_date
        if not write_artifact(
            self.store, writes, "sector_snapshot", self.keys.sector_day(day),
            sector_snapshot.to_document(), day,
        ):
            return writes

        write_artifact(
            self.store, writes, "sector_dates", self.keys.sector_dates,
            set_member(day.isoformat()), day,
        )
        current_latest = parse_ymd(self.store.get_str(self.keys.sector_latest))
        if current_latest is None or day >= current_latest:
            write_artifact(
                self.store, writes, "sector_latest", self.keys.sector_latest, day.isoformat(), day
            )
        return writes
