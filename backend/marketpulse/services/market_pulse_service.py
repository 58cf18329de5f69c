import logging
from datetime import date, datetime, timezone
from typing import Optional, Sequence

from marketpulse.core.config import settings
from marketpulse.core.metrics import metrics
from marketpulse.core.redis import StoreKeys
from marketpulse.engine.breadth import aggregate_breadth, compute_pct_changes
from marketpulse.engine.index_approximator import approximate_index, rank_movers
from marketpulse.models.daily_pulse import DailyPulse
from marketpulse.models.fundamentals import FundamentalsRecord
from marketpulse.models.price_row import PriceRow
from marketpulse.services.previous_close_resolver import PreviousCloseResolver, PreviousCloses
from marketpulse.services.price_snapshot_service import PriceSnapshot, PriceSnapshotService
from marketpulse.services.reference_data_service import ReferenceDataService
from marketpulse.services.run_result import RunResult, set_member, write_artifact
from marketpulse.services.store import SnapshotStore

logger = logging.getLogger(__name__)


def compute_daily_pulse(
    as_of_date: date,
    rows: Sequence[PriceRow],
    previous: PreviousCloses,
    fundamentals: dict[str, FundamentalsRecord],
    top_movers: int = 5,
) -> DailyPulse:
    """
    Breadth, turnover, index approximation and movers from one pass of percent changes.
    generated_at is left unset so the result depends only on its inputs.
    """
    pcts = compute_pct_changes(rows, previous.closes)
    breadth = aggregate_breadth(rows, previous.closes, pcts)
    gainers, losers = rank_movers(rows, pcts, limit=top_movers)

    return DailyPulse(
        as_of_date=as_of_date,
        prev_date_used=previous.prev_date_used,
        universe_count=len(rows),
        advancers=breadth.advancers,
        decliners=breadth.decliners,
        flat=breadth.flat,
        breadth_pct=breadth.breadth_pct,
        index_approx=approximate_index(rows, pcts, fundamentals),
        total_turnover=breadth.total_turnover,
        turnover_coverage=breadth.turnover_coverage,
        top_gainers=gainers,
        top_losers=losers,
    )


class MarketPulseService:
    """Build and persist the daily market pulse."""

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

    def run_latest(self) -> RunResult:
        """Pulse for the latest stored snapshot."""
        return self._run(self.snapshots.load_latest())

    def run_for_date(
        self,
        day: date,
        fundamentals: Optional[dict[str, FundamentalsRecord]] = None,
        persist: bool = True,
    ) -> RunResult:
        return self._run(self.snapshots.load(day), fundamentals, persist)

    def _run(
        self,
        snapshot: PriceSnapshot,
        fundamentals: Optional[dict[str, FundamentalsRecord]] = None,
        persist: bool = True,
    ) -> RunResult:
        if not snapshot.ready:
            return RunResult.not_ready(snapshot.reason, snapshot.as_of_date)

        as_of_date = snapshot.as_of_date
        previous = self.resolver.resolve(as_of_date)
        if fundamentals is None:
            fundamentals = self.reference.load_fundamentals()

        pulse = compute_daily_pulse(
            as_of_date,
            snapshot.rows,
            previous,
            fundamentals,
            top_movers=settings.TOP_MOVERS_LIMIT,
        )
        pulse.generated_at = datetime.now(timezone.utc)

        metrics.pulse_computed(
            as_of_date.isoformat(),
            pulse.universe_count,
            pulse.breadth_pct,
            pulse.index_approx.constituents_used,
            pulse.turnover_coverage,
        )

        writes: dict[str, bool] = {}
        if persist:
            writes = self.persist(pulse)

        return RunResult.from_writes(
            as_of_date,
            writes,
            prev_date_used=previous.prev_date_used.isoformat() if previous.prev_date_used else None,
            universe_count=pulse.universe_count,
            constituents_used=pulse.index_approx.constituents_used,
            pulse=pulse.to_document(),
        )

    def persist(self, pulse: DailyPulse) -> dict[str, bool]:
        writes: dict[str, bool] = {}
        day = pulse.as_of_date
        if write_artifact(
            self.store, writes, "pulse", self.keys.pulse_day(day), pulse.to_document(), day
        ):
            write_artifact(
                self.store, writes, "pulse_dates", self.keys.pulse_dates,
                set_member(day.isoformat()), day,
            )
        return writes
