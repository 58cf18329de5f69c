from datetime import date
import logging

from marketpulse.scheduler.celery_app import app
from marketpulse.services.backfill_service import BackfillService
from marketpulse.services.store import get_snapshot_store

logger = logging.getLogger(__name__)


def _parse(day: str | None) -> date | None:
    return date.fromisoformat(day) if day else None


@app.task(name="marketpulse.tasks.backfill.backfill_sector_snapshots")
def backfill_sector_snapshots(
    start: str | None = None,
    end: str | None = None,
    limit: int | None = None,
    force: bool = False,
) -> dict[str, object]:
    """Replay sector snapshots over stored price history in date order."""
    report = BackfillService(get_snapshot_store()).backfill_sectors(
        start=_parse(start), end=_parse(end), limit=limit, force=force
    )
    if report.truncated:
        logger.warning("Sector backfill hit limit=%s; re-run to continue", limit)
    return {"status": "completed", **report.to_dict()}


@app.task(name="marketpulse.tasks.backfill.backfill_market_pulse")
def backfill_market_pulse(
    start: str | None = None,
    end: str | None = None,
    force: bool = False,
    dry_run: bool = False,
) -> dict[str, object]:
    """Re-derive daily pulses for stored price snapshots."""
    report = BackfillService(get_snapshot_store()).backfill_pulse(
        start=_parse(start), end=_parse(end), force=force, dry_run=dry_run
    )
    return {"status": "completed", "dry_run": dry_run, **report.to_dict()}
