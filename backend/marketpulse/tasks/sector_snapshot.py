from datetime import date
import logging

from marketpulse.scheduler.celery_app import app
from marketpulse.services.sector_snapshot_service import SectorSnapshotService
from marketpulse.services.store import get_snapshot_store

logger = logging.getLogger(__name__)


@app.task(name="marketpulse.tasks.sector_snapshot.build_sector_day")
def build_sector_day(day: str | None = None) -> dict[str, object]:
    """Build the sector snapshot for ``day`` (YYYY-MM-DD) or the latest price snapshot."""
    as_of_date = date.fromisoformat(day) if day else None
    result = SectorSnapshotService(get_snapshot_store()).run(as_of_date)

    if result.ready:
        logger.info(
            "Sector snapshot %s for %s (writes=%s)",
            result.status,
            result.as_of_date,
            result.writes,
        )
    return result.to_dict()
