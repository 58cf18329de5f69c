import logging

from marketpulse.scheduler.celery_app import app
from marketpulse.services.market_pulse_service import MarketPulseService
from marketpulse.services.store import get_snapshot_store

logger = logging.getLogger(__name__)


@app.task(name="marketpulse.tasks.market_pulse.build_market_pulse")
def build_market_pulse() -> dict[str, object]:
    """
    Build the market pulse for the latest price snapshot.
    A not_ready status means the snapshot has not landed yet; retry later.
    """
    service = MarketPulseService(get_snapshot_store())
    result = service.run_latest()

    if result.ready:
        logger.info(
            "Market pulse %s for %s (writes=%s)",
            result.status,
            result.as_of_date,
            result.writes,
        )

    payload = result.to_dict()
    payload.pop("pulse", None)
    return payload
