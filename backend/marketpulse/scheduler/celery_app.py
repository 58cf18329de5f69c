from celery import Celery

from marketpulse.core.config import settings
from marketpulse.core.logging import setup_logging
from marketpulse.core.metrics import metrics
from marketpulse.core.redis import get_redis

setup_logging()

# Publish metric events next to the artifacts they describe
if settings.STORE_BACKEND == "redis":
    metrics.set_redis(get_redis())

app = Celery(
    "marketpulse",
    include=[
        "marketpulse.tasks.market_pulse",
        "marketpulse.tasks.sector_snapshot",
        "marketpulse.tasks.backfill",
        "marketpulse.tasks.pulse_windows",
    ],
)
app.conf.broker_url = settings.CELERY_BROKER_URL
app.conf.result_backend = settings.CELERY_RESULT_BACKEND
app.conf.timezone = settings.CELERY_TIMEZONE
app.conf.enable_utc = False
