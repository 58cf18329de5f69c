from marketpulse.scheduler.celery_app import app
from marketpulse.services.pulse_window_service import PulseWindowService
from marketpulse.services.store import get_snapshot_store


@app.task(name="marketpulse.tasks.pulse_windows.refresh_pulse_windows")
def refresh_pulse_windows() -> dict[str, object]:
    """Precompute 1d / 5d / 1m pulse windows from stored daily pulses."""
    return PulseWindowService(get_snapshot_store()).refresh_windows().to_dict()
