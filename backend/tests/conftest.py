import pytest

from marketpulse.core.metrics import metrics
from marketpulse.core.redis import StoreKeys
from marketpulse.services.store import InMemorySnapshotStore


@pytest.fixture(autouse=True)
def quiet_metrics():
    metrics.disable()
    metrics.clear_buffer()
    yield
    metrics.enable()
    metrics.clear_buffer()


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def keys() -> StoreKeys:
    return StoreKeys(prefix="asx")
