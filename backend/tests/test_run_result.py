"""Run outcomes and metric emission."""
from datetime import date

from marketpulse.core.metrics import MetricsEmitter
from marketpulse.services.run_result import (
    STATUS_COMPLETED,
    STATUS_FAILED,
    STATUS_PARTIAL,
    RunResult,
    set_member,
    write_artifact,
)
from marketpulse.services.store import InMemorySnapshotStore, StoreError


def test_status_from_writes():
    assert RunResult.from_writes(None, {}).status == STATUS_COMPLETED
    assert RunResult.from_writes(None, {"a": True, "b": True}).status == STATUS_COMPLETED
    assert RunResult.from_writes(None, {"a": True, "b": False}).status == STATUS_PARTIAL
    assert RunResult.from_writes(None, {"a": False}).status == STATUS_FAILED


def test_to_dict_flattens_details():
    result = RunResult.from_writes(date(2024, 5, 2), {"pulse": True}, universe_count=3)

    assert result.to_dict() == {
        "status": "completed",
        "date": "2024-05-02",
        "reason": None,
        "writes": {"pulse": True},
        "universe_count": 3,
    }


def test_write_artifact_records_each_outcome():
    class _NoSets(InMemorySnapshotStore):
        def add_to_set(self, key, member):
            raise StoreError("no sets")

    store = _NoSets()
    writes: dict[str, bool] = {}

    assert write_artifact(store, writes, "doc", "k:doc", {"a": 1})
    assert write_artifact(store, writes, "pointer", "k:ptr", "2024-05-02")
    assert not write_artifact(store, writes, "dates", "k:set", set_member("2024-05-02"))

    assert writes == {"doc": True, "pointer": True, "dates": False}
    assert store.get_json("k:doc") == {"a": 1}
    assert store.get_str("k:ptr") == "2024-05-02"


def test_metrics_count_events_by_name():
    emitter = MetricsEmitter()
    emitter.pulse_computed("2024-05-02", 210, 55.0, 180, 200)
    emitter.input_not_ready("no latest price snapshot")
    emitter.input_not_ready("price snapshot for 2024-05-03 too small (3 rows)")
    emitter.artifact_write_failed("pulse", "asx:market:pulse:day:2024-05-02")

    counts = emitter.counts()

    assert counts["pulse/computed"] == 1
    assert counts["input/not_ready"] == 2
    assert counts["store/write_failed"] == 1
    assert emitter.get_buffer()[0].as_of == "2024-05-02"
    assert emitter.clear_buffer() == 4


def test_metrics_buffer_is_bounded():
    emitter = MetricsEmitter(buffer_size=2)
    for day in ("2024-05-01", "2024-05-02", "2024-05-03"):
        emitter.input_not_ready("missing", as_of=day)

    assert [e.as_of for e in emitter.get_buffer()] == ["2024-05-02", "2024-05-03"]


def test_disabled_metrics_emit_nothing():
    emitter = MetricsEmitter()
    emitter.disable()

    assert emitter.input_not_ready("missing") is None
    assert emitter.get_buffer() == []
