"""Sector snapshot runs, persistence and backfill replay."""
from datetime import date

import pytest

from marketpulse.engine.sector_index import levels_from_document
from marketpulse.services.backfill_service import BackfillService
from marketpulse.services.run_result import STATUS_COMPLETED, STATUS_NOT_READY
from marketpulse.services.sector_snapshot_service import SectorSnapshotService
from marketpulse.services.store import InMemorySnapshotStore, StoreError

# Wed, Thu, Fri, then Monday after a weekend
DAYS = [date(2024, 5, 1), date(2024, 5, 2), date(2024, 5, 3), date(2024, 5, 6)]
CLOSES = {
    "AAA": [100.0, 110.0, 121.0, 108.9],
    "BBB": [50.0, 50.0, 55.0, 60.5],
    "CCC": [20.0, 19.0, 19.0, 20.0],
}
FUNDAMENTALS = [
    {"code": "AAA", "sector": "Tech", "marketCap": 1000},
    {"code": "BBB", "sector": "Energy", "marketCap": 500},
    {"code": "CCC", "sector": "Energy", "marketCap": 1500},
]


def _seed(store, keys, days=DAYS):
    for i, day in enumerate(DAYS):
        if day not in days:
            continue
        items = [{"code": code, "close": closes[i], "volume": 100} for code, closes in CLOSES.items()]
        store.set_json(keys.eod(day), {"date": day.isoformat(), "items": items})
    store.set_json(keys.fundamentals, {"items": FUNDAMENTALS})


def _levels(store, keys, day):
    return levels_from_document(store.get_json(keys.sector_day(day)))


def _run_daily(store, keys):
    service = SectorSnapshotService(store, keys, min_rows=0)
    return [service.run(day) for day in DAYS]


def test_daily_run_writes_snapshot_date_set_and_latest(store, keys):
    _seed(store, keys)
    service = SectorSnapshotService(store, keys, min_rows=0)

    service.run(DAYS[0])
    result = service.run(DAYS[1])

    assert result.status == STATUS_COMPLETED
    assert result.writes == {"sector_snapshot": True, "sector_dates": True, "sector_latest": True}
    document = store.get_json(keys.sector_day(DAYS[1]))
    assert document["date"] == "2024-05-02"
    assert document["prevDate"] == "2024-05-01"
    assert document["method"] == "mcap_weighted"
    assert document["usedStocks"] == 3
    assert [s["sector"] for s in document["sectors"]] == ["Tech", "Energy"]
    assert _levels(store, keys, DAYS[1]) == pytest.approx({"Tech": 110.0, "Energy": 96.25})
    assert store.get_str(keys.sector_latest) == "2024-05-02"
    assert store.set_members(keys.sector_dates) == {"2024-05-01", "2024-05-02"}


def test_first_day_without_previous_close_has_no_sectors(store, keys):
    _seed(store, keys)

    result = SectorSnapshotService(store, keys, min_rows=0).run(DAYS[0])

    assert result.status == STATUS_COMPLETED
    assert result.details["prev_date"] is None
    assert store.get_json(keys.sector_day(DAYS[0]))["sectors"] == []


def test_rerunning_a_day_is_idempotent(store, keys):
    _seed(store, keys)
    service = SectorSnapshotService(store, keys, min_rows=0)
    for day in DAYS[:3]:
        service.run(day)
    first = _levels(store, keys, DAYS[2])

    service.run(DAYS[2])
    service.run(DAYS[2])

    assert _levels(store, keys, DAYS[2]) == first


def test_levels_chain_across_weekend(store, keys):
    _seed(store, keys)

    results = _run_daily(store, keys)

    assert results[-1].details["prev_date"] == "2024-05-03"
    assert _levels(store, keys, DAYS[-1])["Tech"] == pytest.approx(100.0 * 1.1 * 1.1 * 0.9)


def test_latest_pointer_never_moves_back(store, keys):
    _seed(store, keys)
    service = SectorSnapshotService(store, keys, min_rows=0)
    service.run(DAYS[2])

    result = service.run(DAYS[1])

    assert "sector_latest" not in result.writes
    assert store.get_str(keys.sector_latest) == "2024-05-03"


def test_missing_day_is_not_ready(store, keys):
    _seed(store, keys)

    result = SectorSnapshotService(store, keys, min_rows=0).run(date(2024, 5, 7))

    assert result.status == STATUS_NOT_READY
    assert not store.exists(keys.sector_day(date(2024, 5, 7)))


def test_failed_snapshot_write_leaves_pointers_alone(keys):
    class _ReadOnlyStore(InMemorySnapshotStore):
        def set_raw(self, key, value):
            if key.startswith("asx:sectors:"):
                raise StoreError("read only")
            super().set_raw(key, value)

    store = _ReadOnlyStore()
    _seed(store, keys)

    result = SectorSnapshotService(store, keys, min_rows=0).run(DAYS[1])

    assert result.writes == {"sector_snapshot": False}
    assert store.set_members(keys.sector_dates) == set()


def test_backfill_matches_daily_runs(keys):
    daily = InMemorySnapshotStore()
    _seed(daily, keys)
    _run_daily(daily, keys)

    replayed = InMemorySnapshotStore()
    _seed(replayed, keys)
    report = BackfillService(replayed, keys, min_rows=0).backfill_sectors()

    assert report.computed == len(DAYS)
    assert report.last_date == DAYS[-1]
    for day in DAYS:
        assert _levels(replayed, keys, day) == pytest.approx(_levels(daily, keys, day))
    assert report.levels == pytest.approx(_levels(daily, keys, DAYS[-1]))
    assert replayed.get_str(keys.sector_latest) == "2024-05-06"
    assert replayed.set_members(keys.sector_dates) == {d.isoformat() for d in DAYS}


def test_backfill_absorbs_existing_snapshots(store, keys):
    _seed(store, keys)
    service = SectorSnapshotService(store, keys, min_rows=0)
    service.run(DAYS[0])
    service.run(DAYS[1])
    store.set_json(
        keys.sector_day(DAYS[1]),
        {"date": "2024-05-02", "sectors": [{"sector": "Tech", "ret1d": 0.1, "level": 200.0}]},
    )

    report = BackfillService(store, keys, min_rows=0).backfill_sectors()

    assert report.skipped_existing == 2
    assert report.computed == 2
    assert _levels(store, keys, DAYS[2])["Tech"] == pytest.approx(220.0)


def test_backfill_force_recomputes_existing(store, keys):
    _seed(store, keys)
    store.set_json(
        keys.sector_day(DAYS[1]),
        {"date": "2024-05-02", "sectors": [{"sector": "Tech", "ret1d": 0.1, "level": 200.0}]},
    )

    report = BackfillService(store, keys, min_rows=0).backfill_sectors(force=True)

    assert report.skipped_existing == 0
    assert _levels(store, keys, DAYS[1])["Tech"] == pytest.approx(110.0)


def test_backfill_stops_at_limit(store, keys):
    _seed(store, keys)

    report = BackfillService(store, keys, min_rows=0).backfill_sectors(limit=2)

    assert report.computed == 2
    assert report.truncated
    assert report.last_date == DAYS[1]
    assert store.get_str(keys.sector_latest) == "2024-05-02"
    assert not store.exists(keys.sector_day(DAYS[2]))


def test_backfill_range_seeds_from_earlier_snapshot(store, keys):
    _seed(store, keys)
    service = SectorSnapshotService(store, keys, min_rows=0)
    service.run(DAYS[0])
    service.run(DAYS[1])

    report = BackfillService(store, keys, min_rows=0).backfill_sectors(start=DAYS[2])

    assert report.dates_in_range == 2
    assert _levels(store, keys, DAYS[-1])["Tech"] == pytest.approx(100.0 * 1.1 * 1.1 * 0.9)


def test_pulse_backfill_skips_existing_days(store, keys):
    _seed(store, keys)
    service = BackfillService(store, keys, min_rows=0)

    first = service.backfill_pulse()
    second = service.backfill_pulse()

    assert first.computed == len(DAYS)
    assert second.computed == 0
    assert second.skipped_existing == len(DAYS)
    assert store.set_members(keys.pulse_dates) == {d.isoformat() for d in DAYS}


def test_pulse_backfill_dry_run_writes_nothing(store, keys):
    _seed(store, keys)

    report = BackfillService(store, keys, min_rows=0).backfill_pulse(dry_run=True)

    assert report.computed == len(DAYS)
    assert not store.exists(keys.pulse_dates)


def _seed_tech_days(store, keys, closes_by_day):
    for day, closes in closes_by_day.items():
        items = [{"code": code, "close": close} for code, close in closes.items()]
        store.set_json(keys.eod(day), {"date": day.isoformat(), "items": items})
    store.set_json(
        keys.fundamentals,
        {"items": [{"code": c, "sector": "Tech", "marketCap": 100} for c in ("AAA", "BBB", "CCC")]},
    )


# 2024-05-02 is computable (three rows) but has too few closes to be a base
SPARSE_MIDDLE_DAY = {
    date(2024, 4, 30): {"AAA": 100.0, "BBB": 100.0, "CCC": 100.0},
    DAYS[0]: {"AAA": 100.0, "BBB": 100.0, "CCC": 100.0},
    DAYS[1]: {"AAA": 110.0, "BBB": 110.0, "CCC": None},
    DAYS[2]: {"AAA": 110.0, "BBB": 110.0, "CCC": 110.0},
}


def test_day_after_unusable_base_chains_from_its_previous_close_day(store, keys):
    _seed_tech_days(store, keys, SPARSE_MIDDLE_DAY)
    service = SectorSnapshotService(store, keys, min_rows=3)

    results = [service.run(day) for day in SPARSE_MIDDLE_DAY]

    assert _levels(store, keys, DAYS[1]) == pytest.approx({"Tech": 110.0})
    assert results[-1].details["prev_date"] == "2024-05-01"
    assert results[-1].details["levels_seeded_from"] == "2024-05-01"
    assert _levels(store, keys, DAYS[2]) == pytest.approx({"Tech": 110.0})


def test_backfill_chains_from_previous_close_day(store, keys):
    _seed_tech_days(store, keys, SPARSE_MIDDLE_DAY)

    report = BackfillService(store, keys, min_rows=3).backfill_sectors()

    assert report.computed == 4
    assert _levels(store, keys, DAYS[2]) == pytest.approx({"Tech": 110.0})
    assert report.levels == pytest.approx({"Tech": 110.0})


def test_day_with_exactly_min_rows_is_a_base(store, keys):
    _seed_tech_days(
        store,
        keys,
        {
            DAYS[0]: {"AAA": 100.0, "BBB": 100.0, "CCC": 100.0},
            DAYS[1]: {"AAA": 110.0, "BBB": 110.0},
            DAYS[2]: {"AAA": 110.0, "BBB": 110.0, "CCC": 110.0},
        },
    )
    service = SectorSnapshotService(store, keys, min_rows=2)

    results = [service.run(day) for day in DAYS[:3]]

    assert results[2].details["prev_date"] == "2024-05-02"
    assert _levels(store, keys, DAYS[2]) == pytest.approx({"Tech": 110.0})


def test_backfill_zero_limit_computes_nothing(store, keys):
    _seed(store, keys)

    report = BackfillService(store, keys, min_rows=0).backfill_sectors(limit=0)

    assert report.computed == 0
    assert report.truncated
    assert not store.exists(keys.sector_day(DAYS[0]))


def test_backfill_includes_dates_from_known_date_set(store, keys):
    _seed(store, keys)
    earlier = date(2024, 4, 30)
    store.set_json(keys.pulse_day(earlier), {"asOfDate": earlier.isoformat()})
    store.add_to_set(keys.pulse_dates, earlier.isoformat())

    report = BackfillService(store, keys, min_rows=0).backfill_pulse()

    assert report.dates_found == len(DAYS) + 1
    assert report.skipped_existing == 1
    assert report.computed == len(DAYS)
