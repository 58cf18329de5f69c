"""Parsing of raw price rows, fundamentals records and stored documents."""
from datetime import date, datetime, timezone

from marketpulse.models import DailyPulse, FundamentalsRecord, PriceRow, SectorSnapshot
from marketpulse.models.base import coerce_float, extract_rows, normalize_code, parse_ymd
from marketpulse.models.daily_pulse import IndexApprox, Mover
from marketpulse.models.price_row import parse_price_rows


def test_coerce_float_rejects_unusable_values():
    assert coerce_float("1,234.5") == 1234.5
    assert coerce_float(7) == 7.0
    assert coerce_float(None) is None
    assert coerce_float("") is None
    assert coerce_float("n/a") is None
    assert coerce_float(True) is None
    assert coerce_float(float("nan")) is None
    assert coerce_float("inf") is None


def test_normalize_code_strips_exchange_suffix():
    assert normalize_code(" bhp.ax ") == "BHP"
    assert normalize_code("CBA") == "CBA"
    assert normalize_code("") is None
    assert normalize_code(None) is None


def test_parse_ymd_accepts_dates_and_timestamps():
    assert parse_ymd("2024-05-02") == date(2024, 5, 2)
    assert parse_ymd("2024-05-02T06:30:00Z") == date(2024, 5, 2)
    assert parse_ymd(datetime(2024, 5, 2, 10, 0)) == date(2024, 5, 2)
    assert parse_ymd("02/05/2024") is None
    assert parse_ymd("2024-13-40") is None


def test_extract_rows_supports_bare_arrays_and_wrappers():
    assert extract_rows([{"code": "A"}]) == [{"code": "A"}]
    assert extract_rows({"items": [1]}) == [1]
    assert extract_rows({"rows": [2]}) == [2]
    assert extract_rows({"date": "2024-05-02"}) is None
    assert extract_rows("nope") is None


def test_price_row_from_raw_keeps_missing_numbers_as_none():
    row = PriceRow.from_raw({"code": "abc.ax", "price": "10.5", "volume": None, "date": "2024-05-02"})

    assert row.code == "ABC"
    assert row.close == 10.5
    assert row.volume is None
    assert row.pct_change is None
    assert row.trade_date == date(2024, 5, 2)


def test_price_row_pct_change_falls_back_across_fields():
    row = PriceRow.from_raw({"code": "ABC", "close": 1, "pctChange": "bad", "changePct": 2.5})
    assert row.pct_change == 2.5


def test_parse_price_rows_drops_codeless_rows_and_keeps_first_duplicate():
    rows = parse_price_rows(
        [
            {"code": "AAA", "close": 1.0},
            {"close": 5.0},
            "garbage",
            {"code": "aaa.ax", "close": 2.0},
            {"code": "BBB", "close": 3.0},
        ]
    )

    assert [(r.code, r.close) for r in rows] == [("AAA", 1.0), ("BBB", 3.0)]


def test_fundamentals_record_defaults_and_aliases():
    record = FundamentalsRecord.from_raw(
        {"code": "XYZ.AX", "sector": " N/A ", "marketCapAud": "2,000", "inAsx200": "true"}
    )

    assert record.code == "XYZ"
    assert record.sector == "Other"
    assert record.market_cap == 2000.0
    assert record.index_member is True
    assert record.has_market_cap


def test_fundamentals_index_flag_variants():
    assert FundamentalsRecord.from_raw({"code": "A", "asx200": 1}).index_member
    assert FundamentalsRecord.from_raw({"code": "A", "index": "asx200"}).index_member
    assert not FundamentalsRecord.from_raw({"code": "A", "asx200": 2}).index_member
    assert not FundamentalsRecord.from_raw({"code": "A", "asx200": "yes"}).index_member
    assert not FundamentalsRecord.from_raw({"code": "A", "marketCap": 0}).has_market_cap


def test_daily_pulse_document_uses_camel_case_keys():
    pulse = DailyPulse(
        as_of_date=date(2024, 5, 2),
        prev_date_used=None,
        universe_count=3,
        index_approx=IndexApprox(pct=None, constituents_used=0),
        top_gainers=[Mover(code="AAA", pct=1.5)],
        generated_at=datetime(2024, 5, 2, 7, 0, tzinfo=timezone.utc),
    )

    document = pulse.to_document()

    assert document["asOfDate"] == "2024-05-02"
    assert document["prevDateUsed"] is None
    assert document["breadthPct"] is None
    assert document["indexApprox"] == {"pct": None, "constituentsUsed": 0}
    assert document["topGainers"] == [{"code": "AAA", "pct": 1.5}]
    assert document["generatedAt"].startswith("2024-05-02T07:00:00")


def test_sector_snapshot_document_round_trips_by_alias():
    document = {
        "date": "2024-05-02",
        "prevDate": "2024-05-01",
        "method": "mcap_weighted",
        "usedStocks": 2,
        "sectors": [{"sector": "Energy", "ret1d": 0.1, "level": 110.0, "coverage": {"stocks": 2, "mcap": 5.0}}],
    }

    snapshot = SectorSnapshot.model_validate(document)

    assert snapshot.snapshot_date == date(2024, 5, 2)
    assert snapshot.sectors[0].coverage.stocks == 2
    assert snapshot.to_document()["usedStocks"] == 2
