"""Tests for the reporting sinks."""

import json
import logging
from decimal import Decimal

import pytest

from amm_arb.sinks import CollectingSink, JsonlSink, LogSink, MultiSink, Sink
from amm_arb.types import Opportunity, OpportunityRecord, Path, Quote


@pytest.fixture
def record(tokens):
    path = Path((tokens["A"], tokens["B"], tokens["C"], tokens["A"]))
    quote = Quote(path, 100 * 10**18, (100 * 10**18, 99 * 10**18, 98 * 10**18, 102 * 10**18))
    opportunity = Opportunity(quote, profit=2 * 10**18, roi=Decimal("0.02"))
    return OpportunityRecord(opportunity=opportunity, timestamp=1640995200.0, tick=3)


def test_sinks_satisfy_protocol(tmp_path):
    for sink in (LogSink(), JsonlSink(tmp_path / "x.jsonl"), CollectingSink(), MultiSink([])):
        assert isinstance(sink, Sink)


def test_log_sink(record, caplog):
    with caplog.at_level(logging.INFO, logger="amm_arb.opportunities"):
        LogSink().emit(record)

    assert "[tick 3] PROFITABLE A -> B -> C -> A" in caplog.text
    assert "+2.00%" in caplog.text


def test_jsonl_sink_appends(record, tmp_path):
    path = tmp_path / "reports" / "opportunities.jsonl"
    sink = JsonlSink(path)

    sink.emit(record)
    sink.emit(record)

    lines = path.read_text().splitlines()
    assert len(lines) == 2
    data = json.loads(lines[0])
    assert data["path"] == ["A", "B", "C", "A"]
    assert data["profit"] == str(2 * 10**18)
    assert data["roi_pct"] == pytest.approx(2.0)
    assert data["timestamp"].startswith("2022-01-01T00:00:00")


def test_collecting_sink(record):
    sink = CollectingSink()
    sink.emit(record)
    assert sink.records == [record]

    sink.clear()
    assert sink.records == []


def test_multi_sink_fans_out_in_order(record):
    first, second = CollectingSink(), CollectingSink()
    MultiSink([first, second]).emit(record)

    assert first.records == [record]
    assert second.records == [record]
