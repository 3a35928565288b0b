"""Tests for chainsentry/error_cache.py — error finding collector."""

from __future__ import annotations

from chainsentry.error_cache import ERROR_ALERT_ID, ErrorCollector, create_error_finding
from chainsentry.exceptions import RPCError
from chainsentry.models import FindingSeverity, FindingType


def test_create_error_finding() -> None:
    finding = create_error_finding("boom", "fetcher.get_code", "Traceback ...")
    assert finding.alert_id == ERROR_ALERT_ID == "DEBUG-ERROR"
    assert finding.severity == FindingSeverity.Info
    assert finding.type == FindingType.Info
    assert finding.metadata == {
        "message": "boom",
        "source": "fetcher.get_code",
        "stackTrace": "Traceback ...",
    }


def test_record_exception_captures_traceback() -> None:
    collector = ErrorCollector()
    try:
        raise RPCError("node down")
    except RPCError as e:
        finding = collector.record_exception(e, "fetcher.get_nonce")

    assert len(collector) == 1
    assert finding.metadata["message"] == "node down"
    assert "test_record_exception_captures_traceback" in finding.metadata["stackTrace"]


def test_ring_buffer_drops_oldest() -> None:
    collector = ErrorCollector(maxlen=3)
    for i in range(5):
        collector.add(create_error_finding(f"e{i}", "s", ""))

    assert collector.maxlen == 3
    assert [f.description for f in collector.drain()] == ["e2", "e3", "e4"]


def test_drain_empties_buffer() -> None:
    collector = ErrorCollector()
    collector.add(create_error_finding("e", "s", ""))
    assert len(collector.drain()) == 1
    assert collector.drain() == []
    assert len(collector) == 0
