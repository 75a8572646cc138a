"""Tests for snapshot building from telemetry counters."""
import time
from unittest.mock import patch

import pytest

from models.metrics import MetricSnapshot
from monitor.provider import StubMetricsProvider
from monitor.snapshot import (
    MetricSnapshotBuilder, availability_pct, bottleneck_risk, threat_level, utilization_pct,
)
from monitor.telemetry import LocalTelemetrySource, RequestEvent, RequestEventCollector
from utils.errors import TelemetryError


@pytest.fixture
def builder(fake_source, store, clock):
    b = MetricSnapshotBuilder(fake_source, store, StubMetricsProvider(seed=1), timeout_seconds=1.0, clock=clock)
    yield b
    b.close()


# ── Derived fields ──────────────────────────────────────

def test_threat_level_bands():
    assert threat_level(0) == "low"
    assert threat_level(50) == "low"
    assert threat_level(51) == "medium"
    assert threat_level(101) == "high"


def test_utilization_caps_latency_share():
    assert utilization_pct(50, 50, 100) == pytest.approx(20 + 15 + 15)
    assert utilization_pct(0, 0, 10_000) == pytest.approx(30)


def test_bottleneck_risk_bands():
    assert bottleneck_risk(50) == "low"
    assert bottleneck_risk(75) == "medium"
    assert bottleneck_risk(95) == "high"


def test_availability_from_error_free_samples(make_snapshot):
    history = [make_snapshot(error_rate=0)] * 3 + [make_snapshot(error_rate=2.0)]
    assert availability_pct(history) == pytest.approx(75.0)
    assert availability_pct([]) == 100.0


# ── Builder ─────────────────────────────────────────────

def test_build_maps_raw_counters(builder, clock):
    snap = builder.build()
    assert snap.timestamp == clock()
    assert snap.degraded is False
    assert snap.performance.avg_response_time_ms == 120.0
    assert snap.performance.throughput_rps == 250.0
    assert snap.performance.concurrency == 12
    assert snap.resources.cpu_pct == 35.0
    assert snap.resources.mem_pct == 40.0
    assert snap.security.security_score == 100.0
    assert snap.capacity.scalability_index == 0.8
    assert snap.traffic.requests_per_second == 250.0
    assert set(snap.business) == {"conversion_rate", "user_satisfaction", "revenue"}


def test_build_security_score_from_blocked(builder, fake_source):
    fake_source.latest["security"]["rate_limited_requests"] = 60
    snap = builder.build()
    assert snap.security.blocked_requests == 60
    assert snap.security.security_score == 40.0
    assert snap.security.threat_level == "medium"


def test_build_counts_open_breakers(builder, fake_source):
    fake_source.latest["circuit_breakers"] = {"db": "OPEN", "cache": "CLOSED", "auth": "open"}
    assert builder.build().performance.open_circuit_breakers == 2


def test_build_falls_back_to_health_breakers(builder, fake_source):
    fake_source.health = {"status": "degraded", "open_circuit_breakers": ["payments"]}
    assert builder.build().performance.open_circuit_breakers == 1


def test_request_events_override_latency_and_errors(builder, fake_source):
    q = fake_source.events()
    q.put(RequestEvent(duration_ms=100, status_code=200))
    q.put(RequestEvent(duration_ms=300, status_code=500))
    snap = builder.build()
    assert snap.performance.avg_response_time_ms == 200.0
    assert snap.performance.error_rate_pct == 50.0
    assert q.empty()


def test_source_failure_gives_degraded_snapshot(builder, fake_source, clock):
    fake_source.fail = True
    snap = builder.build()
    assert snap.degraded is True
    assert snap.timestamp == clock()
    assert snap == MetricSnapshot(timestamp=clock(), degraded=True)


def test_degraded_tick_keeps_request_events(builder, fake_source):
    q = fake_source.events()
    q.put(RequestEvent(duration_ms=400, status_code=503))
    fake_source.fail = True
    assert builder.build().degraded is True
    assert q.qsize() == 1

    fake_source.fail = False
    snap = builder.build()
    assert snap.performance.avg_response_time_ms == 400.0
    assert snap.performance.error_rate_pct == 100.0
    assert q.empty()


def test_source_timeout_raises_telemetry_error(fake_source, store, clock):
    def slow():
        time.sleep(0.5)
        return {}
    fake_source.get_latest_metrics = slow
    b = MetricSnapshotBuilder(fake_source, store, timeout_seconds=0.05, clock=clock)
    try:
        with pytest.raises(TelemetryError):
            b.fetch_raw()
        assert b.build().degraded is True
    finally:
        b.close()


def test_snapshot_dict_roundtrip(builder):
    snap = builder.build()
    assert MetricSnapshot.from_dict(snap.to_dict()) == snap


# ── Telemetry sources ───────────────────────────────────

def test_collector_drains_window(fake_source):
    for status in (200, 201, 404, 503):
        fake_source.events().put(RequestEvent(duration_ms=10, status_code=status))
    window = RequestEventCollector(fake_source).drain()
    assert window.count == 4
    assert window.errors == 2
    assert window.error_rate_pct == 50.0
    assert RequestEventCollector(fake_source).drain().count == 0


@patch("monitor.telemetry.psutil")
def test_local_source_counters(mock_psutil):
    mock_psutil.cpu_percent.return_value = 12.5
    mock_psutil.virtual_memory.return_value.percent = 48.0
    mock_psutil.disk_usage.return_value.percent = 70.0

    source = LocalTelemetrySource(rate_window_seconds=10)
    source.request_started()
    source.request_started()
    source.record_request(40, 200)
    source.record_blocked(3)
    source.set_circuit_breaker("db", "OPEN")

    raw = source.get_latest_metrics()
    assert raw["requests"]["active"] == 1
    assert raw["requests"]["rate"] == pytest.approx(0.1)
    assert raw["performance"]["average_response_time"] == 40
    assert raw["infrastructure"]["cpu_usage"] == 12.5
    assert raw["infrastructure"]["memory_usage"] == 48.0
    assert raw["security"]["rate_limited_requests"] == 3
    assert raw["network"]["latency_ms"] == 0.0
    assert source.get_health_status()["open_circuit_breakers"] == ["db"]
    assert source.events().qsize() == 1
