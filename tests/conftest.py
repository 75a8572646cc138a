"""Shared test fixtures."""
import os
import queue
import sys
import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from models.enums import ChannelKind
from models.metrics import (
    CapacityMetrics, MetricSnapshot, PerformanceMetrics, ResourceMetrics, SecurityMetrics, TrafficMetrics,
)
from monitor.provider import StubMetricsProvider
from monitor.store import TimeSeriesStore

T0 = datetime(2026, 1, 5, 12, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start=T0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now = self.now + timedelta(milliseconds=ms)
        return self.now


class FakeTelemetrySource:
    """Telemetry source returning canned counters; can be told to fail."""

    def __init__(self):
        self.fail = False
        self.latest = {
            "performance": {"average_response_time": 120.0, "error_rate": 0.0},
            "requests": {"rate": 250.0, "active": 12},
            "infrastructure": {"cpu_usage": 35.0, "memory_usage": 40.0, "disk_usage": 50.0},
            "network": {"latency_ms": 20.0},
            "security": {"rate_limited_requests": 0},
            "circuit_breakers": {},
        }
        self.scaling = {"metrics": {"scalability_index": 0.8}, "state": {"consecutive_actions": 2}}
        self.health = {"status": "healthy", "open_circuit_breakers": []}
        self._events = queue.Queue()

    def get_latest_metrics(self):
        if self.fail:
            raise ConnectionError("telemetry down")
        return self.latest

    def get_scaling_state(self):
        return self.scaling

    def get_health_status(self):
        return self.health

    def events(self):
        return self._events


def build_snapshot(ts=T0, response_ms=120.0, throughput=250.0, error_rate=0.0, concurrency=12,
                   availability=100.0, open_breakers=0, cpu=35.0, mem=40.0, latency=20.0,
                   blocked=0, security_score=100.0, utilization=30.0, rps=None):
    return MetricSnapshot(
        timestamp=ts,
        performance=PerformanceMetrics(
            avg_response_time_ms=response_ms, throughput_rps=throughput, error_rate_pct=error_rate,
            concurrency=concurrency, availability_pct=availability, open_circuit_breakers=open_breakers,
        ),
        resources=ResourceMetrics(cpu_pct=cpu, mem_pct=mem, disk_pct=50.0, network_latency_ms=latency),
        security=SecurityMetrics(blocked_requests=blocked, security_score=security_score),
        capacity=CapacityMetrics(utilization_pct=utilization),
        traffic=TrafficMetrics(requests_per_second=throughput if rps is None else rps),
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_snapshot():
    """Factory for snapshots with healthy defaults; override any field by keyword."""
    return build_snapshot


@pytest.fixture
def fake_source():
    return FakeTelemetrySource()


@pytest.fixture
def store(clock):
    return TimeSeriesStore(retention_period_ms=7 * 24 * 3600 * 1000, clock=clock)


@pytest.fixture
def mock_channels():
    """One MagicMock channel per kind; send() succeeds unless a test says otherwise."""
    return {kind: MagicMock(name=f"{kind.value}_channel") for kind in ChannelKind}


@pytest.fixture
def engine_config():
    return {
        "engine": {
            "tick_interval_ms": 60_000,
            "predictive_interval_ms": 300_000,
            "retention_period_ms": 7 * 24 * 3600 * 1000,
            "telemetry_timeout_ms": 2000,
            "output_queue_size": 100,
        },
        "thresholds": {},
        "alerts": {"rules": {}},
        "channels": {"max_workers": 2},
        "telemetry": {"source": "local"},
        "provider": {"seed": 7},
    }


@pytest.fixture
def engine(fake_source, engine_config, mock_channels, clock):
    from monitor.engine import AnalyticsEngine
    eng = AnalyticsEngine(
        fake_source, engine_config,
        provider=StubMetricsProvider(seed=7),
        channels=mock_channels,
        clock=clock,
    )
    yield eng
    eng.shutdown()
