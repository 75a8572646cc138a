"""MetricSnapshotBuilder - turns raw telemetry counters into one snapshot per tick."""
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeout
from datetime import datetime, timezone

from models.enums import RiskLevel
from models.metrics import (
    CapacityMetrics, MetricSnapshot, PerformanceMetrics, ResourceMetrics, SecurityMetrics, TrafficMetrics,
)
from monitor.provider import StubMetricsProvider
from monitor.telemetry import RequestEventCollector
from utils.errors import TelemetryError

logger = logging.getLogger("perfwatch.snapshot")

AVAILABILITY_WINDOW_MS = 3_600_000
NETWORK_LATENCY_CAP_MS = 200.0
UTILIZATION_WEIGHTS = {"cpu": 0.4, "mem": 0.3, "network": 0.3}


def _get(d, *path, default=0):
    for key in path:
        if not isinstance(d, dict):
            return default
        d = d.get(key)
    return default if d is None else d


def threat_level(blocked_requests):
    if blocked_requests > 100:
        return RiskLevel.HIGH.value
    if blocked_requests > 50:
        return RiskLevel.MEDIUM.value
    return RiskLevel.LOW.value


def utilization_pct(cpu_pct, mem_pct, network_latency_ms):
    """Weighted composite of cpu, memory, and latency (as a share of a 200 ms cap)."""
    network_pct = min(network_latency_ms / NETWORK_LATENCY_CAP_MS, 1.0) * 100
    return (
        cpu_pct * UTILIZATION_WEIGHTS["cpu"]
        + mem_pct * UTILIZATION_WEIGHTS["mem"]
        + network_pct * UTILIZATION_WEIGHTS["network"]
    )


def bottleneck_risk(utilization):
    if utilization > 90:
        return RiskLevel.HIGH.value
    if utilization > 70:
        return RiskLevel.MEDIUM.value
    return RiskLevel.LOW.value


def availability_pct(history):
    """Share of recent snapshots that saw no errors, as a percentage."""
    if not history:
        return 100.0
    errors = sum(1 for s in history if s.performance.error_rate_pct > 0)
    return max(0.0, 100.0 - errors / len(history) * 100)


class MetricSnapshotBuilder:
    def __init__(self, source, store, provider=None, timeout_seconds=5.0, clock=None):
        self.source = source
        self.store = store
        self.provider = provider or StubMetricsProvider()
        self.timeout_seconds = timeout_seconds
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.collector = RequestEventCollector(source)
        self._executor = ThreadPoolExecutor(max_workers=2, thread_name_prefix="perfwatch-telemetry")

    def close(self):
        self._executor.shutdown(wait=False)

    def _read_source(self):
        latest = self.source.get_latest_metrics() or {}
        scaling = self.source.get_scaling_state() or {}
        health = self.source.get_health_status() or {}
        return latest, scaling, health

    def fetch_raw(self):
        """Read the telemetry source, bounded by timeout_seconds."""
        future = self._executor.submit(self._read_source)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeout:
            future.cancel()
            raise TelemetryError(f"Telemetry source timed out after {self.timeout_seconds}s")
        except Exception as e:
            raise TelemetryError(f"Telemetry source unavailable: {e}") from e

    def build(self, now=None):
        """Produce the snapshot for this tick. Never raises on telemetry failure."""
        now = now or self.clock()

        try:
            latest, scaling, health = self.fetch_raw()
        except TelemetryError as e:
            # request events stay queued for the next successful tick
            logger.warning(f"Degraded snapshot: {e}")
            return MetricSnapshot(timestamp=now, degraded=True)

        window = self.collector.drain()

        avg_response = float(_get(latest, "performance", "average_response_time"))
        error_rate = float(_get(latest, "performance", "error_rate"))
        if window.count:
            avg_response = window.avg_duration_ms
            error_rate = window.error_rate_pct
        throughput = float(_get(latest, "requests", "rate"))

        breakers = _get(latest, "circuit_breakers", default={}) or {}
        open_breakers = sum(1 for state in breakers.values() if str(state).upper() == "OPEN")
        if not open_breakers:
            open_breakers = len(_get(health, "open_circuit_breakers", default=[]) or [])

        history = self.store.recent(AVAILABILITY_WINDOW_MS, now=now)
        performance = PerformanceMetrics(
            avg_response_time_ms=avg_response,
            throughput_rps=throughput,
            error_rate_pct=error_rate,
            concurrency=int(_get(latest, "requests", "active")),
            availability_pct=availability_pct(history),
            open_circuit_breakers=open_breakers,
        )

        resources = ResourceMetrics(
            cpu_pct=float(_get(latest, "infrastructure", "cpu_usage")),
            mem_pct=float(_get(latest, "infrastructure", "memory_usage")),
            disk_pct=float(_get(latest, "infrastructure", "disk_usage")),
            network_latency_ms=float(_get(latest, "network", "latency_ms")),
        )

        blocked = int(_get(latest, "security", "rate_limited_requests"))
        security = SecurityMetrics(
            blocked_requests=blocked,
            threat_level=threat_level(blocked),
            security_score=max(0.0, 100.0 - blocked),
        )

        utilization = utilization_pct(resources.cpu_pct, resources.mem_pct, resources.network_latency_ms)
        capacity = CapacityMetrics(
            utilization_pct=utilization,
            bottleneck_risk=bottleneck_risk(utilization),
            scalability_index=float(_get(scaling, "metrics", "scalability_index")),
        )

        return MetricSnapshot(
            timestamp=now,
            performance=performance,
            resources=resources,
            security=security,
            capacity=capacity,
            traffic=TrafficMetrics(**self.provider.traffic(throughput)),
            business=self.provider.business(),
        )
