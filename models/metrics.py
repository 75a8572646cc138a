"""Dataclasses for per-tick metric snapshots."""
from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass(frozen=True)
class PerformanceMetrics:
    avg_response_time_ms: float = 0.0
    throughput_rps: float = 0.0
    error_rate_pct: float = 0.0
    concurrency: int = 0
    availability_pct: float = 100.0
    open_circuit_breakers: int = 0


@dataclass(frozen=True)
class ResourceMetrics:
    cpu_pct: float = 0.0
    mem_pct: float = 0.0
    disk_pct: float = 0.0
    network_latency_ms: float = 0.0


@dataclass(frozen=True)
class SecurityMetrics:
    blocked_requests: int = 0
    threat_level: str = "low"
    security_score: float = 100.0


@dataclass(frozen=True)
class CapacityMetrics:
    utilization_pct: float = 0.0
    bottleneck_risk: str = "low"
    scalability_index: float = 0.0


@dataclass(frozen=True)
class TrafficMetrics:
    requests_per_second: float = 0.0
    unique_visitors: int = 0
    page_views: int = 0
    bounce_rate: float = 0.0


@dataclass(frozen=True)
class MetricSnapshot:
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    resources: ResourceMetrics = field(default_factory=ResourceMetrics)
    security: SecurityMetrics = field(default_factory=SecurityMetrics)
    capacity: CapacityMetrics = field(default_factory=CapacityMetrics)
    traffic: TrafficMetrics = field(default_factory=TrafficMetrics)
    business: dict = field(default_factory=dict)
    degraded: bool = False

    def to_dict(self):
        """Nested dict for JSON responses and notification payloads."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "degraded": self.degraded,
            "performance": {
                "avg_response_time_ms": self.performance.avg_response_time_ms,
                "throughput_rps": self.performance.throughput_rps,
                "error_rate_pct": self.performance.error_rate_pct,
                "concurrency": self.performance.concurrency,
                "availability_pct": self.performance.availability_pct,
                "open_circuit_breakers": self.performance.open_circuit_breakers,
            },
            "resources": {
                "cpu_pct": self.resources.cpu_pct,
                "mem_pct": self.resources.mem_pct,
                "disk_pct": self.resources.disk_pct,
                "network_latency_ms": self.resources.network_latency_ms,
            },
            "security": {
                "blocked_requests": self.security.blocked_requests,
                "threat_level": self.security.threat_level,
                "security_score": self.security.security_score,
            },
            "capacity": {
                "utilization_pct": self.capacity.utilization_pct,
                "bottleneck_risk": self.capacity.bottleneck_risk,
                "scalability_index": self.capacity.scalability_index,
            },
            "traffic": {
                "requests_per_second": self.traffic.requests_per_second,
                "unique_visitors": self.traffic.unique_visitors,
                "page_views": self.traffic.page_views,
                "bounce_rate": self.traffic.bounce_rate,
            },
            "business": dict(self.business),
        }

    @classmethod
    def from_dict(cls, d):
        """Rebuild from the nested dict produced by to_dict()."""
        ts = d.get("timestamp")
        if isinstance(ts, str):
            ts = datetime.fromisoformat(ts)
        elif ts is None:
            ts = datetime.now(timezone.utc)

        return cls(
            timestamp=ts,
            performance=PerformanceMetrics(**d.get("performance", {})),
            resources=ResourceMetrics(**d.get("resources", {})),
            security=SecurityMetrics(**d.get("security", {})),
            capacity=CapacityMetrics(**d.get("capacity", {})),
            traffic=TrafficMetrics(**d.get("traffic", {})),
            business=dict(d.get("business", {})),
            degraded=d.get("degraded", False),
        )
