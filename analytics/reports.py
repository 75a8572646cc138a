"""Derived reports: recommendations, cost, traffic forecast, compliance."""
import threading
from copy import deepcopy

from models.enums import Trend

PEAK_HOURS = [9, 12, 18, 21]
COMPUTE_COST_FACTOR = 0.001
MONTH_MS = 30 * 24 * 3600 * 1000
AVAILABILITY_TARGET_PCT = 99.9
TREND_GROWTH_PCT = {Trend.INCREASING.value: 10.0, Trend.STABLE.value: 0.0, Trend.DECREASING.value: -10.0}


def recommendations(snapshot, response_time_threshold_ms):
    recs = []
    if snapshot is None:
        return recs

    if snapshot.performance.avg_response_time_ms > response_time_threshold_ms:
        recs.append({
            "type": "performance",
            "priority": "high",
            "title": "Optimize Response Time",
            "description": "Consider implementing caching and query optimization",
            "impact": "Improved user experience",
        })
    if snapshot.resources.mem_pct > 80:
        recs.append({
            "type": "resource",
            "priority": "medium",
            "title": "Memory Optimization",
            "description": "Implement memory leak detection and optimization",
            "impact": "Reduced memory usage",
        })
    if snapshot.capacity.utilization_pct > 80:
        recs.append({
            "type": "capacity",
            "priority": "medium",
            "title": "Capacity Planning",
            "description": "Consider scaling up resources",
            "impact": "Improved performance under load",
        })
    return recs


class CostTracker:
    """Accrues a compute-cost proxy from cpu and memory load, once per tick."""

    def __init__(self, tick_interval_ms=60_000):
        self.tick_interval_ms = tick_interval_ms
        self._lock = threading.Lock()
        self._last_increment = 0.0
        self._metrics = {
            "infrastructure": {"compute": 0.0, "storage": 0.0, "network": 0.0, "database": 0.0, "total": 0.0},
            "operational": {"support": 0.0, "monitoring": 0.0, "compliance": 0.0, "total": 0.0},
            "projections": {"monthly": 0.0, "yearly": 0.0},
            "optimization": {"potential": 0.0, "recommendations": []},
        }

    def accrue(self, snapshot):
        increment = (snapshot.resources.cpu_pct + snapshot.resources.mem_pct) * COMPUTE_COST_FACTOR
        with self._lock:
            infra = self._metrics["infrastructure"]
            infra["compute"] += increment
            infra["total"] = infra["compute"] + infra["storage"] + infra["network"]
            self._last_increment = increment

            monthly = increment * (MONTH_MS / self.tick_interval_ms)
            self._metrics["projections"] = {"monthly": monthly, "yearly": monthly * 12}

            opt = self._metrics["optimization"]
            if snapshot.capacity.utilization_pct < 30:
                opt["potential"] = monthly * 0.3
                opt["recommendations"] = ["Resources are under-utilized; consider downsizing"]
            else:
                opt["potential"] = 0.0
                opt["recommendations"] = []

    def report(self):
        with self._lock:
            return deepcopy(self._metrics)


def traffic_forecast(snapshot, baseline_rps=None, trend=Trend.STABLE.value):
    """24h/7d expectations from current (or baseline) request rate and the 24h trend."""
    rps = 0.0
    latency = 0.0
    if snapshot is not None:
        rps = snapshot.traffic.requests_per_second or snapshot.performance.throughput_rps
        latency = snapshot.performance.avg_response_time_ms
    if baseline_rps is not None and not rps:
        rps = baseline_rps

    return {
        "baseline_rps": baseline_rps,
        "next_24_hours": {
            "expected_requests": int(rps * 86400),
            "peak_hours": list(PEAK_HOURS),
            "expected_latency_ms": latency * 1.1,
        },
        "next_7_days": {
            "expected_requests": int(rps * 86400 * 7),
            "weekly_pattern": "Business hours show higher traffic",
            "expected_growth_pct": TREND_GROWTH_PCT.get(trend, 0.0),
        },
    }


def compliance_report(snapshot, thresholds, scaling_events=0):
    if snapshot is None:
        return {"period": "last_30_days", "uptime": None, "recommendations": []}

    response_threshold = thresholds.get("response_time_ms", 2000)
    recs = []
    if snapshot.performance.availability_pct < thresholds.get("availability_pct", AVAILABILITY_TARGET_PCT):
        recs.append({
            "area": "availability",
            "recommendation": "Implement redundant systems and failover mechanisms",
            "impact": "Improve system reliability",
        })
    if snapshot.performance.avg_response_time_ms > response_threshold:
        recs.append({
            "area": "performance",
            "recommendation": "Optimize critical paths and implement caching",
            "impact": "Meet performance SLAs",
        })

    return {
        "period": "last_30_days",
        "uptime": snapshot.performance.availability_pct,
        "performance": {
            "average_response_time_ms": snapshot.performance.avg_response_time_ms,
            "targets": {
                "response_time_ms": response_threshold,
                "error_rate_pct": thresholds.get("error_rate_pct", 5),
                "throughput_rps": thresholds.get("throughput_rps", 100),
            },
        },
        "security": {
            "threat_level": snapshot.security.threat_level,
            "blocked_requests": snapshot.security.blocked_requests,
            "compliance_score": snapshot.security.security_score,
        },
        "capacity": {
            "utilization_rate": snapshot.capacity.utilization_pct,
            "scaling_events": scaling_events,
        },
        "recommendations": recs,
    }
