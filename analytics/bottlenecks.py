"""BottleneckDetector - point-in-time diagnosis of latency and resource constraints."""
from models.alerts import BottleneckReport

MEMORY_THRESHOLD_PCT = 85
NETWORK_LATENCY_THRESHOLD_MS = 100
CONCURRENCY_THRESHOLD = 500

RECOMMENDATIONS = {
    "response_time": [
        "Implement database query optimization",
        "Add database indexing",
        "Consider caching frequently accessed data",
        "Scale database resources",
    ],
    "memory": [
        "Implement memory leak detection",
        "Optimize memory-intensive operations",
        "Consider horizontal scaling",
        "Implement garbage collection tuning",
    ],
    "network": [
        "Implement CDN for static assets",
        "Optimize API response sizes",
        "Consider edge computing deployment",
        "Implement request compression",
    ],
    "concurrency": [
        "Implement request queuing",
        "Scale connection pools",
        "Add load balancing",
        "Implement circuit breakers",
    ],
}


class BottleneckDetector:
    def __init__(self, response_time_threshold_ms=2000):
        self.response_time_threshold_ms = response_time_threshold_ms

    def detect(self, snapshot):
        """Checks run in a fixed order; any number of reports may come back."""
        reports = []
        perf, res = snapshot.performance, snapshot.resources

        if perf.avg_response_time_ms > self.response_time_threshold_ms:
            reports.append(self._report(
                "response_time", "high", "High average response time",
                perf.avg_response_time_ms, self.response_time_threshold_ms,
                "User experience degradation",
            ))

        if res.mem_pct > MEMORY_THRESHOLD_PCT:
            reports.append(self._report(
                "memory", "critical", "High memory usage",
                res.mem_pct, MEMORY_THRESHOLD_PCT,
                "Potential out-of-memory errors",
            ))

        if res.network_latency_ms > NETWORK_LATENCY_THRESHOLD_MS:
            reports.append(self._report(
                "network", "medium", "High network latency",
                res.network_latency_ms, NETWORK_LATENCY_THRESHOLD_MS,
                "Slow data transfer and user experience",
            ))

        if perf.concurrency > CONCURRENCY_THRESHOLD:
            reports.append(self._report(
                "concurrency", "high", "High concurrency level",
                perf.concurrency, CONCURRENCY_THRESHOLD,
                "Potential connection pool exhaustion",
            ))

        for report in reports:
            report.detected_at = snapshot.timestamp
        return reports

    @staticmethod
    def _report(kind, severity, description, current, threshold, impact):
        return BottleneckReport(
            type=kind,
            severity=severity,
            description=description,
            current_value=current,
            threshold_value=threshold,
            impact_description=impact,
            recommendations=list(RECOMMENDATIONS[kind]),
        )
