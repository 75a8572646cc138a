"""CapacityProjector - simple day-bucket extrapolation from retained snapshots."""
MIN_SAMPLES = 24
MAX_DAILY_GROWTH = 0.05
MAX_REQUESTS = 1000

HORIZONS = {"short_term": 1, "medium_term": 7, "long_term": 30}


def _mean(values):
    return sum(values) / len(values) if values else 0.0


class CapacityProjector:
    """Projections are deterministic: the mean load of the series, scaled by
    the growth seen between its first and second halves (clamped to
    +/-5% per day) for each day ahead."""

    def project(self, series, horizon_days):
        if len(series) < MIN_SAMPLES:
            return {}

        rps = [s.performance.throughput_rps for s in series]
        half = len(rps) // 2
        early, late = _mean(rps[:half]), _mean(rps[half:])
        growth = (late - early) / early if early > 0 else 0.0
        growth = max(-MAX_DAILY_GROWTH, min(MAX_DAILY_GROWTH, growth))

        avg_rps = _mean(rps)
        avg_latency = _mean([s.performance.avg_response_time_ms for s in series])
        avg_errors = _mean([s.performance.error_rate_pct for s in series])

        projection = {}
        for day in range(1, horizon_days + 1):
            factor = max(0.0, 1 + growth * day)
            projection[f"day_{day}"] = {
                "expected_requests": int(avg_rps * 86400 * factor),
                "expected_latency_ms": avg_latency * factor,
                "expected_error_rate_pct": avg_errors,
            }
        return projection

    def projections(self, series):
        """Short, medium, and long term projections (empty when data is insufficient)."""
        return {name: self.project(series, days) for name, days in HORIZONS.items()}

    def current(self, snapshot):
        if snapshot is None:
            return {"max_requests": MAX_REQUESTS, "current_load": 0, "utilization_rate": 0, "scalability_index": 0}
        return {
            "max_requests": MAX_REQUESTS,
            "current_load": snapshot.traffic.requests_per_second or snapshot.performance.throughput_rps,
            "utilization_rate": snapshot.capacity.utilization_pct,
            "scalability_index": snapshot.capacity.scalability_index,
        }

    def recommendations(self, snapshot, projections):
        recs = []
        if snapshot is not None and snapshot.capacity.utilization_pct > 80:
            recs.append({
                "priority": "high",
                "title": "Scale up resources",
                "description": f"Utilization at {snapshot.capacity.utilization_pct:.0f}%",
            })
        long_term = projections.get("long_term") or {}
        last_day = long_term.get(f"day_{HORIZONS['long_term']}")
        if last_day and last_day["expected_requests"] > MAX_REQUESTS * 86400:
            recs.append({
                "priority": "medium",
                "title": "Plan for traffic growth",
                "description": "Projected daily requests exceed current capacity within 30 days",
            })
        return recs
