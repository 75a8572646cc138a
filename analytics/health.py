"""HealthScorer - 0-100 score, letter grade, and status label for a snapshot."""

GRADES = [(90, "A", "excellent"), (80, "B", "good"), (70, "C", "fair"), (60, "D", "poor")]


def _clamp(value):
    return max(0.0, min(100.0, float(value)))


def health_grade(score):
    for floor, grade, _ in GRADES:
        if score >= floor:
            return grade
    return "F"


def health_status(score):
    for floor, _, status in GRADES:
        if score >= floor:
            return status
    return "critical"


class HealthScorer:
    def score(self, snapshot):
        breakdown = {
            "performance": _clamp(100 - snapshot.performance.avg_response_time_ms / 50),
            "availability": _clamp(snapshot.performance.availability_pct),
            "security": _clamp(snapshot.security.security_score),
            "capacity": _clamp(100 - snapshot.capacity.utilization_pct),
        }
        raw = sum(breakdown.values()) / len(breakdown)
        return {
            "overall": round(raw, 1),
            "breakdown": breakdown,
            "grade": health_grade(raw),
            "status": health_status(raw),
        }
