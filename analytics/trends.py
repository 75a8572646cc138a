"""TrendAnalyzer - first-vs-last direction of a metric over a window."""
from models.enums import Trend

# Below this many samples a trend is technically computable but not meaningful.
MIN_MEANINGFUL_SAMPLES = 5

SELECTORS = {
    "response_time": lambda s: s.performance.avg_response_time_ms,
    "throughput": lambda s: s.performance.throughput_rps,
    "error_rate": lambda s: s.performance.error_rate_pct,
}


class TrendAnalyzer:
    def trend(self, series, selector):
        """increasing if last > first*1.1, decreasing if last < first*0.9, else stable."""
        if len(series) < 2:
            return Trend.STABLE
        first = selector(series[0]) or 0
        last = selector(series[-1]) or 0
        if last > first * 1.1:
            return Trend.INCREASING
        if last < first * 0.9:
            return Trend.DECREASING
        return Trend.STABLE

    def performance_trends(self, series):
        return {name: self.trend(series, sel).value for name, sel in SELECTORS.items()}
