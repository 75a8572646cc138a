"""Pluggable provider for traffic, business, and user-behaviour metrics.

These figures have no real instrumentation behind them yet. The default
StubMetricsProvider produces plausible values from a seedable RNG so the
rest of the pipeline has something to report; swap in a real provider
once visitor and revenue tracking exist.
"""
import random
from typing import Protocol, runtime_checkable


@runtime_checkable
class MetricsProvider(Protocol):
    def traffic(self, requests_per_second: float) -> dict: ...

    def business(self) -> dict: ...

    def user_behavior(self) -> dict: ...


class StubMetricsProvider:
    def __init__(self, seed=None):
        self._rng = random.Random(seed)

    def _uniform(self, low, span):
        return self._rng.random() * span + low

    def traffic(self, requests_per_second):
        return {
            "requests_per_second": requests_per_second,
            "unique_visitors": self._rng.randint(100, 1099),
            "page_views": self._rng.randint(500, 5499),
            "bounce_rate": self._uniform(10, 50),
        }

    def business(self):
        return {
            "conversion_rate": self._uniform(2, 5),
            "user_satisfaction": self._uniform(80, 20),
            "revenue": self._rng.randint(5000, 14999),
        }

    def user_behavior(self):
        return {
            "patterns": {
                "top_paths": ["/api/past-questions", "/api/videos", "/api/courses"],
                "drop_off_points": ["/register", "/payment"],
                "conversion_paths": ["/landing", "/courses", "/purchase"],
            },
            "engagement": {
                "average_session_duration": self._uniform(120, 300),
                "page_views_per_session": self._uniform(3, 10),
                "return_visitor_rate": self._uniform(40, 30),
            },
            "retention": {
                "day1_retention": self._uniform(60, 20),
                "day7_retention": self._uniform(30, 15),
                "day30_retention": self._uniform(10, 10),
            },
            "conversion": {
                "registration": self._uniform(60, 20),
                "purchase": self._uniform(20, 10),
                "subscription": self._uniform(10, 5),
            },
            "segmentation": {
                "new": self._uniform(40, 30),
                "returning": self._uniform(30, 30),
                "power": self._uniform(10, 10),
            },
        }
