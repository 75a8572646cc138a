"""Telemetry sources: raw counters plus a stream of completed-request events."""
import logging
import queue
from collections import deque
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

import psutil

from utils.http_client import HTTPClient

logger = logging.getLogger("perfwatch.telemetry")


@dataclass(frozen=True)
class RequestEvent:
    duration_ms: float
    status_code: int
    method: str = "GET"
    path: str = "/"
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


@runtime_checkable
class TelemetrySource(Protocol):
    def get_latest_metrics(self) -> dict: ...

    def get_scaling_state(self) -> dict: ...

    def get_health_status(self) -> dict: ...

    def events(self) -> queue.Queue: ...


@dataclass
class RequestWindow:
    """Summary of the request events seen since the previous drain."""
    count: int = 0
    errors: int = 0
    total_duration_ms: float = 0.0
    max_duration_ms: float = 0.0

    @property
    def avg_duration_ms(self):
        return self.total_duration_ms / self.count if self.count else 0.0

    @property
    def error_rate_pct(self):
        return self.errors / self.count * 100 if self.count else 0.0


class RequestEventCollector:
    """Drains a source's event channel between ticks."""

    def __init__(self, source):
        self.source = source

    def drain(self, limit=100_000) -> RequestWindow:
        window = RequestWindow()
        events = self.source.events()
        for _ in range(limit):
            try:
                event = events.get_nowait()
            except queue.Empty:
                break
            window.count += 1
            window.total_duration_ms += event.duration_ms
            window.max_duration_ms = max(window.max_duration_ms, event.duration_ms)
            if event.status_code >= 400:
                window.errors += 1
        return window


class LocalTelemetrySource:
    """In-process telemetry for the host application.

    Resource gauges come from psutil. Request counters are derived from
    events recorded through record_request(); the same events are also
    published on the event channel for the snapshot builder to drain.
    There is no network gauge in-process, so network latency reads 0.
    """

    def __init__(self, rate_window_seconds=60, max_events=10_000):
        self.rate_window_seconds = rate_window_seconds
        self._events = queue.Queue(maxsize=max_events)
        self._lock = threading.Lock()
        self._recent = deque()  # (monotonic_time, RequestEvent)
        self._active = 0
        self._blocked = 0
        self._circuit_breakers = {}
        self._scaling = {"metrics": {"scalability_index": 0}, "state": {"consecutive_actions": 0}}

    def request_started(self):
        with self._lock:
            self._active += 1

    def record_request(self, duration_ms, status_code, method="GET", path="/"):
        event = RequestEvent(duration_ms=duration_ms, status_code=status_code, method=method, path=path)
        now = time.monotonic()
        with self._lock:
            self._active = max(0, self._active - 1)
            self._recent.append((now, event))
            self._trim(now)
        try:
            self._events.put_nowait(event)
        except queue.Full:
            logger.debug("Request event channel full, dropping event")
        return event

    def record_blocked(self, count=1):
        with self._lock:
            self._blocked += count

    def set_circuit_breaker(self, name, state):
        with self._lock:
            self._circuit_breakers[name] = state

    def set_scaling_state(self, state):
        with self._lock:
            self._scaling = state

    def _trim(self, now):
        cutoff = now - self.rate_window_seconds
        while self._recent and self._recent[0][0] < cutoff:
            self._recent.popleft()

    def get_latest_metrics(self):
        now = time.monotonic()
        with self._lock:
            self._trim(now)
            recent = [e for _, e in self._recent]
            active = self._active
            blocked = self._blocked
            breakers = dict(self._circuit_breakers)

        count = len(recent)
        avg = sum(e.duration_ms for e in recent) / count if count else 0.0
        errors = sum(1 for e in recent if e.status_code >= 400)

        return {
            "performance": {
                "average_response_time": avg,
                "error_rate": errors / count * 100 if count else 0.0,
            },
            "requests": {
                "rate": count / self.rate_window_seconds,
                "active": active,
            },
            "infrastructure": {
                "cpu_usage": psutil.cpu_percent(interval=None),
                "memory_usage": psutil.virtual_memory().percent,
                "disk_usage": psutil.disk_usage("/").percent,
            },
            # no in-process network gauge; 0 means unknown
            "network": {"latency_ms": 0.0},
            "security": {"rate_limited_requests": blocked},
            "circuit_breakers": breakers,
        }

    def get_scaling_state(self):
        with self._lock:
            return dict(self._scaling)

    def get_health_status(self):
        with self._lock:
            open_breakers = [n for n, s in self._circuit_breakers.items() if str(s).upper() == "OPEN"]
        return {"status": "degraded" if open_breakers else "healthy", "open_circuit_breakers": open_breakers}

    def events(self):
        return self._events


class HTTPTelemetrySource:
    """Pulls counters from a remote traffic handler's JSON endpoints."""

    def __init__(self, base_url, timeout=5):
        self.client = HTTPClient(base_url, timeout=timeout, max_retries=0)
        self._events = queue.Queue()

    def get_latest_metrics(self):
        return self.client.get("/metrics/latest")

    def get_scaling_state(self):
        return self.client.get("/scaling/state")

    def get_health_status(self):
        return self.client.get("/health/status")

    def events(self):
        return self._events


def create_telemetry_source(config):
    """Build the telemetry source named in config['telemetry']."""
    tcfg = config.get("telemetry", {})
    if tcfg.get("source", "local") == "http":
        base_url = tcfg.get("base_url")
        if not base_url:
            raise ValueError("telemetry.base_url is required for the http source")
        return HTTPTelemetrySource(base_url, timeout=tcfg.get("timeout_seconds", 5))
    return LocalTelemetrySource()
