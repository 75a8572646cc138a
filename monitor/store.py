"""Append-only, time-keyed snapshot buffer with age-based pruning."""
import bisect
import logging
import threading
from datetime import datetime, timedelta, timezone

logger = logging.getLogger("perfwatch.store")

DEFAULT_RETENTION_MS = 7 * 24 * 3600 * 1000


class TimeSeriesStore:
    """Snapshots keyed by timestamp, kept in ascending order.

    Reads return copies of the relevant window so callers never hold the
    lock while they analyse.
    """

    def __init__(self, retention_period_ms=DEFAULT_RETENTION_MS, clock=None):
        self.retention = timedelta(milliseconds=retention_period_ms)
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._keys = []
        self._entries = {}
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._keys)

    def insert(self, snapshot):
        """Add a snapshot. Returns False if one already exists at that timestamp."""
        ts = snapshot.timestamp
        with self._lock:
            if ts in self._entries:
                return False
            bisect.insort(self._keys, ts)
            self._entries[ts] = snapshot
        self.prune(self.clock())
        return True

    def prune(self, now):
        """Drop entries older than the retention period. Returns how many were removed."""
        cutoff = now - self.retention
        with self._lock:
            idx = bisect.bisect_left(self._keys, cutoff)
            if idx == 0:
                return 0
            for ts in self._keys[:idx]:
                del self._entries[ts]
            del self._keys[:idx]
        logger.debug(f"Pruned {idx} snapshots older than {cutoff.isoformat()}")
        return idx

    def recent(self, duration_ms, now=None):
        """Snapshots with timestamp > now - duration, ascending.

        Never returns anything at or beyond the retention horizon, even if
        no insert has pruned it yet.
        """
        now = now or self.clock()
        window = min(timedelta(milliseconds=duration_ms), self.retention)
        cutoff = now - window
        with self._lock:
            idx = bisect.bisect_right(self._keys, cutoff)
            return [self._entries[ts] for ts in self._keys[idx:]]

    def all(self):
        with self._lock:
            return [self._entries[ts] for ts in self._keys]

    def latest(self):
        with self._lock:
            if not self._keys:
                return None
            return self._entries[self._keys[-1]]
