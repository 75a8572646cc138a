"""NotificationDispatcher - fans an alert out to its channels on worker threads."""
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from datetime import datetime, timezone

from models.alerts import NotificationRecord
from models.enums import ChannelKind, NotificationStatus
from utils.errors import ConfigurationError, TransportError

logger = logging.getLogger("perfwatch.notifications.dispatcher")


class NotificationLog:
    """Thread-safe record store, one entry per (alert id, channel) attempt."""

    def __init__(self):
        self._records = {}
        self._lock = threading.Lock()

    def record(self, record):
        with self._lock:
            self._records[(record.alert_id, record.channel)] = record

    def records(self, alert_id=None):
        with self._lock:
            items = list(self._records.values())
        if alert_id is not None:
            items = [r for r in items if r.alert_id == alert_id]
        return sorted(items, key=lambda r: (r.timestamp, r.channel))

    def get(self, alert_id, channel):
        with self._lock:
            return self._records.get((alert_id, channel))


class NotificationDispatcher:
    """Sends are fire-and-forget: dispatch() returns futures immediately.

    Each channel of an alert gets its own task, so a failing channel never
    blocks or cancels the others. Failures are recorded, never retried.
    """

    def __init__(self, channels, log=None, max_workers=8, clock=None):
        self.channels = channels
        self.log = log or NotificationLog()
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="perfwatch-notify")

    def dispatch(self, alert, channels):
        kinds = sorted({ChannelKind(c) for c in channels}, key=lambda k: k.value)
        futures = []
        for kind in kinds:
            try:
                futures.append(self._executor.submit(self._deliver, alert, kind))
            except RuntimeError as e:
                # executor already shut down
                record = self._failed(alert, kind, e)
                self.log.record(record)
                logger.warning(f"Dropped {kind.value} notification for {alert.id}: dispatcher is shut down")
                future = Future()
                future.set_result(record)
                futures.append(future)
        return futures

    def _deliver(self, alert, kind):
        channel = self.channels.get(kind)
        try:
            if channel is None:
                raise ConfigurationError(f"No {kind.value} channel registered", channel=kind.value)
            channel.send(alert)
            record = NotificationRecord(
                alert_id=alert.id, channel=kind.value,
                status=NotificationStatus.SENT, timestamp=self.clock(),
            )
            logger.debug(f"Sent {kind.value} notification for {alert.id}")
        except (ConfigurationError, TransportError) as e:
            record = self._failed(alert, kind, e)
            logger.warning(f"Failed to send {kind.value} notification for {alert.id}: {e}")
        except Exception as e:
            record = self._failed(alert, kind, e)
            logger.error(f"Unexpected {kind.value} channel error for {alert.id}: {e}")
        self.log.record(record)
        return record

    def _failed(self, alert, kind, error):
        return NotificationRecord(
            alert_id=alert.id, channel=kind.value,
            status=NotificationStatus.FAILED, timestamp=self.clock(),
            error_detail=str(error),
        )

    def shutdown(self, wait=False):
        self._executor.shutdown(wait=wait)
