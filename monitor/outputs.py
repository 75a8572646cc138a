"""Typed output channels the engine publishes to.

Each channel is a bounded queue. Publishing never blocks the tick: when a
queue is full its oldest item is discarded to make room.
"""
import logging
import queue

logger = logging.getLogger("perfwatch.outputs")


class OutputChannel:
    def __init__(self, name, maxsize=1000):
        self.name = name
        self._queue = queue.Queue(maxsize=maxsize)

    def publish(self, item):
        while True:
            try:
                self._queue.put_nowait(item)
                return
            except queue.Full:
                try:
                    self._queue.get_nowait()
                    logger.debug(f"Output channel {self.name} full, dropped oldest item")
                except queue.Empty:
                    pass

    def get(self, timeout=None):
        """Block until an item is available (or timeout, raising queue.Empty)."""
        return self._queue.get(timeout=timeout)

    def get_nowait(self):
        return self._queue.get_nowait()

    def drain(self):
        items = []
        while True:
            try:
                items.append(self._queue.get_nowait())
            except queue.Empty:
                return items

    def qsize(self):
        return self._queue.qsize()


class EngineOutputs:
    def __init__(self, maxsize=1000):
        self.alert_triggered = OutputChannel("alert_triggered", maxsize)
        self.alert_resolved = OutputChannel("alert_resolved", maxsize)
        self.bottlenecks_detected = OutputChannel("bottlenecks_detected", maxsize)
        self.performance_analysis = OutputChannel("performance_analysis", maxsize)
        self.capacity_projection = OutputChannel("capacity_projection", maxsize)
