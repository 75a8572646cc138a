"""AlertManager - alert lifecycle: trigger, cooldown, resolve."""
import logging
import threading
import uuid
from dataclasses import replace
from datetime import datetime, timezone

from models.alerts import Alert
from models.enums import AlertStatus

logger = logging.getLogger("perfwatch.alerts.manager")


def _new_alert_id(now):
    return f"alert_{int(now.timestamp() * 1000)}_{uuid.uuid4().hex[:9]}"


class AlertManager:
    """Owns the active-alert map, the alert history, and per-rule last trigger times.

    At most one alert per rule id is active at a time. A rule's cooldown is
    measured from its last trigger, whether or not that alert has resolved.
    """

    def __init__(self, dispatcher=None, outputs=None, clock=None):
        self.dispatcher = dispatcher
        self.outputs = outputs
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self._active = {}
        self._history = []
        self._last_trigger = {}
        self._lock = threading.Lock()

    def _cooldown_elapsed(self, rule, now):
        last = self._last_trigger.get(rule.id)
        if last is None:
            return True
        elapsed_ms = (now - last).total_seconds() * 1000
        return elapsed_ms >= rule.cooldown_ms

    def process(self, evaluations, snapshot, now=None):
        """Apply one tick's rule results. Returns (triggered, resolved) alert lists."""
        now = now or self.clock()
        triggered, resolved = [], []

        with self._lock:
            for ev in evaluations:
                rule = ev.rule
                existing = self._active.get(rule.id)

                if ev.should_alert and existing is None:
                    if not rule.enabled or not self._cooldown_elapsed(rule, now):
                        continue
                    alert = Alert(
                        id=_new_alert_id(now),
                        rule_id=rule.id,
                        rule_name=rule.name,
                        severity=rule.severity,
                        message=rule.description,
                        triggered_at=now,
                        snapshot_at_trigger=snapshot,
                    )
                    self._last_trigger[rule.id] = now
                    self._active[rule.id] = alert
                    self._history.append(alert)
                    triggered.append((alert, rule))
                elif not ev.should_alert and existing is not None:
                    existing.status = AlertStatus.RESOLVED
                    existing.resolved_at = max(now, existing.triggered_at)
                    del self._active[rule.id]
                    resolved.append(existing)

        for alert, rule in triggered:
            logger.warning(f"Alert triggered: {rule.name} [{alert.severity.value}] ({alert.id})")
            if self.dispatcher is not None:
                self.dispatcher.dispatch(alert, rule.channels)
            if self.outputs is not None:
                self.outputs.alert_triggered.publish(replace(alert))

        for alert in resolved:
            duration = (alert.resolved_at - alert.triggered_at).total_seconds()
            logger.info(f"Alert resolved: {alert.rule_name} ({alert.id}) after {duration:.0f}s")
            if self.outputs is not None:
                self.outputs.alert_resolved.publish(replace(alert))

        return [a for a, _ in triggered], resolved

    def last_trigger_time(self, rule_id):
        with self._lock:
            return self._last_trigger.get(rule_id)

    def get_active(self):
        """Point-in-time copies of active alerts."""
        with self._lock:
            return [replace(a) for a in self._active.values()]

    def get_history(self, limit=100):
        """Newest first, as copies."""
        with self._lock:
            ordered = sorted(self._history, key=lambda a: a.triggered_at, reverse=True)
            return [replace(a) for a in ordered[:limit]]

    def active_counts(self):
        counts = {"active": 0}
        for alert in self.get_active():
            counts["active"] += 1
            key = alert.severity.value
            counts[key] = counts.get(key, 0) + 1
        return counts
