"""AnalyticsEngine - central orchestrator for sampling, alerting, and analysis."""
import logging
import threading
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

from alerts.engine import RuleEngine
from alerts.manager import AlertManager
from alerts.rules_manager import DEFAULT_THRESHOLDS, RulesManager
from analytics import reports
from analytics.bottlenecks import BottleneckDetector
from analytics.capacity import CapacityProjector
from analytics.health import HealthScorer
from analytics.trends import MIN_MEANINGFUL_SAMPLES, SELECTORS, TrendAnalyzer
from models.metrics import MetricSnapshot
from monitor.outputs import EngineOutputs
from monitor.provider import StubMetricsProvider
from monitor.scheduler import EngineScheduler
from monitor.snapshot import MetricSnapshotBuilder
from monitor.store import DEFAULT_RETENTION_MS, TimeSeriesStore
from notifications.channels import build_channels
from notifications.dispatcher import NotificationDispatcher, NotificationLog

logger = logging.getLogger("perfwatch.engine")

HOUR_MS = 3_600_000
DAY_MS = 24 * HOUR_MS
TRAFFIC_BASELINE_MIN_SAMPLES = 10


@dataclass
class TickResult:
    snapshot: MetricSnapshot
    evaluations: list = field(default_factory=list)
    triggered: list = field(default_factory=list)
    resolved: list = field(default_factory=list)
    bottlenecks: list = field(default_factory=list)


class AnalyticsEngine:
    """Owns the store, alert state, and both scheduled loops.

    tick() is non-overlapping: a call made while another tick is running
    returns None instead of waiting. Query methods only read copies and may
    run concurrently with ticks.
    """

    def __init__(self, source, config=None, provider=None, channels=None, clock=None):
        config = config or {}
        ecfg = config.get("engine", {})
        self.config = config
        self.source = source
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.tick_interval_ms = ecfg.get("tick_interval_ms", 60_000)
        self.predictive_interval_ms = ecfg.get("predictive_interval_ms", 300_000)
        self.retention_ms = ecfg.get("retention_period_ms", DEFAULT_RETENTION_MS)
        self.thresholds = {**DEFAULT_THRESHOLDS, **(config.get("thresholds") or {})}

        self.outputs = EngineOutputs(maxsize=ecfg.get("output_queue_size", 1000))
        self.store = TimeSeriesStore(self.retention_ms, clock=self.clock)
        self.provider = provider or StubMetricsProvider(seed=(config.get("provider") or {}).get("seed"))
        self.builder = MetricSnapshotBuilder(
            source, self.store, self.provider,
            timeout_seconds=ecfg.get("telemetry_timeout_ms", 5000) / 1000.0,
            clock=self.clock,
        )

        self.rules = RulesManager(config, store=self.store)
        self.rule_engine = RuleEngine(self.rules)
        self.notification_log = NotificationLog()
        self.dispatcher = NotificationDispatcher(
            channels if channels is not None else build_channels(config),
            log=self.notification_log,
            max_workers=(config.get("channels") or {}).get("max_workers", 8),
            clock=self.clock,
        )
        self.alerts = AlertManager(self.dispatcher, self.outputs, clock=self.clock)

        self.bottleneck_detector = BottleneckDetector(self.thresholds["response_time_ms"])
        self.trend_analyzer = TrendAnalyzer()
        self.capacity_projector = CapacityProjector()
        self.health_scorer = HealthScorer()
        self.cost = reports.CostTracker(self.tick_interval_ms)

        self._tick_lock = threading.Lock()
        self._predictive_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._bottleneck_log = deque()  # (timestamp, [BottleneckReport])
        self._performance_analysis = None
        self._user_behavior = {}
        self._capacity_projections = {name: {} for name in ("short_term", "medium_term", "long_term")}
        self._traffic_baseline = None

        self.scheduler = EngineScheduler(
            self.tick, self.predictive_pass,
            tick_interval_ms=self.tick_interval_ms,
            predictive_interval_ms=self.predictive_interval_ms,
        )

    # ── lifecycle ────────────────────────────────────

    def start(self):
        self.scheduler.start()

    def shutdown(self, timeout=10.0):
        """Stop scheduling, let an in-flight tick finish, then release workers."""
        self.scheduler.stop()
        acquired = self._tick_lock.acquire(timeout=timeout)
        if not acquired:
            logger.warning(f"In-flight tick still running after {timeout}s, shutting down anyway")
        try:
            self.dispatcher.shutdown(wait=False)
            self.builder.close()
        finally:
            if acquired:
                self._tick_lock.release()
        logger.info("Analytics engine shut down")

    # ── tick loop ────────────────────────────────────

    def tick(self, now=None) -> Optional[TickResult]:
        """Sample, retain, evaluate, and update alert state once."""
        if not self._tick_lock.acquire(blocking=False):
            logger.warning("Tick skipped: previous tick still running")
            return None
        try:
            now = now or self.clock()
            snapshot = self.builder.build(now)
            self.store.insert(snapshot)
            evaluations = self.rule_engine.evaluate(snapshot)
            triggered, resolved = self.alerts.process(evaluations, snapshot, now)
            result = TickResult(snapshot, evaluations, triggered, resolved)

            try:
                result.bottlenecks = self._analyze(snapshot, now)
            except Exception as e:
                logger.warning(f"Tick analysis failed: {e}")
            return result
        finally:
            self._tick_lock.release()

    def _analyze(self, snapshot, now):
        bottlenecks = self.bottleneck_detector.detect(snapshot)
        cutoff = now - timedelta(milliseconds=self.retention_ms)
        with self._state_lock:
            self._bottleneck_log.append((now, bottlenecks))
            while self._bottleneck_log and self._bottleneck_log[0][0] <= cutoff:
                self._bottleneck_log.popleft()
        if bottlenecks:
            self.outputs.bottlenecks_detected.publish(list(bottlenecks))

        recent = self.store.recent(HOUR_MS, now=now)
        if len(recent) >= MIN_MEANINGFUL_SAMPLES:
            analysis = {
                "generated_at": now.isoformat(),
                "samples": len(recent),
                "trends": self.trend_analyzer.performance_trends(recent),
            }
            with self._state_lock:
                self._performance_analysis = analysis
            self.outputs.performance_analysis.publish(analysis)

        behavior = self.provider.user_behavior()
        with self._state_lock:
            self._user_behavior = behavior

        if not snapshot.degraded:
            self.cost.accrue(snapshot)
        return bottlenecks

    # ── predictive loop ──────────────────────────────

    def predictive_pass(self, now=None):
        """Refresh capacity projections and the traffic baseline."""
        if not self._predictive_lock.acquire(blocking=False):
            logger.warning("Predictive pass skipped: previous pass still running")
            return None
        try:
            now = now or self.clock()
            projections = self.capacity_projector.projections(self.store.all())

            day = self.store.recent(DAY_MS, now=now)
            baseline = None
            if len(day) > TRAFFIC_BASELINE_MIN_SAMPLES:
                baseline = sum(s.traffic.requests_per_second for s in day) / len(day)

            with self._state_lock:
                self._capacity_projections = projections
                if baseline is not None:
                    self._traffic_baseline = baseline

            if any(projections.values()):
                self.outputs.capacity_projection.publish(projections)
            return projections
        finally:
            self._predictive_lock.release()

    # ── queries (read-only) ──────────────────────────

    def latest_snapshot(self):
        return self.store.latest()

    def performance_overview(self):
        current = self.store.latest()
        recent = self.store.recent(HOUR_MS)
        with self._state_lock:
            all_bottlenecks = [b.to_dict() for _, reports_ in self._bottleneck_log for b in reports_]
        counts = self.alerts.active_counts()
        return {
            "current": current.to_dict() if current else None,
            "trends": self.trend_analyzer.performance_trends(recent),
            "bottlenecks": all_bottlenecks,
            "alerts": {
                "active": counts.get("active", 0),
                "critical": counts.get("critical", 0),
                "warning": counts.get("warning", 0),
            },
            "recommendations": reports.recommendations(current, self.thresholds["response_time_ms"]),
        }

    def bottlenecks(self, limit=50):
        """Most recent bottleneck reports, newest first."""
        with self._state_lock:
            entries = list(self._bottleneck_log)
        flat = [b for _, reports_ in reversed(entries) for b in reports_]
        return [b.to_dict() for b in flat[:limit]]

    def user_behavior(self):
        with self._state_lock:
            return dict(self._user_behavior)

    def capacity_planning(self):
        current = self.store.latest()
        with self._state_lock:
            projections = dict(self._capacity_projections)
        return {
            "current": self.capacity_projector.current(current),
            "projections": projections,
            "recommendations": self.capacity_projector.recommendations(current, projections),
        }

    def cost_analysis(self):
        return self.cost.report()

    def active_alerts(self):
        return [a.to_dict() for a in self.alerts.get_active()]

    def alert_history(self, limit=100):
        return [a.to_dict() for a in self.alerts.get_history(limit)]

    def notifications(self, alert_id=None):
        return [r.to_dict() for r in self.notification_log.records(alert_id)]

    def traffic_forecast(self):
        with self._state_lock:
            baseline = self._traffic_baseline
        day = self.store.recent(DAY_MS)
        trend = self.trend_analyzer.trend(day, SELECTORS["throughput"]).value
        return reports.traffic_forecast(self.store.latest(), baseline, trend)

    def health_score(self):
        current = self.store.latest()
        if current is None:
            return None
        return self.health_scorer.score(current)

    def compliance_report(self):
        scaling_events = 0
        try:
            state = self.source.get_scaling_state() or {}
            scaling_events = (state.get("state") or {}).get("consecutive_actions", 0)
        except Exception as e:
            logger.debug(f"Scaling state unavailable for compliance report: {e}")
        return reports.compliance_report(self.store.latest(), self.thresholds, scaling_events)
