"""Tests for the AnalyticsEngine pipeline, its outputs, and the scheduler."""
import threading
import time
from unittest.mock import MagicMock

import pytest

from models.enums import ChannelKind, NotificationStatus
from monitor.scheduler import EngineScheduler


def _run_ticks(engine, clock, count, step_ms=60_000):
    results = []
    for _ in range(count):
        results.append(engine.tick())
        clock.advance(step_ms)
    return results


# ── Tick pipeline ───────────────────────────────────────

def test_tick_stores_snapshot(engine, clock):
    result = engine.tick()
    assert result.snapshot.timestamp == clock()
    assert engine.latest_snapshot() is result.snapshot
    assert len(engine.store) == 1
    assert len(result.evaluations) == 8
    assert result.triggered == []


def test_tick_triggers_and_notifies(engine, fake_source, mock_channels):
    fake_source.latest["performance"]["average_response_time"] = 2500
    result = engine.tick()
    assert [a.rule_id for a in result.triggered] == ["high_response_time"]
    assert [b.type for b in result.bottlenecks] == ["response_time"]

    engine.dispatcher.shutdown(wait=True)
    mock_channels[ChannelKind.WEBHOOK].send.assert_called_once()
    mock_channels[ChannelKind.EMAIL].send.assert_called_once()
    mock_channels[ChannelKind.SLACK].send.assert_not_called()
    statuses = {r["channel"]: r["status"] for r in engine.notifications(result.triggered[0].id)}
    assert statuses == {"webhook": "sent", "email": "sent"}


def test_failed_channel_recorded_not_raised(engine, fake_source, mock_channels):
    mock_channels[ChannelKind.SLACK].send.side_effect = RuntimeError("slack down")
    fake_source.latest["performance"]["error_rate"] = 20.0
    result = engine.tick()
    alert_id = result.triggered[0].id
    engine.dispatcher.shutdown(wait=True)
    assert engine.notification_log.get(alert_id, "slack").status == NotificationStatus.FAILED
    assert engine.notification_log.get(alert_id, "webhook").status == NotificationStatus.SENT


def test_tick_resolves_when_condition_clears(engine, fake_source, clock):
    fake_source.latest["performance"]["average_response_time"] = 2500
    engine.tick()
    clock.advance(60_000)
    fake_source.latest["performance"]["average_response_time"] = 500
    result = engine.tick()
    assert [a.rule_id for a in result.resolved] == ["high_response_time"]
    assert engine.active_alerts() == []
    assert engine.alert_history()[0]["status"] == "resolved"


def test_degraded_tick_still_stored(engine, fake_source):
    fake_source.fail = True
    result = engine.tick()
    assert result.snapshot.degraded is True
    assert engine.latest_snapshot().degraded is True
    assert engine.cost_analysis()["infrastructure"]["compute"] == 0.0


def test_overlapping_tick_is_skipped(engine, fake_source):
    entered = threading.Event()
    release = threading.Event()
    original = fake_source.get_latest_metrics

    def blocking():
        entered.set()
        release.wait(timeout=5)
        return original()

    fake_source.get_latest_metrics = blocking
    results = {}
    t = threading.Thread(target=lambda: results.setdefault("first", engine.tick()))
    t.start()
    assert entered.wait(timeout=5)
    assert engine.tick() is None
    release.set()
    t.join(timeout=5)
    assert results["first"] is not None
    assert len(engine.store) == 1


def test_tick_publishes_outputs(engine, fake_source, clock):
    fake_source.latest["performance"]["average_response_time"] = 2500
    _run_ticks(engine, clock, 5)
    assert engine.outputs.alert_triggered.qsize() == 1
    batches = engine.outputs.bottlenecks_detected.drain()
    assert len(batches) == 5
    assert all(b[0].type == "response_time" for b in batches)
    analysis = engine.outputs.performance_analysis.get_nowait()
    assert analysis["samples"] == 5
    assert set(analysis["trends"]) == {"response_time", "throughput", "error_rate"}


def test_cost_accrues_per_healthy_tick(engine, clock):
    _run_ticks(engine, clock, 3)
    # cpu 35 + mem 40 per tick
    assert engine.cost_analysis()["infrastructure"]["compute"] == pytest.approx(3 * 0.075)


# ── Predictive pass ─────────────────────────────────────

def test_predictive_pass_insufficient_data(engine, clock):
    _run_ticks(engine, clock, 5)
    projections = engine.predictive_pass()
    assert projections == {"short_term": {}, "medium_term": {}, "long_term": {}}
    assert engine.outputs.capacity_projection.qsize() == 0


def test_predictive_pass_projects_and_sets_baseline(engine, clock):
    _run_ticks(engine, clock, 30)
    projections = engine.predictive_pass()
    assert list(projections["medium_term"]) == [f"day_{d}" for d in range(1, 8)]
    assert engine.outputs.capacity_projection.get_nowait() == projections
    assert engine.traffic_forecast()["baseline_rps"] == pytest.approx(250.0)
    assert engine.capacity_planning()["projections"] == projections


# ── Queries ─────────────────────────────────────────────

def test_queries_before_first_tick(engine):
    assert engine.health_score() is None
    assert engine.performance_overview()["current"] is None
    assert engine.bottlenecks() == []
    assert engine.active_alerts() == []
    assert engine.compliance_report()["uptime"] is None


def test_performance_overview(engine, fake_source):
    fake_source.latest["performance"]["average_response_time"] = 2500
    engine.tick()
    overview = engine.performance_overview()
    assert overview["current"]["performance"]["avg_response_time_ms"] == 2500
    assert overview["alerts"] == {"active": 1, "critical": 0, "warning": 1}
    assert overview["bottlenecks"][0]["type"] == "response_time"
    assert overview["recommendations"][0]["title"] == "Optimize Response Time"


def test_bottlenecks_newest_first_and_limited(engine, fake_source, clock):
    for rt in (2100, 2200, 2300):
        fake_source.latest["performance"]["average_response_time"] = rt
        engine.tick()
        clock.advance(60_000)
    values = [b["current_value"] for b in engine.bottlenecks(limit=2)]
    assert values == [2300, 2200]


def test_health_score_and_compliance(engine):
    engine.tick()
    score = engine.health_score()
    assert 0 <= score["overall"] <= 100
    assert score["grade"] in {"A", "B", "C", "D", "F"}
    assert engine.compliance_report()["capacity"]["scaling_events"] == 2


def test_user_behavior_from_provider(engine):
    engine.tick()
    behavior = engine.user_behavior()
    assert set(behavior) == {"patterns", "engagement", "retention", "conversion", "segmentation"}


# ── Scheduler ───────────────────────────────────────────

def test_scheduler_fires_first_tick_and_stops():
    tick = MagicMock()
    predictive = MagicMock()
    sched = EngineScheduler(tick, predictive, tick_interval_ms=60_000, predictive_interval_ms=300_000,
                            poll_seconds=0.01)
    sched.start()
    try:
        deadline = time.monotonic() + 5
        while not tick.called and time.monotonic() < deadline:
            time.sleep(0.01)
        assert tick.call_count == 1
        assert sched.running
    finally:
        sched.stop()
    assert not sched.running
    predictive.assert_not_called()


def test_scheduler_skips_job_still_in_flight():
    release = threading.Event()
    calls = []

    def slow_tick():
        calls.append(1)
        release.wait(timeout=5)

    sched = EngineScheduler(slow_tick, MagicMock(), poll_seconds=0.01)
    sched.start()
    try:
        deadline = time.monotonic() + 5
        while not calls and time.monotonic() < deadline:
            time.sleep(0.01)
        time.sleep(0.05)
        sched._launch("tick")
        sched._launch("tick")
        assert len(calls) == 1
    finally:
        release.set()
        sched.stop()


def test_scheduler_survives_job_failure():
    tick = MagicMock(side_effect=RuntimeError("boom"))
    sched = EngineScheduler(tick, MagicMock(), poll_seconds=0.01)
    sched.start()
    try:
        deadline = time.monotonic() + 5
        while not tick.called and time.monotonic() < deadline:
            time.sleep(0.01)
        time.sleep(0.05)
        assert sched._consecutive_failures["tick"] == 1
    finally:
        sched.stop()


def test_scheduler_launches_nothing_after_stop():
    tick = MagicMock()
    predictive = MagicMock()
    sched = EngineScheduler(tick, predictive, poll_seconds=0.01)
    sched.start()
    deadline = time.monotonic() + 5
    while not tick.called and time.monotonic() < deadline:
        time.sleep(0.01)
    sched.stop()
    tick.reset_mock()

    sched._launch("tick")
    sched._launch("predictive")
    time.sleep(0.05)
    tick.assert_not_called()
    predictive.assert_not_called()


def test_shutdown_waits_for_in_flight_tick(engine, fake_source, mock_channels):
    fake_source.latest["performance"]["average_response_time"] = 2500
    entered = threading.Event()
    release = threading.Event()
    original = fake_source.get_latest_metrics

    def blocking():
        entered.set()
        release.wait(timeout=5)
        return original()

    fake_source.get_latest_metrics = blocking
    results = {}

    def run_tick():
        try:
            results["tick"] = engine.tick()
        except Exception as e:
            results["error"] = e

    ticker = threading.Thread(target=run_tick)
    ticker.start()
    assert entered.wait(timeout=5)
    stopper = threading.Thread(target=engine.shutdown)
    stopper.start()
    time.sleep(0.1)
    assert stopper.is_alive()

    release.set()
    ticker.join(timeout=5)
    stopper.join(timeout=5)
    assert "error" not in results
    assert [a.rule_id for a in results["tick"].triggered] == ["high_response_time"]
    assert engine.outputs.alert_triggered.qsize() == 1
    engine.dispatcher.shutdown(wait=True)
    mock_channels[ChannelKind.WEBHOOK].send.assert_called_once()


def test_engine_start_and_shutdown(engine):
    engine.start()
    assert engine.scheduler.running
    engine.shutdown()
    assert not engine.scheduler.running


def test_tick_at_same_timestamp_not_duplicated(engine):
    engine.tick()
    engine.tick()
    assert len(engine.store) == 1
