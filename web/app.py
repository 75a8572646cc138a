"""
Flask query surface for the analytics engine.

All endpoints are read-only and live under /api/analytics:
  GET performance/overview      current snapshot, trends, bottlenecks, recommendations
  GET performance/bottlenecks   latest 50 bottleneck reports, newest first
  GET users/behavior            user behaviour analysis from the metrics provider
  GET capacity/planning         current capacity, projections, recommendations
  GET cost/analysis             accrued cost proxy and projections
  GET alerts/active             currently active alerts
  GET alerts/history?limit=N    alert history, newest first (default 100)
  GET predictive/traffic        traffic forecast
  GET health/score              health score, grade, and status
  GET compliance/report         compliance summary

Success: {"success": true, "data": ..., "generatedAt": ISO8601} (HTTP 200)
Failure: {"success": false, "message": ..., "error": ...}         (HTTP 500)
"""
import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, Flask, g, jsonify, request

from monitor.telemetry import LocalTelemetrySource

logger = logging.getLogger("perfwatch.web.app")


def _envelope(fetch, failure_message):
    try:
        data = fetch()
    except Exception as e:
        logger.error(f"{failure_message}: {e}")
        return jsonify({"success": False, "message": failure_message, "error": str(e)}), 500
    return jsonify({
        "success": True,
        "data": data,
        "generatedAt": datetime.now(timezone.utc).isoformat(),
    })


def create_analytics_blueprint(engine) -> Blueprint:
    bp = Blueprint("analytics", __name__)

    @bp.route("/performance/overview")
    def performance_overview():
        return _envelope(engine.performance_overview, "Failed to get performance overview")

    @bp.route("/performance/bottlenecks")
    def performance_bottlenecks():
        return _envelope(lambda: engine.bottlenecks(limit=50), "Failed to get bottlenecks")

    @bp.route("/users/behavior")
    def users_behavior():
        return _envelope(engine.user_behavior, "Failed to get user behavior analytics")

    @bp.route("/capacity/planning")
    def capacity_planning():
        return _envelope(engine.capacity_planning, "Failed to get capacity planning")

    @bp.route("/cost/analysis")
    def cost_analysis():
        return _envelope(engine.cost_analysis, "Failed to get cost analysis")

    @bp.route("/alerts/active")
    def alerts_active():
        return _envelope(engine.active_alerts, "Failed to get active alerts")

    @bp.route("/alerts/history")
    def alerts_history():
        def fetch():
            limit = request.args.get("limit", type=int) or 100
            return engine.alert_history(limit=max(1, limit))
        return _envelope(fetch, "Failed to get alert history")

    @bp.route("/predictive/traffic")
    def predictive_traffic():
        return _envelope(engine.traffic_forecast, "Failed to get traffic forecast")

    @bp.route("/health/score")
    def health_score():
        return _envelope(engine.health_score, "Failed to calculate health score")

    @bp.route("/compliance/report")
    def compliance_report():
        return _envelope(engine.compliance_report, "Failed to generate compliance report")

    return bp


def create_app(config: dict, engine) -> Flask:
    """
    Factory function. Receives an initialized AnalyticsEngine from main.py / wsgi.py.

    When the engine reads a LocalTelemetrySource, every request served by
    this app is recorded into it as a completed-request event.
    """
    app = Flask(__name__)
    app.register_blueprint(create_analytics_blueprint(engine), url_prefix="/api/analytics")

    source = getattr(engine, "source", None)
    if isinstance(source, LocalTelemetrySource):
        @app.before_request
        def _start_timer():
            g.request_started = time.perf_counter()
            source.request_started()

        @app.after_request
        def _record_request(response):
            started = g.pop("request_started", None)
            if started is not None:
                duration_ms = (time.perf_counter() - started) * 1000
                source.record_request(duration_ms, response.status_code, request.method, request.path)
            return response

    @app.route("/health")
    def liveness():
        return jsonify({"status": "ok"})

    return app
