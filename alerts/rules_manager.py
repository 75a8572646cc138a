"""Built-in alert rule table and per-rule configuration overrides."""
import logging

from models.alerts import AlertRule
from models.enums import ChannelKind, Severity

logger = logging.getLogger("perfwatch.alerts.rules")

DEGRADATION_WINDOW_MS = 3_600_000
DEGRADATION_MIN_SAMPLES = 3


def _above(attr_path, threshold):
    group, field_name = attr_path.split(".")
    return lambda s: getattr(getattr(s, group), field_name) > threshold


def _below(attr_path, threshold):
    group, field_name = attr_path.split(".")
    return lambda s: getattr(getattr(s, group), field_name) < threshold


def _resource_exhaustion(threshold):
    return lambda s: s.resources.mem_pct > threshold or s.resources.cpu_pct > threshold


def _performance_degradation(factor, store):
    """Mean response time over the last hour exceeds factor x this snapshot's own value."""
    def predicate(snapshot):
        if store is None:
            return False
        recent = store.recent(DEGRADATION_WINDOW_MS, now=snapshot.timestamp)
        if len(recent) < DEGRADATION_MIN_SAMPLES:
            return False
        avg = sum(s.performance.avg_response_time_ms for s in recent) / len(recent)
        baseline = snapshot.performance.avg_response_time_ms or avg
        return avg > baseline * factor
    return predicate


# Declaration order is evaluation order.
RULE_DEFINITIONS = [
    {
        "id": "high_response_time",
        "name": "High Response Time",
        "description": "Average response time exceeds threshold",
        "severity": Severity.WARNING,
        "channels": (ChannelKind.WEBHOOK, ChannelKind.EMAIL),
        "cooldown_ms": 300_000,
        "threshold_key": "response_time_ms",
        "make": lambda t, store: _above("performance.avg_response_time_ms", t),
    },
    {
        "id": "high_error_rate",
        "name": "High Error Rate",
        "description": "Error rate exceeds acceptable threshold",
        "severity": Severity.CRITICAL,
        "channels": (ChannelKind.WEBHOOK, ChannelKind.EMAIL, ChannelKind.SLACK),
        "cooldown_ms": 180_000,
        "threshold_key": "error_rate_pct",
        "make": lambda t, store: _above("performance.error_rate_pct", t),
    },
    {
        "id": "low_throughput",
        "name": "Low Throughput",
        "description": "System throughput is below expected levels",
        "severity": Severity.WARNING,
        "channels": (ChannelKind.WEBHOOK,),
        "cooldown_ms": 600_000,
        "threshold_key": "throughput_rps",
        "make": lambda t, store: _below("performance.throughput_rps", t),
    },
    {
        "id": "circuit_breaker_open",
        "name": "Circuit Breaker Open",
        "description": "Circuit breaker is open, indicating service issues",
        "severity": Severity.CRITICAL,
        "channels": (ChannelKind.WEBHOOK, ChannelKind.EMAIL, ChannelKind.SLACK),
        "cooldown_ms": 120_000,
        "threshold_key": None,
        "default_threshold": 0,
        "make": lambda t, store: _above("performance.open_circuit_breakers", t),
    },
    {
        "id": "capacity_limit",
        "name": "Approaching Capacity Limit",
        "description": "System capacity is approaching limits",
        "severity": Severity.WARNING,
        "channels": (ChannelKind.WEBHOOK, ChannelKind.EMAIL),
        "cooldown_ms": 600_000,
        "threshold_key": "capacity_pct",
        "make": lambda t, store: _above("capacity.utilization_pct", t),
    },
    {
        "id": "security_anomaly",
        "name": "Security Anomaly Detected",
        "description": "Security anomaly detected in traffic patterns",
        "severity": Severity.CRITICAL,
        "channels": (ChannelKind.WEBHOOK, ChannelKind.EMAIL, ChannelKind.SLACK),
        "cooldown_ms": 300_000,
        "threshold_key": "security_score",
        "make": lambda t, store: _below("security.security_score", t),
    },
    {
        "id": "resource_exhaustion",
        "name": "Resource Exhaustion",
        "description": "System resources are severely constrained",
        "severity": Severity.CRITICAL,
        "channels": (ChannelKind.WEBHOOK, ChannelKind.EMAIL, ChannelKind.SLACK),
        "cooldown_ms": 120_000,
        "threshold_key": "resource_pct",
        "make": lambda t, store: _resource_exhaustion(t),
    },
    {
        "id": "performance_degradation",
        "name": "Performance Degradation",
        "description": "Performance has degraded over time",
        "severity": Severity.WARNING,
        "channels": (ChannelKind.WEBHOOK,),
        "cooldown_ms": 900_000,
        "threshold_key": "degradation_factor",
        "make": lambda t, store: _performance_degradation(t, store),
    },
]

DEFAULT_THRESHOLDS = {
    "response_time_ms": 2000,
    "error_rate_pct": 5,
    "throughput_rps": 100,
    "capacity_pct": 90,
    "security_score": 50,
    "resource_pct": 90,
    "degradation_factor": 1.5,
}


class RulesManager:
    """Builds the fixed rule table once at startup.

    Rules are not mutated afterwards; overrides only apply at construction.
    """

    def __init__(self, config=None, store=None):
        config = config or {}
        self.thresholds = {**DEFAULT_THRESHOLDS, **(config.get("thresholds") or {})}
        self.overrides = (config.get("alerts") or {}).get("rules") or {}
        self.store = store
        self.rules = self._build_rules()
        logger.info(f"Loaded {len(self.rules)} rules ({len(self.get_enabled_rules())} enabled)")

    def _build_rules(self):
        known_ids = {d["id"] for d in RULE_DEFINITIONS}
        for rule_id in self.overrides:
            if rule_id not in known_ids:
                logger.warning(f"Override for unknown rule ignored: {rule_id}")

        rules = []
        for definition in RULE_DEFINITIONS:
            override = self.overrides.get(definition["id"]) or {}
            key = definition["threshold_key"]
            threshold = self.thresholds[key] if key else definition["default_threshold"]
            threshold = float(override.get("threshold", threshold))

            rules.append(AlertRule(
                id=definition["id"],
                name=definition["name"],
                description=definition["description"],
                predicate=definition["make"](threshold, self.store),
                severity=self._parse_severity(definition, override),
                channels=self._parse_channels(definition, override),
                cooldown_ms=int(override.get("cooldown_ms", definition["cooldown_ms"])),
                enabled=bool(override.get("enabled", True)),
                threshold=threshold,
            ))
        return rules

    def _parse_severity(self, definition, override):
        raw = override.get("severity")
        if raw is None:
            return definition["severity"]
        try:
            return Severity(str(raw).lower())
        except ValueError:
            logger.warning(f"Invalid severity in rule {definition['id']}: {raw}")
            return definition["severity"]

    def _parse_channels(self, definition, override):
        raw = override.get("channels")
        if raw is None:
            return frozenset(definition["channels"])
        channels = set()
        for name in raw:
            try:
                channels.add(ChannelKind(str(name).lower()))
            except ValueError:
                logger.warning(f"Unknown channel in rule {definition['id']}: {name}")
        return frozenset(channels)

    def get_enabled_rules(self):
        return [r for r in self.rules if r.enabled]

    def get_rule(self, rule_id):
        for r in self.rules:
            if r.id == rule_id:
                return r
        return None

    def get_all_rules(self):
        return self.rules
