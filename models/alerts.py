"""Dataclasses for alert rules, alerts, and notification records."""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Optional

from models.enums import AlertStatus, NotificationStatus, Severity


@dataclass
class AlertRule:
    id: str = ""
    name: str = ""
    predicate: Optional[Callable] = None
    severity: Severity = Severity.INFO
    channels: frozenset = frozenset()
    cooldown_ms: int = 300_000
    enabled: bool = True
    threshold: Optional[float] = None
    description: str = ""


@dataclass
class RuleEvaluation:
    rule: AlertRule
    should_alert: bool
    error: Optional[str] = None


@dataclass
class Alert:
    id: str = ""
    rule_id: str = ""
    rule_name: str = ""
    severity: Severity = Severity.INFO
    message: str = ""
    triggered_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    snapshot_at_trigger: Optional[object] = None
    status: AlertStatus = AlertStatus.ACTIVE
    acknowledged: bool = False
    resolved_at: Optional[datetime] = None

    def to_dict(self):
        snap = self.snapshot_at_trigger
        return {
            "id": self.id,
            "rule_id": self.rule_id,
            "rule_name": self.rule_name,
            "severity": self.severity.value,
            "message": self.message,
            "triggered_at": self.triggered_at.isoformat(),
            "status": self.status.value,
            "acknowledged": self.acknowledged,
            "resolved_at": self.resolved_at.isoformat() if self.resolved_at else None,
            "metrics": snap.to_dict() if snap is not None else None,
        }


@dataclass
class NotificationRecord:
    alert_id: str
    channel: str
    status: NotificationStatus
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    error_detail: Optional[str] = None

    def to_dict(self):
        return {
            "alert_id": self.alert_id,
            "channel": self.channel,
            "status": self.status.value,
            "timestamp": self.timestamp.isoformat(),
            "error_detail": self.error_detail,
        }


@dataclass
class BottleneckReport:
    type: str
    severity: str
    current_value: float
    threshold_value: float
    impact_description: str
    description: str = ""
    recommendations: list = field(default_factory=list)
    detected_at: Optional[datetime] = None

    def to_dict(self):
        return {
            "type": self.type,
            "severity": self.severity,
            "description": self.description,
            "current_value": self.current_value,
            "threshold_value": self.threshold_value,
            "impact_description": self.impact_description,
            "recommendations": list(self.recommendations),
            "detected_at": self.detected_at.isoformat() if self.detected_at else None,
        }
