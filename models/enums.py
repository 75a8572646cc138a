"""Enums for severities, alert lifecycle, channels, and trends."""
from enum import Enum


class Severity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


class AlertStatus(str, Enum):
    ACTIVE = "active"
    RESOLVED = "resolved"


class ChannelKind(str, Enum):
    WEBHOOK = "webhook"
    EMAIL = "email"
    SLACK = "slack"


class NotificationStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class Trend(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
