"""Data models."""
from models.enums import Severity, AlertStatus, ChannelKind, NotificationStatus, Trend, RiskLevel
from models.metrics import (
    PerformanceMetrics, ResourceMetrics, SecurityMetrics, CapacityMetrics, TrafficMetrics, MetricSnapshot,
)
from models.alerts import AlertRule, RuleEvaluation, Alert, NotificationRecord, BottleneckReport
