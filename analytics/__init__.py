"""Read-only analyses over snapshots and the retained time series."""
from analytics.bottlenecks import BottleneckDetector
from analytics.trends import TrendAnalyzer
from analytics.capacity import CapacityProjector
from analytics.health import HealthScorer
