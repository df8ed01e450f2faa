"""Metrics collection and threshold evaluation.

Provides:
- Counter, rate, trend and gauge series (k6 semantics)
- A run-scoped, thread-safe collector with read-only snapshots
- k6-style threshold parsing and end-of-run evaluation
- Optional live Prometheus exposure
"""

from stampede.metrics.collector import (
    BUILTIN_METRICS,
    MetricsCollector,
    MetricsSnapshot,
    tagged,
)
from stampede.metrics.prometheus import PrometheusExporter
from stampede.metrics.series import (
    CounterSeries,
    GaugeSeries,
    MetricType,
    RateSeries,
    SeriesSnapshot,
    TrendSeries,
    percentile,
)
from stampede.metrics.thresholds import (
    Threshold,
    ThresholdReport,
    ThresholdResult,
    evaluate_thresholds,
    parse_threshold,
    parse_thresholds,
    validate_thresholds,
)

__all__ = [
    # Collector
    "BUILTIN_METRICS",
    "MetricsCollector",
    "MetricsSnapshot",
    "tagged",
    # Series
    "CounterSeries",
    "GaugeSeries",
    "MetricType",
    "RateSeries",
    "SeriesSnapshot",
    "TrendSeries",
    "percentile",
    # Thresholds
    "Threshold",
    "ThresholdReport",
    "ThresholdResult",
    "evaluate_thresholds",
    "parse_threshold",
    "parse_thresholds",
    "validate_thresholds",
    # Live exposure
    "PrometheusExporter",
]
