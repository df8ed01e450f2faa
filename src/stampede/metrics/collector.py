"""Run-scoped metrics collector.

One ``MetricsCollector`` is created per run and passed by reference to the
executor, the virtual users and the scheduler. It is the only mutable state
those components share. Every series is internally locked, and series
creation is guarded by the collector's own lock, so concurrent recording
from any number of virtual users (or threads) never loses an update.

Example:
    collector = MetricsCollector()
    collector.record(outcome)

    snapshot = collector.snapshot()
    report = collector.evaluate(parse_thresholds({"http_req_failed": ["rate<0.05"]}))
    report.passed
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from stampede.errors import ConfigurationError
from stampede.metrics.series import (
    SERIES_CLASSES,
    CounterSeries,
    GaugeSeries,
    MetricSeries,
    MetricType,
    RateSeries,
    SeriesSnapshot,
    TrendSeries,
)
from stampede.metrics.thresholds import Threshold, ThresholdReport, evaluate_thresholds

if TYPE_CHECKING:
    from stampede.http.outcome import RequestOutcome

logger = logging.getLogger(__name__)

OutcomeListener = Callable[["RequestOutcome"], None]

# Series every collector creates up front
BUILTIN_METRICS: dict[str, MetricType] = {
    "http_reqs": MetricType.COUNTER,
    "http_req_duration": MetricType.TREND,
    "http_req_failed": MetricType.RATE,
    "checks": MetricType.RATE,
    "data_received": MetricType.COUNTER,
    "iterations": MetricType.COUNTER,
    "iteration_duration": MetricType.TREND,
    "scenario_errors": MetricType.COUNTER,
    "vus": MetricType.GAUGE,
    "vus_max": MetricType.GAUGE,
}


def tagged(name: str, **tags: str) -> str:
    """Series name for a tagged sub-metric, e.g. ``http_req_duration{scenario:browse}``."""
    if not tags:
        return name
    selector = ",".join(f"{key}:{value}" for key, value in sorted(tags.items()))
    return f"{name}{{{selector}}}"


@dataclass(frozen=True)
class MetricsSnapshot:
    """Read-only copy of every series, taken at one instant."""

    series: Mapping[str, SeriesSnapshot]
    duration: float
    taken_at: float

    def get(self, name: str) -> SeriesSnapshot | None:
        return self.series.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.series

    def value(self, name: str, aggregation: str) -> float | None:
        """Shortcut for ``snapshot.get(name).aggregate(aggregation)``."""
        series = self.series.get(name)
        if series is None:
            return None
        return series.aggregate(aggregation, self.duration)

    def check_failures(self) -> list[tuple[str, int]]:
        """Failing check names with their counts, most frequent first."""
        prefix = "check_failures{check:"
        failures = [
            (name[len(prefix) : -1], int(series.count))
            for name, series in self.series.items()
            if name.startswith(prefix) and series.count > 0
        ]
        return sorted(failures, key=lambda item: (-item[1], item[0]))

    def to_dict(self) -> dict[str, Any]:
        return {
            "duration": self.duration,
            "taken_at": self.taken_at,
            "metrics": {
                name: {"type": series.type.value, **series.summary(self.duration)}
                for name, series in sorted(self.series.items())
            },
        }


class MetricsCollector:
    """Thread-safe accumulation of request outcomes into named series."""

    def __init__(
        self,
        custom_metric_prefix: str | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize collector.

        Args:
            custom_metric_prefix: When set, also record ``<prefix>errors``,
                ``<prefix>response_time`` and ``<prefix>requests_total``
            clock: Monotonic clock used to measure the run duration
        """
        self.custom_metric_prefix = custom_metric_prefix
        self._clock = clock
        self._started_at = clock()
        self._stopped_at: float | None = None
        self._series: dict[str, MetricSeries] = {}
        self._lock = threading.Lock()
        self._listeners: list[OutcomeListener] = []

        for name, metric_type in BUILTIN_METRICS.items():
            self._get_or_create(name, metric_type)

        if custom_metric_prefix is not None:
            self._get_or_create(f"{custom_metric_prefix}errors", MetricType.RATE)
            self._get_or_create(f"{custom_metric_prefix}response_time", MetricType.TREND)
            self._get_or_create(f"{custom_metric_prefix}requests_total", MetricType.COUNTER)

    # ------------------------------------------------------------------
    # Series access
    # ------------------------------------------------------------------

    def _get_or_create(self, name: str, metric_type: MetricType) -> MetricSeries:
        series = self._series.get(name)
        if series is None:
            with self._lock:
                series = self._series.get(name)
                if series is None:
                    series = SERIES_CLASSES[metric_type](name)
                    self._series[name] = series
        if series.type is not metric_type:
            raise ConfigurationError(
                f"Metric '{name}' is a {series.type.value}, not a {metric_type.value}"
            )
        return series

    def counter(self, name: str) -> CounterSeries:
        return self._get_or_create(name, MetricType.COUNTER)  # type: ignore[return-value]

    def rate(self, name: str) -> RateSeries:
        return self._get_or_create(name, MetricType.RATE)  # type: ignore[return-value]

    def trend(self, name: str) -> TrendSeries:
        return self._get_or_create(name, MetricType.TREND)  # type: ignore[return-value]

    def gauge(self, name: str) -> GaugeSeries:
        return self._get_or_create(name, MetricType.GAUGE)  # type: ignore[return-value]

    def metric_types(self) -> dict[str, MetricType]:
        """Names and types of every series created so far."""
        with self._lock:
            return {name: series.type for name, series in self._series.items()}

    def add_listener(self, listener: OutcomeListener) -> None:
        """Call ``listener`` with every recorded outcome (live exporters)."""
        self._listeners.append(listener)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def record(self, outcome: RequestOutcome) -> None:
        """Record one request outcome into every series it contributes to."""
        self.counter("http_reqs").add()
        self.rate("http_req_failed").add(not outcome.succeeded)
        self.counter("data_received").add(outcome.body_size)

        if outcome.status_code is not None:
            self.trend("http_req_duration").add(outcome.latency_ms)

        for check in outcome.checks:
            self.rate("checks").add(check.passed)
            if not check.passed:
                self.counter(tagged("check_failures", check=check.name)).add()

        if outcome.error_kind is not None:
            self.counter(tagged("request_errors", kind=outcome.error_kind.value)).add()

        if outcome.scenario:
            if outcome.status_code is not None:
                self.trend(tagged("http_req_duration", scenario=outcome.scenario)).add(
                    outcome.latency_ms
                )
            self.rate(tagged("http_req_failed", scenario=outcome.scenario)).add(
                not outcome.succeeded
            )

        prefix = self.custom_metric_prefix
        if prefix is not None:
            self.counter(f"{prefix}requests_total").add()
            self.rate(f"{prefix}errors").add(not outcome.succeeded)
            if outcome.status_code is not None:
                self.trend(f"{prefix}response_time").add(outcome.latency_ms)

        for listener in self._listeners:
            try:
                listener(outcome)
            except Exception as e:
                logger.warning(f"Metrics listener failed: {e}")

    def record_iteration(self, scenario: str, duration_ms: float, failed: bool) -> None:
        """Record one completed virtual-user iteration."""
        self.counter("iterations").add()
        self.trend("iteration_duration").add(duration_ms)
        self.counter(tagged("iterations", scenario=scenario)).add()
        if failed:
            self.counter("scenario_errors").add()
            self.counter(tagged("scenario_errors", scenario=scenario)).add()

    def record_vus(self, active: int) -> None:
        """Record the current number of active virtual users."""
        self.gauge("vus").set(active)
        self.gauge("vus_max").set(max(active, self.gauge("vus_max").value))

    def mark_started(self) -> None:
        """Restart the run clock (called when the first stage begins)."""
        self._started_at = self._clock()
        self._stopped_at = None

    def mark_stopped(self) -> None:
        """Freeze the run duration used by per-second aggregations."""
        if self._stopped_at is None:
            self._stopped_at = self._clock()

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    @property
    def duration(self) -> float:
        end = self._stopped_at if self._stopped_at is not None else self._clock()
        return max(end - self._started_at, 0.0)

    @property
    def total_requests(self) -> int:
        return int(self.counter("http_reqs").value)

    def snapshot(self) -> MetricsSnapshot:
        """Take a read-only snapshot; later recording does not affect it."""
        with self._lock:
            series = list(self._series.values())
        return MetricsSnapshot(
            series=MappingProxyType({s.name: s.snapshot() for s in series}),
            duration=self.duration,
            taken_at=time.time(),
        )

    def evaluate(
        self,
        thresholds: Iterable[Threshold],
        snapshot: MetricsSnapshot | None = None,
    ) -> ThresholdReport:
        """Evaluate thresholds against ``snapshot`` (or a fresh one)."""
        return evaluate_thresholds(snapshot or self.snapshot(), thresholds)
