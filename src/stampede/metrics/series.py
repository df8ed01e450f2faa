"""Metric series and their immutable snapshots.

Four series types, following k6 semantics:
- counter: monotonically increasing total
- rate: fraction of added values that were true (``hits / total``)
- trend: every sample is kept so any percentile can be answered at the end
- gauge: last value set, with min and max

Each series guards its own state with a lock, so concurrent ``add`` calls
from many virtual users never lose an update.
"""

from __future__ import annotations

import math
import re
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Any

_PERCENTILE = re.compile(r"^p\((\d+(?:\.\d+)?)\)$")


class MetricType(str, Enum):
    """Kind of metric series."""

    COUNTER = "counter"
    RATE = "rate"
    TREND = "trend"
    GAUGE = "gauge"


# Aggregations a threshold may use for each series type. ``p(N)`` is
# handled separately for trends.
AGGREGATIONS: dict[MetricType, frozenset[str]] = {
    MetricType.COUNTER: frozenset({"count", "rate"}),
    MetricType.RATE: frozenset({"rate"}),
    MetricType.TREND: frozenset({"avg", "min", "max", "med", "count"}),
    MetricType.GAUGE: frozenset({"value", "min", "max"}),
}


def supports_aggregation(metric_type: MetricType, aggregation: str) -> bool:
    """Check whether ``aggregation`` applies to ``metric_type``."""
    if metric_type is MetricType.TREND and _PERCENTILE.match(aggregation):
        return True
    return aggregation in AGGREGATIONS[metric_type]


def percentile(sorted_samples: tuple[float, ...] | list[float], pct: float) -> float:
    """Percentile with linear interpolation between closest ranks.

    Args:
        sorted_samples: Samples in ascending order (must not be empty)
        pct: Percentile in the range 0-100
    """
    if not sorted_samples:
        raise ValueError("Cannot compute a percentile of an empty series")
    if not 0 <= pct <= 100:
        raise ValueError(f"Percentile must be between 0 and 100: {pct}")

    rank = (pct / 100) * (len(sorted_samples) - 1)
    lower = math.floor(rank)
    upper = math.ceil(rank)
    if lower == upper:
        return sorted_samples[lower]
    weight = rank - lower
    return sorted_samples[lower] + (sorted_samples[upper] - sorted_samples[lower]) * weight


@dataclass(frozen=True)
class SeriesSnapshot:
    """Read-only view of one series at a point in time.

    ``count`` is the counter total for counters, the number of added values
    for rates, and the number of samples for trends.
    """

    name: str
    type: MetricType
    count: float = 0
    hits: int = 0
    value: float = 0.0
    minimum: float | None = None
    maximum: float | None = None
    samples: tuple[float, ...] = ()

    @property
    def has_data(self) -> bool:
        """Whether anything was ever recorded into the series."""
        if self.type is MetricType.GAUGE:
            return self.maximum is not None
        return self.count > 0

    @property
    def rate(self) -> float:
        """Fraction of true values (rate series only)."""
        if self.count == 0:
            return 0.0
        return self.hits / self.count

    @property
    def avg(self) -> float:
        if not self.samples:
            return 0.0
        return math.fsum(self.samples) / len(self.samples)

    def aggregate(self, aggregation: str, duration: float = 0.0) -> float | None:
        """Compute an aggregation, or ``None`` if the series has no data.

        Args:
            aggregation: ``avg``, ``p(95)``, ``rate``, ``count``...
            duration: Run length in seconds (for a counter's per-second rate)

        Raises:
            ValueError: If the aggregation does not apply to this series type
        """
        if not supports_aggregation(self.type, aggregation):
            raise ValueError(
                f"Aggregation '{aggregation}' is not supported for "
                f"{self.type.value} metric '{self.name}'"
            )
        if not self.has_data:
            return None

        if self.type is MetricType.COUNTER:
            if aggregation == "count":
                return float(self.count)
            return float(self.count) / duration if duration > 0 else 0.0

        if self.type is MetricType.RATE:
            return self.rate

        if self.type is MetricType.GAUGE:
            if aggregation == "min":
                return self.minimum
            if aggregation == "max":
                return self.maximum
            return self.value

        # Trend
        match = _PERCENTILE.match(aggregation)
        if match:
            return percentile(self.samples, float(match.group(1)))
        if aggregation == "avg":
            return self.avg
        if aggregation == "min":
            return self.samples[0]
        if aggregation == "max":
            return self.samples[-1]
        if aggregation == "med":
            return percentile(self.samples, 50)
        return float(len(self.samples))

    def summary(self, duration: float = 0.0) -> dict[str, Any]:
        """Condensed values for reports."""
        if self.type is MetricType.COUNTER:
            return {
                "count": self.count,
                "rate": self.count / duration if duration > 0 else 0.0,
            }
        if self.type is MetricType.RATE:
            return {"rate": self.rate, "passes": self.hits, "fails": int(self.count) - self.hits}
        if self.type is MetricType.GAUGE:
            return {"value": self.value, "min": self.minimum, "max": self.maximum}
        if not self.samples:
            return {"count": 0}
        return {
            "count": len(self.samples),
            "avg": self.avg,
            "min": self.samples[0],
            "med": percentile(self.samples, 50),
            "max": self.samples[-1],
            "p(90)": percentile(self.samples, 90),
            "p(95)": percentile(self.samples, 95),
        }


class MetricSeries:
    """Base class for mutable series."""

    type: MetricType

    def __init__(self, name: str) -> None:
        self.name = name
        self._lock = threading.Lock()

    def snapshot(self) -> SeriesSnapshot:
        raise NotImplementedError


class CounterSeries(MetricSeries):
    """Monotonically increasing total."""

    type = MetricType.COUNTER

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._value = 0.0

    def add(self, amount: float = 1) -> None:
        if amount < 0:
            raise ValueError(f"Counter '{self.name}' cannot decrease")
        with self._lock:
            self._value += amount

    @property
    def value(self) -> float:
        return self._value

    def snapshot(self) -> SeriesSnapshot:
        with self._lock:
            return SeriesSnapshot(name=self.name, type=self.type, count=self._value)


class RateSeries(MetricSeries):
    """Fraction of added values that were true."""

    type = MetricType.RATE

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._hits = 0
        self._total = 0

    def add(self, hit: bool) -> None:
        with self._lock:
            self._total += 1
            if hit:
                self._hits += 1

    def snapshot(self) -> SeriesSnapshot:
        with self._lock:
            return SeriesSnapshot(
                name=self.name, type=self.type, count=self._total, hits=self._hits
            )


class TrendSeries(MetricSeries):
    """Keeps every sample; percentiles are computed from the sorted snapshot."""

    type = MetricType.TREND

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._samples: list[float] = []

    def add(self, value: float) -> None:
        with self._lock:
            self._samples.append(float(value))

    def snapshot(self) -> SeriesSnapshot:
        with self._lock:
            samples = tuple(sorted(self._samples))
        return SeriesSnapshot(
            name=self.name,
            type=self.type,
            count=len(samples),
            samples=samples,
            minimum=samples[0] if samples else None,
            maximum=samples[-1] if samples else None,
        )


class GaugeSeries(MetricSeries):
    """Last value set, plus the smallest and largest ever seen."""

    type = MetricType.GAUGE

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self._value = 0.0
        self._min: float | None = None
        self._max: float | None = None

    def set(self, value: float) -> None:
        with self._lock:
            self._value = float(value)
            self._min = value if self._min is None else min(self._min, value)
            self._max = value if self._max is None else max(self._max, value)

    @property
    def value(self) -> float:
        return self._value

    def snapshot(self) -> SeriesSnapshot:
        with self._lock:
            return SeriesSnapshot(
                name=self.name,
                type=self.type,
                value=self._value,
                minimum=self._min,
                maximum=self._max,
            )


SERIES_CLASSES: dict[MetricType, type[MetricSeries]] = {
    MetricType.COUNTER: CounterSeries,
    MetricType.RATE: RateSeries,
    MetricType.TREND: TrendSeries,
    MetricType.GAUGE: GaugeSeries,
}
