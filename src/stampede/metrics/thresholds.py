"""Threshold expressions and end-of-run evaluation.

Thresholds use the k6 syntax, keyed by metric name:

    {
        "http_req_duration": ["p(95)<500", "avg<200"],
        "http_req_failed": ["rate<0.05"],
        "http_req_duration{scenario:browse}": ["p(99)<1500"]
    }

Each expression is ``<aggregation> <operator> <number>``. Thresholds are
parsed at setup (a malformed expression is a ``ConfigurationError``) and
evaluated exactly once against the final metrics snapshot.
"""

from __future__ import annotations

import operator
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Iterable, Mapping

from stampede.errors import ConfigurationError
from stampede.metrics.series import MetricType, supports_aggregation

if TYPE_CHECKING:
    from stampede.metrics.collector import MetricsSnapshot

_EXPRESSION = re.compile(
    r"^\s*(?P<aggregation>avg|min|max|med|count|rate|value|p\(\d+(?:\.\d+)?\))"
    r"\s*(?P<op><=|>=|==|!=|<|>)\s*"
    r"(?P<value>-?\d+(?:\.\d+)?(?:[eE][-+]?\d+)?)\s*$"
)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class Threshold:
    """A pass/fail predicate over one aggregate of one metric."""

    metric: str
    expression: str
    aggregation: str
    operator: str
    limit: float

    def check(self, observed: float) -> bool:
        """Apply the predicate to an observed aggregate value."""
        return _OPERATORS[self.operator](observed, self.limit)

    def __str__(self) -> str:
        return f"{self.metric}: {self.expression}"


@dataclass(frozen=True)
class ThresholdResult:
    """Outcome of evaluating one threshold."""

    threshold: Threshold
    passed: bool
    observed: float | None
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "metric": self.threshold.metric,
            "expression": self.threshold.expression,
            "passed": self.passed,
            "observed": self.observed,
            "reason": self.reason,
        }


@dataclass(frozen=True)
class ThresholdReport:
    """Result of evaluating every threshold of a run."""

    results: tuple[ThresholdResult, ...] = field(default_factory=tuple)

    @property
    def passed(self) -> bool:
        """True when no threshold failed (an empty set passes)."""
        return all(result.passed for result in self.results)

    @property
    def failed(self) -> list[ThresholdResult]:
        return [result for result in self.results if not result.passed]

    def to_dict(self) -> dict[str, Any]:
        return {
            "passed": self.passed,
            "results": [result.to_dict() for result in self.results],
        }


def parse_threshold(metric: str, expression: str) -> Threshold:
    """Parse one threshold expression.

    Raises:
        ConfigurationError: If the expression is malformed
    """
    if not metric or not metric.strip():
        raise ConfigurationError("Threshold metric name must not be empty")

    match = _EXPRESSION.match(expression)
    if match is None:
        raise ConfigurationError(
            f"Invalid threshold expression for '{metric}': {expression!r} "
            "(expected '<aggregation> <op> <number>', e.g. 'p(95)<500')"
        )

    aggregation = match.group("aggregation")
    if aggregation.startswith("p("):
        pct = float(aggregation[2:-1])
        if pct > 100:
            raise ConfigurationError(
                f"Invalid percentile in threshold for '{metric}': {expression!r}"
            )

    return Threshold(
        metric=metric.strip(),
        expression=expression.strip(),
        aggregation=aggregation,
        operator=match.group("op"),
        limit=float(match.group("value")),
    )


def parse_thresholds(definitions: Mapping[str, Iterable[str] | str]) -> list[Threshold]:
    """Parse a ``metric -> [expressions]`` mapping.

    A single expression string is accepted in place of a list.

    Raises:
        ConfigurationError: If any expression is malformed
    """
    thresholds: list[Threshold] = []
    for metric, expressions in definitions.items():
        if isinstance(expressions, str):
            expressions = [expressions]
        for expression in expressions:
            if not isinstance(expression, str):
                raise ConfigurationError(
                    f"Threshold for '{metric}' must be a string, got {type(expression).__name__}"
                )
            thresholds.append(parse_threshold(metric, expression))
    return thresholds


def validate_thresholds(
    thresholds: Iterable[Threshold],
    known_types: Mapping[str, MetricType],
) -> None:
    """Reject thresholds whose aggregation cannot apply to a known metric.

    Metrics not yet known (created later by scenario code) are checked at
    evaluation time instead.

    Raises:
        ConfigurationError: On the first incompatible threshold
    """
    for threshold in thresholds:
        metric_type = known_types.get(threshold.metric)
        if metric_type is None:
            continue
        if not supports_aggregation(metric_type, threshold.aggregation):
            raise ConfigurationError(
                f"Threshold '{threshold}' uses '{threshold.aggregation}', which is not "
                f"supported for {metric_type.value} metric '{threshold.metric}'"
            )


def evaluate_thresholds(
    snapshot: MetricsSnapshot,
    thresholds: Iterable[Threshold],
) -> ThresholdReport:
    """Evaluate thresholds against a final snapshot without mutating it.

    A threshold over a metric that received no samples passes and is
    reported as "no data".
    """
    results: list[ThresholdResult] = []

    for threshold in thresholds:
        series = snapshot.get(threshold.metric)
        if series is None or not series.has_data:
            results.append(
                ThresholdResult(threshold=threshold, passed=True, observed=None, reason="no data")
            )
            continue

        try:
            observed = series.aggregate(threshold.aggregation, snapshot.duration)
        except ValueError as e:
            results.append(
                ThresholdResult(threshold=threshold, passed=False, observed=None, reason=str(e))
            )
            continue

        if observed is None:
            results.append(
                ThresholdResult(threshold=threshold, passed=True, observed=None, reason="no data")
            )
            continue

        results.append(
            ThresholdResult(
                threshold=threshold,
                passed=threshold.check(observed),
                observed=observed,
            )
        )

    return ThresholdReport(results=tuple(results))
