"""Tests for metric series and snapshots."""

import threading

import pytest

from stampede.metrics.series import (
    CounterSeries,
    GaugeSeries,
    MetricType,
    RateSeries,
    TrendSeries,
    percentile,
    supports_aggregation,
)


class TestPercentile:
    """Tests for interpolated percentiles."""

    def test_exact_rank(self) -> None:
        """Test percentiles landing on a sample return it."""
        samples = [10.0, 20.0, 30.0, 40.0, 50.0]

        assert percentile(samples, 0) == 10.0
        assert percentile(samples, 50) == 30.0
        assert percentile(samples, 100) == 50.0

    def test_interpolates_between_ranks(self) -> None:
        """Test percentiles between samples are interpolated."""
        assert percentile([0.0, 100.0], 95) == pytest.approx(95.0)

    def test_empty_raises(self) -> None:
        """Test an empty series has no percentile."""
        with pytest.raises(ValueError):
            percentile([], 50)

    def test_out_of_range_raises(self) -> None:
        """Test percentiles above 100 are rejected."""
        with pytest.raises(ValueError):
            percentile([1.0], 101)


class TestSupportsAggregation:
    """Tests for aggregation/type compatibility."""

    @pytest.mark.parametrize(
        ("metric_type", "aggregation", "expected"),
        [
            (MetricType.TREND, "p(95)", True),
            (MetricType.TREND, "p(99.9)", True),
            (MetricType.TREND, "avg", True),
            (MetricType.TREND, "rate", False),
            (MetricType.RATE, "rate", True),
            (MetricType.RATE, "avg", False),
            (MetricType.COUNTER, "count", True),
            (MetricType.COUNTER, "rate", True),
            (MetricType.COUNTER, "p(95)", False),
            (MetricType.GAUGE, "value", True),
            (MetricType.GAUGE, "max", True),
        ],
    )
    def test_compatibility(
        self, metric_type: MetricType, aggregation: str, expected: bool
    ) -> None:
        """Test which aggregations apply to which series types."""
        assert supports_aggregation(metric_type, aggregation) is expected


class TestCounterSeries:
    """Tests for counters."""

    def test_add_and_snapshot(self) -> None:
        """Test counts accumulate and snapshot exposes count and rate."""
        counter = CounterSeries("http_reqs")
        counter.add()
        counter.add(4)

        snap = counter.snapshot()
        assert snap.count == 5
        assert snap.aggregate("count") == 5.0
        assert snap.aggregate("rate", duration=10.0) == pytest.approx(0.5)

    def test_negative_rejected(self) -> None:
        """Test counters cannot decrease."""
        with pytest.raises(ValueError):
            CounterSeries("c").add(-1)

    def test_no_data(self) -> None:
        """Test an untouched counter has no data."""
        snap = CounterSeries("c").snapshot()

        assert snap.has_data is False
        assert snap.aggregate("count") is None


class TestRateSeries:
    """Tests for rate series."""

    def test_rate_is_fraction_of_hits(self) -> None:
        """Test the rate is hits divided by total."""
        rate = RateSeries("http_req_failed")
        for i in range(10):
            rate.add(i < 3)

        snap = rate.snapshot()
        assert snap.aggregate("rate") == pytest.approx(0.3)
        assert snap.summary() == {"rate": pytest.approx(0.3), "passes": 3, "fails": 7}

    def test_unsupported_aggregation_raises(self) -> None:
        """Test percentile aggregation is rejected for rates."""
        rate = RateSeries("r")
        rate.add(True)

        with pytest.raises(ValueError, match="not supported"):
            rate.snapshot().aggregate("p(95)")


class TestTrendSeries:
    """Tests for trend series."""

    def test_aggregations(self) -> None:
        """Test avg, min, max, med, count and percentiles."""
        trend = TrendSeries("http_req_duration")
        for value in [50, 10, 40, 20, 30]:
            trend.add(value)

        snap = trend.snapshot()
        assert snap.samples == (10.0, 20.0, 30.0, 40.0, 50.0)
        assert snap.aggregate("avg") == 30.0
        assert snap.aggregate("min") == 10.0
        assert snap.aggregate("max") == 50.0
        assert snap.aggregate("med") == 30.0
        assert snap.aggregate("count") == 5.0
        assert snap.aggregate("p(90)") == pytest.approx(46.0)

    def test_summary_keys(self) -> None:
        """Test the report summary of a trend."""
        trend = TrendSeries("t")
        trend.add(1)

        assert set(trend.snapshot().summary()) == {
            "count",
            "avg",
            "min",
            "med",
            "max",
            "p(90)",
            "p(95)",
        }

    def test_empty_summary(self) -> None:
        """Test an empty trend summarizes to a zero count."""
        assert TrendSeries("t").snapshot().summary() == {"count": 0}

    def test_snapshot_is_isolated(self) -> None:
        """Test samples added after a snapshot do not change it."""
        trend = TrendSeries("t")
        trend.add(1)
        snap = trend.snapshot()
        trend.add(2)

        assert snap.samples == (1.0,)


class TestGaugeSeries:
    """Tests for gauges."""

    def test_tracks_last_min_max(self) -> None:
        """Test the gauge keeps the last value and its extremes."""
        gauge = GaugeSeries("vus")
        for value in [3, 10, 0, 4]:
            gauge.set(value)

        snap = gauge.snapshot()
        assert snap.aggregate("value") == 4.0
        assert snap.aggregate("min") == 0
        assert snap.aggregate("max") == 10

    def test_zero_counts_as_data(self) -> None:
        """Test a gauge set to zero still has data."""
        gauge = GaugeSeries("vus")
        gauge.set(0)

        assert gauge.snapshot().has_data is True


class TestConcurrency:
    """Tests for lossless concurrent recording."""

    def test_concurrent_adds_lose_nothing(self) -> None:
        """Test 100 threads adding concurrently lose no updates."""
        counter = CounterSeries("c")
        trend = TrendSeries("t")
        rate = RateSeries("r")
        writers = 100
        per_writer = 200

        def write() -> None:
            for _ in range(per_writer):
                counter.add()
                trend.add(1.0)
                rate.add(True)

        threads = [threading.Thread(target=write) for _ in range(writers)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert counter.snapshot().count == writers * per_writer
        assert trend.snapshot().count == writers * per_writer
        assert rate.snapshot().count == writers * per_writer
