"""Live Prometheus exposure of a running load test.

Mirrors request outcomes into Prometheus metrics so a dashboard can follow
the run while it is in progress. The exporter only reads outcomes handed to
it by the collector; it never touches collector state.

Usage:
    exporter = PrometheusExporter()
    collector.add_listener(exporter.observe)
    exporter.start_server(9464)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client import start_http_server as _start_http_server

if TYPE_CHECKING:
    from stampede.http.outcome import RequestOutcome

logger = logging.getLogger(__name__)


class PrometheusExporter:
    """Prometheus metrics for one run, on a private registry."""

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self.registry = registry or CollectorRegistry()

        self.http_requests_total = Counter(
            "stampede_http_requests_total",
            "Total HTTP requests issued by virtual users",
            ["scenario", "method", "status"],
            registry=self.registry,
        )

        self.http_request_duration_seconds = Histogram(
            "stampede_http_request_duration_seconds",
            "HTTP request latency in seconds",
            ["scenario"],
            buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
            registry=self.registry,
        )

        self.check_failures_total = Counter(
            "stampede_check_failures_total",
            "Failed response checks",
            ["check"],
            registry=self.registry,
        )

        self.vus = Gauge(
            "stampede_vus",
            "Active virtual users",
            registry=self.registry,
        )

    def observe(self, outcome: RequestOutcome) -> None:
        """Collector listener: mirror one outcome."""
        scenario = outcome.scenario or ""
        status = str(outcome.status_code) if outcome.status_code is not None else "error"

        self.http_requests_total.labels(
            scenario=scenario,
            method=outcome.method,
            status=status,
        ).inc()

        if outcome.status_code is not None:
            self.http_request_duration_seconds.labels(scenario=scenario).observe(
                outcome.latency_ms / 1000.0
            )

        for name in outcome.failed_checks:
            self.check_failures_total.labels(check=name).inc()

    def set_vus(self, active: int) -> None:
        self.vus.set(active)

    def start_server(self, port: int, addr: str = "0.0.0.0") -> None:  # nosec B104
        """Serve ``/metrics`` on a background thread."""
        _start_http_server(port, addr=addr, registry=self.registry)
        logger.info(f"Prometheus metrics available on port {port}")

    def generate_latest(self) -> bytes:
        """Metrics in the Prometheus exposition format."""
        return generate_latest(self.registry)
