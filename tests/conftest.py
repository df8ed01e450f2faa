"""Global pytest configuration and fixtures.

Provides a stub transport so executor, virtual-user and run tests never open
a network connection.
"""

from __future__ import annotations

import pytest

from stampede.http.executor import CheckConfig, RequestExecutor
from stampede.metrics.collector import MetricsCollector
from tests.stub_transport import StubTransport


@pytest.fixture
def stub_transport() -> StubTransport:
    """Stub transport answering 200, 50ms, JSON body."""
    return StubTransport()


@pytest.fixture
def collector() -> MetricsCollector:
    """Fresh metrics collector."""
    return MetricsCollector()


@pytest.fixture
def executor(stub_transport: StubTransport, collector: MetricsCollector) -> RequestExecutor:
    """Executor wired to the stub transport, with JSON content-type checks."""
    return RequestExecutor(
        transport=stub_transport,
        collector=collector,
        base_url="http://api.test",
        headers={"Accept": "application/json"},
        checks=CheckConfig(max_latency_ms=1000, content_type="application/json"),
    )
