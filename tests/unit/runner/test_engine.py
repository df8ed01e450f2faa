"""Tests for load test orchestration."""

from dataclasses import dataclass

import pytest

from stampede.config import Settings
from stampede.errors import ConfigurationError, TransportError
from stampede.metrics.prometheus import PrometheusExporter
from stampede.metrics.thresholds import parse_thresholds
from stampede.plan.loader import parse_plan
from stampede.profile.stages import LoadProfile
from stampede.runner import engine
from stampede.runner.engine import ExitCode, LoadTest
from stampede.scenarios.registry import ScenarioRegistry
from tests.stub_transport import StubTransport

PLAN = {
    "name": "orders api",
    "baseUrl": "http://api.test",
    "loadProfiles": {
        "quick": [
            {"duration": "200ms", "target": 3},
            {"duration": "300ms", "target": 3},
            {"duration": "100ms", "target": 0},
        ]
    },
    "thinkTime": {"min": 0.01, "max": 0.02},
    "headers": {"Accept": "application/json"},
    "authentication": {"enabled": True, "type": "bearer", "token": "secret"},
    "checks": {"maxLatencyMs": 1000, "contentType": "application/json"},
    "scenarios": {
        "list": {"weight": 3, "steps": [{"path": "/orders"}]},
        "create": {"weight": 1, "steps": [{"method": "POST", "path": "/orders", "payload": {}}]},
    },
    "thresholds": {"http_req_failed": ["rate<0.05"], "http_req_duration": ["p(95)<500"]},
}


@dataclass
class OwnedTransport(StubTransport):
    """Stub standing in for the HTTP client a load test creates itself."""

    closed: bool = False

    async def aclose(self) -> None:
        self.closed = True


def _settings(**overrides) -> Settings:
    values = {
        "base_url": None,
        "max_duration": None,
        "enable_metrics": False,
        "control_interval": 0.05,
        "graceful_stop": 1.0,
        "connectivity_check": False,
        "seed": 1,
    }
    values.update(overrides)
    return Settings(**values)


class TestLoadTestSetup:
    """Tests for building and validating a load test."""

    def test_from_plan(self, stub_transport: StubTransport) -> None:
        """Test plan values reach the executor, registry and thresholds."""
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}),
            "quick",
            settings=_settings(),
            transport=stub_transport,
        )

        assert test.base_url == "http://api.test"
        assert test.profile.name == "quick"
        assert test.registry.names == ["list", "create"]
        assert len(test.thresholds) == 2
        assert test.executor.base_headers["Authorization"] == "Bearer secret"
        assert test.think_time == (0.01, 0.02)

    def test_base_url_override(self, stub_transport: StubTransport) -> None:
        """Test an explicit base URL takes precedence over the plan."""
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}),
            "quick",
            settings=_settings(),
            base_url="https://staging.test/",
            transport=stub_transport,
        )

        assert test.base_url == "https://staging.test"

    def test_unknown_profile(self, stub_transport: StubTransport) -> None:
        """Test an unknown profile is a configuration error."""
        with pytest.raises(ConfigurationError, match="Unknown load profile"):
            LoadTest.from_plan(
                parse_plan(PLAN, env={}), "nope", settings=_settings(), transport=stub_transport
            )

    def test_missing_base_url(self, stub_transport: StubTransport) -> None:
        """Test a plan without any base URL is rejected."""
        plan = parse_plan({**PLAN, "baseUrl": "${BASE_URL}"}, env={})

        with pytest.raises(ConfigurationError, match="No base URL"):
            LoadTest.from_plan(plan, "quick", settings=_settings(), transport=stub_transport)

    def test_validate_rejects_incompatible_threshold(self, stub_transport: StubTransport) -> None:
        """Test threshold/metric mismatches fail before the run."""
        registry = ScenarioRegistry()

        async def noop(ctx) -> None:
            pass

        registry.register("noop", noop)
        test = LoadTest(
            LoadProfile.from_stages("p", [{"duration": 1, "target": 1}]),
            registry,
            "http://api.test",
            thresholds=parse_thresholds({"http_req_failed": ["avg<1"]}),
            transport=stub_transport,
            settings=_settings(),
        )

        with pytest.raises(ConfigurationError, match="not supported"):
            test.validate()

    def test_validate_rejects_empty_registry(self, stub_transport: StubTransport) -> None:
        """Test a run without scenarios is a configuration error."""
        test = LoadTest(
            LoadProfile.from_stages("p", [{"duration": 1, "target": 1}]),
            ScenarioRegistry(),
            "http://api.test",
            transport=stub_transport,
            settings=_settings(),
        )

        with pytest.raises(ConfigurationError, match="No scenarios"):
            test.validate()

    def test_describe(self, stub_transport: StubTransport) -> None:
        """Test the setup summary."""
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}), "quick", settings=_settings(), transport=stub_transport
        )

        summary = test.describe()

        assert summary["profile"] == "quick"
        assert summary["max_vus"] == 3
        assert summary["scenarios"] == {"list": 3.0, "create": 1.0}
        assert summary["authentication"] == "Enabled (bearer)"
        assert summary["stages"][0] == "200ms -> 3 VUs"


class TestConnectivity:
    """Tests for the pre-run connectivity check."""

    def _test(self, transport: StubTransport) -> LoadTest:
        return LoadTest.from_plan(
            parse_plan(PLAN, env={}), "quick", settings=_settings(), transport=transport
        )

    @pytest.mark.asyncio
    async def test_reachable(self, stub_transport: StubTransport) -> None:
        """Test the status is returned and auth headers are sent."""
        status = await self._test(stub_transport).check_connectivity()

        assert status == 200
        assert stub_transport.calls[0].headers["Authorization"] == "Bearer secret"
        assert stub_transport.calls[0].url == "http://api.test"

    @pytest.mark.asyncio
    async def test_auth_rejected_does_not_raise(self, stub_transport: StubTransport) -> None:
        """Test a 401 is reported but not fatal."""
        stub_transport.status = 401

        assert await self._test(stub_transport).check_connectivity() == 401

    @pytest.mark.asyncio
    async def test_unreachable_does_not_raise(self, stub_transport: StubTransport) -> None:
        """Test a connection failure returns None."""
        stub_transport.error = TransportError("refused")

        assert await self._test(stub_transport).check_connectivity() is None

    @pytest.mark.asyncio
    async def test_unexpected_error_does_not_raise(self, stub_transport: StubTransport) -> None:
        """Test an error outside the transport contract is logged, not raised."""
        stub_transport.error = ExceptionGroup(
            "unhandled errors in a TaskGroup", [OverflowError("port must be 0-65535")]
        )

        assert await self._test(stub_transport).check_connectivity() is None

    @pytest.mark.asyncio
    async def test_not_recorded_in_metrics(self, stub_transport: StubTransport) -> None:
        """Test the connectivity request is not counted as load."""
        test = self._test(stub_transport)

        await test.check_connectivity()

        assert test.collector.total_requests == 0


class TestLoadTestRun:
    """Tests for running a load test end to end against a stub transport."""

    @pytest.mark.asyncio
    async def test_passing_run(self, stub_transport: StubTransport) -> None:
        """Test a healthy target passes every threshold."""
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}),
            "quick",
            settings=_settings(connectivity_check=True),
            transport=stub_transport,
        )

        report = await test.run()

        assert report.passed is True
        assert report.aborted is False
        assert report.exit_code is ExitCode.PASSED
        assert report.total_requests > 0
        assert report.success_rate == 1.0
        assert report.max_vus == 3
        assert report.connectivity_status == 200
        assert report.scenarios == ["list", "create"]
        assert all(r.passed for r in report.thresholds.results)
        # One connectivity request plus the load
        assert len(stub_transport.calls) == report.total_requests + 1

    @pytest.mark.asyncio
    async def test_failing_run(self, stub_transport: StubTransport) -> None:
        """Test server errors breach the failure-rate threshold."""
        stub_transport.status = 500

        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}), "quick", settings=_settings(), transport=stub_transport
        )
        report = await test.run()

        assert report.passed is False
        assert report.exit_code is ExitCode.FAILED
        assert report.success_rate == 0.0
        failed = [str(r.threshold) for r in report.thresholds.failed]
        assert failed == ["http_req_failed: rate<0.05"]

    @pytest.mark.asyncio
    async def test_unreachable_target_still_reports(self, stub_transport: StubTransport) -> None:
        """Test a failing connectivity check neither raises nor stops the run."""
        stub_transport.error = OverflowError("connect(): port must be 0-65535.")

        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}),
            "quick",
            settings=_settings(connectivity_check=True),
            transport=stub_transport,
        )
        report = await test.run()

        assert report.connectivity_status is None
        assert report.total_requests > 0
        assert report.success_rate == 0.0
        assert report.exit_code is ExitCode.FAILED

    @pytest.mark.asyncio
    async def test_validation_failure_closes_owned_transport(
        self, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test the transport a load test created is closed when validation fails."""
        monkeypatch.setattr(engine, "HttpxTransport", OwnedTransport)
        test = LoadTest(
            LoadProfile.from_stages("p", [{"duration": 1, "target": 1}]),
            ScenarioRegistry(),
            "http://api.test",
            settings=_settings(),
        )

        with pytest.raises(ConfigurationError, match="No scenarios"):
            await test.run()

        assert test.transport.closed is True
        assert test.transport.calls == []

    @pytest.mark.asyncio
    async def test_deadline_aborts_run(self, stub_transport: StubTransport) -> None:
        """Test an exceeded deadline yields an aborted, failed report."""
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}),
            "quick",
            settings=_settings(max_duration=0.2),
            transport=stub_transport,
        )

        report = await test.run()

        assert report.aborted is True
        assert report.passed is False
        assert "deadline" in report.abort_reason
        assert report.exit_code is ExitCode.FAILED

    @pytest.mark.asyncio
    async def test_report_to_dict(self, stub_transport: StubTransport) -> None:
        """Test the serialized report carries profile, thresholds and metrics."""
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}), "quick", settings=_settings(), transport=stub_transport
        )
        report = await test.run()

        data = report.to_dict()

        assert data["name"] == "orders api"
        assert data["profile"]["name"] == "quick"
        assert data["thresholds"]["passed"] is True
        assert data["metrics"]["http_reqs"]["count"] == report.total_requests
        assert data["duration"] >= 0

    @pytest.mark.asyncio
    async def test_exporter_follows_run(self, stub_transport: StubTransport) -> None:
        """Test a Prometheus exporter sees every request of the run."""
        exporter = PrometheusExporter()
        test = LoadTest.from_plan(
            parse_plan(PLAN, env={}),
            "quick",
            settings=_settings(),
            transport=stub_transport,
            exporter=exporter,
        )

        report = await test.run()

        total = sum(
            exporter.registry.get_sample_value(
                "stampede_http_requests_total",
                {"scenario": name, "method": method, "status": "200"},
            )
            or 0
            for name, method in [("list", "GET"), ("create", "POST")]
        )
        assert total == report.total_requests
        assert exporter.registry.get_sample_value("stampede_vus") == 0
