"""End-to-end load runs.

Drive the full stack (plan loading, scheduler, virtual users, executor,
metrics, thresholds): the example plan against an in-process mock API with
the profile scaled down to about a second, and the 40 second ramp profile
against a stub target.
"""

import itertools
from pathlib import Path

import httpx
import orjson
import pytest

from stampede.config import Settings
from stampede.http.transport import HttpxTransport
from stampede.metrics.thresholds import parse_thresholds
from stampede.plan.loader import parse_plan
from stampede.profile.stages import LoadProfile
from stampede.runner.engine import ExitCode, LoadTest
from stampede.scenarios.registry import ScenarioRegistry
from tests.stub_transport import StubTransport

PLAN_PATH = Path(__file__).resolve().parents[2] / "examples" / "plan.json"


def _scaled_plan() -> dict:
    data = orjson.loads(PLAN_PATH.read_bytes())
    data["loadProfiles"] = {
        "scaled": [
            {"duration": "300ms", "target": 4},
            {"duration": "800ms", "target": 4},
            {"duration": "300ms", "target": 0},
        ]
    }
    data["thinkTime"] = {"min": 0.01, "max": 0.03}
    data["thresholds"]["http_reqs"] = ["count>10"]
    for scenario in data["scenarios"].values():
        for step in scenario["steps"]:
            step.pop("pause", None)
    return data


class MockUsersApi:
    """In-process stand-in for the users/products/orders API."""

    def __init__(self) -> None:
        self.ids = itertools.count(1)
        self.requests: list[tuple[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append((request.method, request.url.path))
        if request.method == "POST":
            return httpx.Response(201, json={"id": next(self.ids)})
        if request.url.path.startswith("/api/users/"):
            return httpx.Response(200, json={"id": request.url.path.rsplit("/", 1)[-1]})
        return httpx.Response(200, json=[{"id": 1}, {"id": 2}])


class TestExamplePlanRun:
    """Full run of the example plan."""

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_scaled_run_passes(self) -> None:
        """Test every request succeeds and every threshold holds."""
        api = MockUsersApi()
        settings = Settings(
            base_url=None,
            max_duration=30.0,
            enable_metrics=False,
            control_interval=0.05,
            graceful_stop=2.0,
            connectivity_check=True,
            seed=11,
        )

        async with httpx.AsyncClient(transport=httpx.MockTransport(api)) as client:
            test = LoadTest.from_plan(
                parse_plan(_scaled_plan(), env={}),
                "scaled",
                settings=settings,
                transport=HttpxTransport(client=client),
            )
            report = await test.run()

        assert report.exit_code == ExitCode.PASSED
        assert report.connectivity_status == 200
        assert report.success_rate == 1.0
        assert report.max_vus == 4
        assert not report.aborted
        assert report.total_requests > 10
        assert {path for _, path in api.requests} >= {"/api/users", "/api/products"}

        iterations = report.snapshot.get("iterations")
        assert iterations is not None and iterations.count > 0
        assert report.snapshot.value("scenario_errors", "count") in (None, 0)


class TestRampHoldRampDown:
    """The reference ramp profile run against a stub target."""

    @pytest.mark.slow
    @pytest.mark.asyncio
    async def test_forty_second_profile(self) -> None:
        """Test 0->10 over 10s, hold 20s, 10->0 over 10s completes on time and passes."""
        transport = StubTransport(status=200, latency_ms=50.0, delay=0.05)
        registry = ScenarioRegistry()

        async def get_orders(ctx) -> None:
            await ctx.get("/orders")

        registry.register("get_orders", get_orders)
        test = LoadTest(
            LoadProfile.from_stages(
                "ramp",
                [
                    {"duration": "10s", "target": 10},
                    {"duration": "20s", "target": 10},
                    {"duration": "10s", "target": 0},
                ],
            ),
            registry,
            "http://api.test",
            thresholds=parse_thresholds(
                {"http_req_failed": ["rate<0.01"], "http_req_duration": ["p(95)<500"]}
            ),
            think_time=(0.5, 1.0),
            transport=transport,
            settings=Settings(
                base_url=None,
                max_duration=None,
                enable_metrics=False,
                control_interval=1.0,
                graceful_stop=5.0,
                connectivity_check=False,
                seed=5,
            ),
        )

        report = await test.run()

        assert report.passed
        assert report.success_rate == 1.0
        assert report.max_vus == 10
        assert abs(report.duration - 40.0) <= 1.0
        assert all(result.passed for result in report.thresholds.results)
