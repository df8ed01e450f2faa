"""Tests for the stampede command line."""

import logging
from dataclasses import dataclass
from pathlib import Path

import orjson
import pytest
from typer.testing import CliRunner

from stampede.cli import app
from stampede.runner import engine
from tests.stub_transport import StubTransport

runner = CliRunner()

# Transports the run command created, newest last
CREATED: list = []

PLAN = {
    "name": "orders api",
    "baseUrl": "http://api.test",
    "loadProfiles": {
        "quick": [
            {"duration": "200ms", "target": 2},
            {"duration": "200ms", "target": 2},
            {"duration": "100ms", "target": 0},
        ]
    },
    "thinkTime": {"min": 0.01, "max": 0.02},
    "checks": {"contentType": "application/json"},
    "scenarios": {
        "list": {"weight": 3, "steps": [{"path": "/orders"}]},
        "create": {"weight": 1, "steps": [{"method": "POST", "path": "/orders", "payload": {}}]},
    },
    "thresholds": {"http_req_failed": ["rate<0.05"]},
}


@dataclass
class _CliTransport(StubTransport):
    """Stub standing in for the HTTP client the run command creates."""

    closed: bool = False

    def __post_init__(self) -> None:
        CREATED.append(self)

    async def aclose(self) -> None:
        self.closed = True


@dataclass
class _FailingCliTransport(_CliTransport):
    status: int = 500


def _write_plan(directory: Path, plan: dict) -> Path:
    path = directory / "plan.json"
    path.write_bytes(orjson.dumps(plan))
    return path


@pytest.fixture(autouse=True)
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path):
    """Isolate the commands from the caller's environment and logging setup."""
    monkeypatch.chdir(tmp_path)
    for name in ["LOAD_PROFILE", "BASE_URL", "STAMPEDE_MAX_DURATION", "STAMPEDE_ENABLE_METRICS"]:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.setenv("STAMPEDE_CONTROL_INTERVAL", "0.05")
    monkeypatch.setenv("STAMPEDE_GRACEFUL_STOP", "1")
    monkeypatch.setenv("STAMPEDE_CONNECTIVITY_CHECK", "false")

    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


class TestValidateCommand:
    """Tests for `stampede validate`."""

    def test_valid_plan(self, tmp_path: Path) -> None:
        """Test a valid plan exits with 0 and lists its scenarios."""
        result = runner.invoke(app, ["validate", str(_write_plan(tmp_path, PLAN))])

        assert result.exit_code == 0
        assert "2 scenarios: list, create" in result.output
        assert "Plan is valid" in result.output

    def test_invalid_threshold(self, tmp_path: Path) -> None:
        """Test an unparsable threshold exits with 2."""
        plan = {**PLAN, "thresholds": {"http_req_duration": ["p(95)<<500"]}}

        result = runner.invoke(app, ["validate", str(_write_plan(tmp_path, plan))])

        assert result.exit_code == 2

    def test_unknown_profile(self, tmp_path: Path) -> None:
        """Test asking for a profile that does not exist exits with 2."""
        path = _write_plan(tmp_path, PLAN)

        result = runner.invoke(app, ["validate", str(path), "--profile", "nope"])

        assert result.exit_code == 2

    def test_missing_file(self, tmp_path: Path) -> None:
        """Test a missing plan file exits with 2."""
        result = runner.invoke(app, ["validate", str(tmp_path / "missing.json")])

        assert result.exit_code == 2
        assert "Test plan not found" in result.output


class TestProfilesCommand:
    """Tests for `stampede profiles`."""

    def test_presets_only(self) -> None:
        """Test the built-in presets are listed without a plan."""
        result = runner.invoke(app, ["profiles"])

        assert result.exit_code == 0
        for name in ["light", "medium", "heavy", "spike"]:
            assert f"Profile: {name}" in result.output

    def test_plan_profiles(self, tmp_path: Path) -> None:
        """Test plan profiles are listed alongside the presets."""
        result = runner.invoke(app, ["profiles", str(_write_plan(tmp_path, PLAN))])

        assert result.exit_code == 0
        assert "Profile: quick" in result.output
        assert "Profile: light" in result.output


class TestRunCommand:
    """Tests for `stampede run`."""

    def test_config_error(self, tmp_path: Path) -> None:
        """Test an unknown profile exits with 2 before any request."""
        path = _write_plan(tmp_path, PLAN)

        result = runner.invoke(app, ["run", str(path), "--profile", "nope"])

        assert result.exit_code == 2
        assert "Configuration error" in result.output

    def test_config_error_closes_transport(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        """Test a threshold rejected at validation still closes the HTTP client."""
        monkeypatch.setattr(engine, "HttpxTransport", _CliTransport)
        CREATED.clear()
        plan = {**PLAN, "thresholds": {"http_req_failed": ["avg<1"]}}

        result = runner.invoke(app, ["run", str(_write_plan(tmp_path, plan)), "-p", "quick"])

        assert result.exit_code == 2
        assert "Configuration error" in result.output
        assert len(CREATED) == 1
        assert CREATED[0].closed is True
        assert CREATED[0].calls == []

    @pytest.mark.slow
    def test_passing_run(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a run that meets its thresholds exits with 0 and exports a summary."""
        monkeypatch.setattr(engine, "HttpxTransport", _CliTransport)
        CREATED.clear()
        path = _write_plan(tmp_path, PLAN)
        export = tmp_path / "reports" / "summary.json"

        result = runner.invoke(
            app,
            ["run", str(path), "--profile", "quick", "--seed", "3", "--summary-export", str(export)],
        )

        assert result.exit_code == 0, result.output
        assert "Load test PASSED" in result.output
        summary = orjson.loads(export.read_bytes())
        assert summary["passed"] is True
        assert summary["total_requests"] > 0
        assert CREATED[-1].closed is True

    @pytest.mark.slow
    def test_failing_run(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test a run that breaches a threshold exits with 1."""
        monkeypatch.setattr(engine, "HttpxTransport", _FailingCliTransport)
        path = _write_plan(tmp_path, PLAN)

        result = runner.invoke(app, ["run", str(path), "--profile", "quick"])

        assert result.exit_code == 1
        assert "Load test FAILED" in result.output
