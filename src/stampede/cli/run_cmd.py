"""CLI command for running a load test.

Usage:
    stampede run plan.json
    stampede run plan.json --profile heavy --base-url https://staging.example.com
    stampede run plan.json --scenario-module myscenarios --summary-export summary.json
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Any

import typer

app = typer.Typer(help="Run a load test plan")


@app.callback(invoke_without_command=True)
def run(
    plan_path: Path = typer.Argument(
        ...,
        help="Path to the JSON test plan",
    ),
    profile: str | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="Load profile name (overrides LOAD_PROFILE)",
    ),
    base_url: str | None = typer.Option(
        None,
        "--base-url",
        "-u",
        help="Target base URL (overrides BASE_URL and the plan)",
    ),
    seed: int | None = typer.Option(
        None,
        "--seed",
        help="Seed for scenario selection and think time",
    ),
    max_duration: float | None = typer.Option(
        None,
        "--max-duration",
        help="Global run deadline in seconds",
    ),
    scenario_modules: list[str] = typer.Option(
        [],
        "--scenario-module",
        "-m",
        help="Python module with @scenario functions (repeatable)",
    ),
    summary_export: Path | None = typer.Option(
        None,
        "--summary-export",
        help="Write the run report as JSON to this file",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        "-l",
        help="Log level (DEBUG, INFO, WARNING, ERROR)",
    ),
    json_logs: bool | None = typer.Option(
        None,
        "--json-logs/--console-logs",
        help="Emit JSON logs",
    ),
    no_connectivity_check: bool = typer.Option(
        False,
        "--no-connectivity-check",
        help="Skip the connectivity check before the run",
    ),
) -> None:
    """Run a load test and exit with 0 (passed), 1 (failed) or 2 (configuration error)."""
    from rich.console import Console

    from stampede.config import Settings
    from stampede.errors import ConfigurationError
    from stampede.metrics.prometheus import PrometheusExporter
    from stampede.observability.logging import configure_logging
    from stampede.plan.loader import load_plan
    from stampede.reporting import export_summary, print_banner, print_summary
    from stampede.runner.engine import ExitCode, LoadTest
    from stampede.scenarios.loader import load_scenario_module
    from stampede.scenarios.registry import ScenarioRegistry

    console = Console()

    overrides: dict[str, Any] = {
        "load_profile": profile,
        "base_url": base_url,
        "seed": seed,
        "max_duration": max_duration,
        "log_level": log_level,
        "log_json": json_logs,
    }
    if no_connectivity_check:
        overrides["connectivity_check"] = False
    settings = Settings().model_copy(
        update={key: value for key, value in overrides.items() if value is not None}
    )

    configure_logging(json_format=settings.log_json, level=settings.log_level)

    test: LoadTest | None = None
    try:
        plan = load_plan(plan_path)

        registry = ScenarioRegistry()
        for module_name in scenario_modules:
            load_scenario_module(module_name, registry, search_path=Path.cwd())

        exporter = None
        if settings.enable_metrics and settings.metrics_port:
            exporter = PrometheusExporter()

        test = LoadTest.from_plan(plan, settings=settings, registry=registry, exporter=exporter)
        test.validate()
    except ConfigurationError as e:
        if test is not None:
            asyncio.run(test.aclose())
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from e

    print_banner(test.describe(), console)

    try:
        report = asyncio.run(test.run())
    except KeyboardInterrupt:
        console.print("[yellow]Interrupted[/yellow]")
        raise typer.Exit(code=ExitCode.FAILED) from None

    print_summary(report, console)

    if summary_export is not None:
        path = export_summary(report, summary_export)
        console.print(f"[green]Summary saved to:[/green] {path}")

    raise typer.Exit(code=int(report.exit_code))
