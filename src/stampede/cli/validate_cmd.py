"""CLI command for validating test plans.

Usage:
    stampede validate plan.json
    stampede validate plan.json --profile spike --scenario-module myscenarios
"""

from __future__ import annotations

from pathlib import Path

import typer

app = typer.Typer(help="Validate a test plan without running it")


@app.callback(invoke_without_command=True)
def validate(
    plan_path: Path = typer.Argument(
        ...,
        help="Path to the JSON test plan",
    ),
    profile: str | None = typer.Option(
        None,
        "--profile",
        "-p",
        help="Also resolve this load profile",
    ),
    scenario_modules: list[str] = typer.Option(
        [],
        "--scenario-module",
        "-m",
        help="Python module with @scenario functions (repeatable)",
    ),
) -> None:
    """Parse the plan, build the scenario set and parse every threshold.

    Exits with 0 when the plan is valid and 2 otherwise.
    """
    from rich.console import Console

    from stampede.errors import ConfigurationError
    from stampede.metrics.collector import MetricsCollector
    from stampede.metrics.thresholds import validate_thresholds
    from stampede.plan.loader import load_plan
    from stampede.runner.engine import ExitCode
    from stampede.scenarios.loader import load_scenario_module
    from stampede.scenarios.registry import ScenarioRegistry
    from stampede.scenarios.scripted import registry_from_plan

    console = Console()
    console.print(f"[blue]Validating test plan:[/blue] {plan_path}")

    try:
        plan = load_plan(plan_path)

        registry = ScenarioRegistry()
        for module_name in scenario_modules:
            load_scenario_module(module_name, registry, search_path=Path.cwd())
        registry_from_plan(plan, registry)
        registry.validate()

        thresholds = plan.parsed_thresholds()
        collector = MetricsCollector(custom_metric_prefix=plan.metric_prefix)
        validate_thresholds(thresholds, collector.metric_types())

        profiles = [plan.profile(name) for name in plan.profile_names()]
        if profile is not None and profile not in plan.profile_names():
            plan.profile(profile)
    except ConfigurationError as e:
        console.print(f"[red]✗[/red] {e}")
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from e

    console.print(f"  [green]✓[/green] {len(registry)} scenarios: {', '.join(registry.names)}")
    console.print(f"  [green]✓[/green] {len(thresholds)} thresholds")
    console.print(f"  [green]✓[/green] {len(profiles)} load profiles")
    console.print("[green]Plan is valid[/green]")
