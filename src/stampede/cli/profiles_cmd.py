"""CLI command for listing load profiles.

Usage:
    stampede profiles plan.json
    stampede profiles           # built-in presets only
"""

from __future__ import annotations

from pathlib import Path

import typer

app = typer.Typer(help="Show load profiles and their stages")


@app.callback(invoke_without_command=True)
def profiles(
    plan_path: Path | None = typer.Argument(
        None,
        help="Path to the JSON test plan (presets only if omitted)",
    ),
) -> None:
    """Print each profile's stages and total duration."""
    from rich.console import Console

    from stampede.errors import ConfigurationError
    from stampede.plan.loader import load_plan
    from stampede.plan.models import LoadPlan
    from stampede.reporting import print_profiles
    from stampede.runner.engine import ExitCode

    console = Console()

    try:
        plan = load_plan(plan_path) if plan_path is not None else LoadPlan()
        resolved = [plan.profile(name) for name in plan.profile_names()]
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(code=ExitCode.CONFIG_ERROR) from e

    print_profiles(resolved, console)
