"""Console output for load test runs.

Prints the setup banner before a run and the summary tables after it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from stampede.profile.stages import format_duration

if TYPE_CHECKING:
    from stampede.profile.stages import LoadProfile
    from stampede.runner.engine import RunReport

# Metrics shown first in the summary, in this order
_PRIMARY_METRICS = (
    "http_reqs",
    "http_req_duration",
    "http_req_failed",
    "checks",
    "data_received",
    "iterations",
    "iteration_duration",
    "scenario_errors",
    "vus_max",
)

# Failing checks listed in the summary
MAX_FAILING_CHECKS = 10


def format_elapsed(seconds: float) -> str:
    """Whole-second duration as ``"Xm Ys"``."""
    total = int(round(seconds))
    return f"{total // 60}m {total % 60}s"


def _fmt(value: Any) -> str:
    if value is None:
        return "-"
    if isinstance(value, float):
        if value.is_integer():
            return f"{int(value)}"
        return f"{value:.2f}"
    return str(value)


def print_banner(summary: dict[str, Any], console: Console | None = None) -> None:
    """Print the setup summary of a run (``LoadTest.describe()``)."""
    console = console or Console()

    lines = [
        f"[bold]Target URL:[/bold] {summary['base_url']}",
        f"[bold]Load Profile:[/bold] {summary['profile']} "
        f"({summary['total_duration']}, up to {summary['max_vus']} VUs)",
        "[bold]Load Stages:[/bold]",
    ]
    for index, stage in enumerate(summary["stages"], start=1):
        lines.append(f"  Stage {index}: {stage}")

    lines.append("[bold]Scenarios:[/bold]")
    total_weight = sum(summary["scenarios"].values()) or 1
    for name, weight in summary["scenarios"].items():
        lines.append(f"  {name}: weight {weight:g} ({weight / total_weight:.0%})")

    if summary["thresholds"]:
        lines.append("[bold]Thresholds:[/bold]")
        for threshold in summary["thresholds"]:
            lines.append(f"  {threshold}")

    lines.append(f"[bold]Authentication:[/bold] {summary['authentication']}")
    lines.append(
        f"[bold]Detailed Logs:[/bold] {'Enabled' if summary['detailed_logs'] else 'Disabled'}"
    )
    if summary.get("deadline") is not None:
        lines.append(f"[bold]Run Deadline:[/bold] {summary['deadline']:g}s")

    title = "Starting load test"
    if summary.get("name"):
        title = f"{title}: {summary['name']}"
    console.print(Panel("\n".join(lines), title=title, border_style="blue"))


def print_profiles(profiles: list[LoadProfile], console: Console | None = None) -> None:
    """Print the stages and total duration of each profile."""
    console = console or Console()
    for profile in profiles:
        table = Table(title=f"Profile: {profile.name}")
        table.add_column("Stage", style="cyan", justify="right")
        table.add_column("Duration", style="green")
        table.add_column("Target VUs", style="yellow", justify="right")

        for index, stage in enumerate(profile.stages, start=1):
            table.add_row(str(index), format_duration(stage.duration), str(stage.target))

        console.print(table)
        console.print(
            f"  [bold]Total:[/bold] {format_duration(profile.total_duration)}, "
            f"up to {profile.max_target} VUs"
        )
        console.print()


def _metrics_table(report: RunReport) -> Table:
    snapshot = report.snapshot
    table = Table(title="Metrics")
    table.add_column("Metric", style="cyan")
    table.add_column("Type", style="magenta")
    table.add_column("Values")

    names = [name for name in _PRIMARY_METRICS if name in snapshot]
    names += sorted(
        name
        for name in snapshot.series
        if name not in _PRIMARY_METRICS
        and name != "vus"
        and not name.startswith("check_failures{")
    )

    for name in names:
        series = snapshot.get(name)
        if series is None or not series.has_data:
            continue
        summary = series.summary(snapshot.duration)
        values = "  ".join(f"{key}={_fmt(value)}" for key, value in summary.items())
        table.add_row(name, series.type.value, values)

    return table


def _thresholds_table(report: RunReport) -> Table:
    table = Table(title="Thresholds")
    table.add_column("Metric", style="cyan")
    table.add_column("Expression")
    table.add_column("Observed", justify="right")
    table.add_column("Result")

    for result in report.thresholds.results:
        if result.reason == "no data":
            status = "[yellow]no data[/yellow]"
        elif result.passed:
            status = "[green]✓ pass[/green]"
        else:
            status = "[red]✗ fail[/red]"
        table.add_row(
            result.threshold.metric,
            result.threshold.expression,
            _fmt(result.observed),
            status,
        )
    return table


def print_summary(report: RunReport, console: Console | None = None) -> None:
    """Print the end-of-run summary."""
    console = console or Console()

    console.print()
    console.print(_metrics_table(report))

    if report.thresholds.results:
        console.print(_thresholds_table(report))

    failures = report.snapshot.check_failures()[:MAX_FAILING_CHECKS]
    if failures:
        table = Table(title="Most Frequent Failing Checks")
        table.add_column("Check", style="cyan")
        table.add_column("Failures", style="red", justify="right")
        for name, count in failures:
            table.add_row(name, str(count))
        console.print(table)

    success_rate = report.success_rate
    lines = [
        f"[bold]Load Profile:[/bold] {report.profile.name}",
        f"[bold]Target URL:[/bold] {report.base_url}",
        f"[bold]Started:[/bold] {report.started_at.isoformat()}",
        f"[bold]Ended:[/bold] {report.ended_at.isoformat()}",
        f"[bold]Total Duration:[/bold] {format_elapsed(report.duration)}",
        f"[bold]Requests:[/bold] {report.total_requests}",
        "[bold]Success Rate:[/bold] "
        + (f"{success_rate:.2%}" if success_rate is not None else "-"),
    ]
    if report.aborted:
        lines.append(f"[red]Aborted:[/red] {report.abort_reason}")

    if report.passed:
        title, style = "[green]Load test PASSED[/green]", "green"
    else:
        title, style = "[red]Load test FAILED[/red]", "red"

    console.print(Panel("\n".join(lines), title=title, border_style=style))
