"""CLI commands for Stampede.

Provides command-line interface using Typer:
- stampede run: Run a load test plan
- stampede validate: Validate a test plan without running it
- stampede profiles: Show load profiles and their stages

Usage:
    stampede --help
    stampede run plan.json --profile light
    stampede validate plan.json
    stampede profiles plan.json
"""

import typer

from stampede.cli.profiles_cmd import app as profiles_app
from stampede.cli.run_cmd import app as run_app
from stampede.cli.validate_cmd import app as validate_app

# Main CLI application
app = typer.Typer(
    name="stampede",
    help="Stampede: staged HTTP load generation with k6-style thresholds",
    no_args_is_help=True,
)

# Add subcommands
app.add_typer(run_app, name="run")
app.add_typer(validate_app, name="validate")
app.add_typer(profiles_app, name="profiles")


@app.callback()
def callback() -> None:
    """Stampede: staged HTTP load generation with k6-style thresholds."""
    pass


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
