"""Run reporting: console banner and summary, JSON export."""

from stampede.reporting.console import (
    format_elapsed,
    print_banner,
    print_profiles,
    print_summary,
)
from stampede.reporting.export import export_summary, report_to_json

__all__ = [
    "export_summary",
    "format_elapsed",
    "print_banner",
    "print_profiles",
    "print_summary",
    "report_to_json",
]
