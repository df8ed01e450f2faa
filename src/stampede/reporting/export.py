"""JSON export of run reports."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import TYPE_CHECKING

import orjson

if TYPE_CHECKING:
    from stampede.runner.engine import RunReport

logger = logging.getLogger(__name__)


def report_to_json(report: RunReport) -> bytes:
    return orjson.dumps(report.to_dict(), option=orjson.OPT_INDENT_2 | orjson.OPT_SORT_KEYS)


def export_summary(report: RunReport, path: str | Path) -> Path:
    """Write the run report as JSON to ``path``."""
    output = Path(path)
    if output.parent != Path("."):
        output.parent.mkdir(parents=True, exist_ok=True)
    output.write_bytes(report_to_json(report))
    logger.info(f"Summary exported to {output}")
    return output
