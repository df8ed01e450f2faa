"""Observability for Stampede runs.

Provides structured logging with run and virtual-user context. Live
Prometheus exposure lives in ``stampede.metrics.prometheus``.
"""

from stampede.observability.logging import (
    ConsoleFormatter,
    JsonFormatter,
    LogContext,
    configure_logging,
    current_context,
    run_id_var,
    set_vu_context,
    vu_id_var,
)

__all__ = [
    "ConsoleFormatter",
    "JsonFormatter",
    "LogContext",
    "configure_logging",
    "current_context",
    "run_id_var",
    "set_vu_context",
    "vu_id_var",
]
