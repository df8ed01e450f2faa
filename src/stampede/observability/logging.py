"""Structured logging for load test runs.

Provides:
- JSON-formatted logs for log aggregation systems (ELK, Loki, etc.)
- Human-readable console logs for interactive runs
- Run and virtual-user context (run_id, vu_id, iteration, scenario) on every record

Usage:
    from stampede.observability.logging import configure_logging

    configure_logging(json_format=False, level="INFO")

    # Virtual-user context is automatically included in logs
    with LogContext(vu_id=3, scenario="browse"):
        logger.warning("Request failed")  # Includes vu=3 scenario=browse
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any

# Context variables for run correlation
run_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("run_id", default="")
vu_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("vu_id", default="")
iteration_var: contextvars.ContextVar[str] = contextvars.ContextVar("iteration", default="")
scenario_var: contextvars.ContextVar[str] = contextvars.ContextVar("scenario", default="")

_CONTEXT_VARS: dict[str, contextvars.ContextVar[str]] = {
    "run_id": run_id_var,
    "vu_id": vu_id_var,
    "iteration": iteration_var,
    "scenario": scenario_var,
}

# Standard LogRecord attributes, never copied as extra fields
_STANDARD_ATTRS = {
    "name",
    "msg",
    "args",
    "created",
    "filename",
    "funcName",
    "levelname",
    "levelno",
    "lineno",
    "module",
    "msecs",
    "pathname",
    "process",
    "processName",
    "relativeCreated",
    "stack_info",
    "exc_info",
    "exc_text",
    "thread",
    "threadName",
    "taskName",
    "message",
}


def current_context() -> dict[str, str]:
    """Non-empty run context values."""
    return {key: var.get() for key, var in _CONTEXT_VARS.items() if var.get()}


class JsonFormatter(logging.Formatter):
    """JSON log formatter with run context.

    Output format:
    {
        "timestamp": "2026-01-10T12:34:56.789Z",
        "level": "WARNING",
        "logger": "stampede.http.executor",
        "message": "Request failed: GET https://api.example.com/users - Status: 500",
        "module": "executor",
        "function": "_log",
        "line": 42,
        "run_id": "3f2a9c1e",
        "vu_id": "7",
        "iteration": "12",
        "scenario": "browse"
    }
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        log_data.update(current_context())

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__ if record.exc_info[0] else None,
                "message": str(record.exc_info[1]) if record.exc_info[1] else None,
                "traceback": self.formatException(record.exc_info),
            }

        for key, value in record.__dict__.items():
            if key not in _STANDARD_ATTRS and not key.startswith("_"):
                try:
                    json.dumps(value)
                    log_data[key] = value
                except (TypeError, ValueError):
                    log_data[key] = str(value)

        return json.dumps(log_data, default=str, ensure_ascii=False)


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for interactive runs.

    Output format:
    2026-01-10 12:34:56 | WARNING  | stampede.http.executor | Request failed ... | vu=7 iter=12 scenario=browse
    """

    COLORS = {
        "DEBUG": "\033[36m",  # Cyan
        "INFO": "\033[32m",  # Green
        "WARNING": "\033[33m",  # Yellow
        "ERROR": "\033[31m",  # Red
        "CRITICAL": "\033[35m",  # Magenta
    }
    RESET = "\033[0m"

    _SHORT_NAMES = {"run_id": "run", "vu_id": "vu", "iteration": "iter", "scenario": "scenario"}

    def __init__(self, use_colors: bool = True) -> None:
        super().__init__()
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for console output."""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname

        if self.use_colors:
            color = self.COLORS.get(level, "")
            level = f"{color}{level:8}{self.RESET}"
        else:
            level = f"{level:8}"

        message = record.getMessage()

        context_parts = [
            f"{self._SHORT_NAMES[key]}={value}"
            for key, value in current_context().items()
            if key != "run_id"
        ]
        context = f" | {' '.join(context_parts)}" if context_parts else ""

        result = f"{timestamp} | {level} | {record.name} | {message}{context}"

        if record.exc_info:
            result += "\n" + self.formatException(record.exc_info)

        return result


def configure_logging(
    json_format: bool = False,
    level: str = "INFO",
    use_colors: bool = True,
) -> None:
    """Configure process-wide logging.

    Args:
        json_format: Use JSON format (for log aggregation)
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        use_colors: Use ANSI colors in console format
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stderr)

    if json_format:
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(ConsoleFormatter(use_colors=use_colors))

    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


class LogContext:
    """Context manager for adding temporary run context.

    Usage:
        with LogContext(run_id="3f2a9c1e"):
            logger.info("Run started")  # Includes run_id
    """

    def __init__(self, **kwargs: Any) -> None:
        unknown = set(kwargs) - set(_CONTEXT_VARS)
        if unknown:
            raise ValueError(f"Unknown log context keys: {sorted(unknown)}")
        self.extra = kwargs
        self._tokens: dict[str, contextvars.Token[str]] = {}

    def __enter__(self) -> LogContext:
        for key, value in self.extra.items():
            self._tokens[key] = _CONTEXT_VARS[key].set(str(value))
        return self

    def __exit__(self, *args: Any) -> None:
        for key, token in self._tokens.items():
            _CONTEXT_VARS[key].reset(token)
        self._tokens.clear()


def set_vu_context(vu_id: int, iteration: int | None = None, scenario: str | None = None) -> None:
    """Set virtual-user context for the current task.

    Each virtual user runs in its own asyncio task with its own copy of the
    context, so values set here never leak into other virtual users.
    """
    vu_id_var.set(str(vu_id))
    if iteration is not None:
        iteration_var.set(str(iteration))
    if scenario is not None:
        scenario_var.set(scenario)
