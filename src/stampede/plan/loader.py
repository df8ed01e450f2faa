"""Test plan loading.

Loads a plan from a JSON file, resolves ``${NAME}`` / ``${NAME:-default}``
environment placeholders in every string value, and validates the result.
Every problem is reported as a ``ConfigurationError`` before any virtual
user starts.
"""

from __future__ import annotations

import logging
import os
import re
from pathlib import Path
from typing import Any, Mapping

import orjson
from pydantic import ValidationError

from stampede.errors import ConfigurationError
from stampede.plan.models import LoadPlan

logger = logging.getLogger(__name__)

_PLACEHOLDER = re.compile(r"\$\{(?P<name>[A-Za-z_][A-Za-z0-9_]*)(?::-(?P<default>[^}]*))?\}")


def resolve_placeholders(value: Any, env: Mapping[str, str] | None = None) -> Any:
    """Resolve environment placeholders recursively.

    ``${NAME}`` is replaced by the variable's value; ``${NAME:-default}``
    falls back to ``default`` when the variable is unset or empty. A
    placeholder with no value and no default is left in place and logged.
    """
    env = os.environ if env is None else env

    if isinstance(value, str):

        def substitute(match: re.Match[str]) -> str:
            name = match.group("name")
            default = match.group("default")
            resolved = env.get(name)
            if resolved:
                return resolved
            if default is not None:
                return default
            logger.warning(f"Environment variable {name} is not set")
            return match.group(0)

        return _PLACEHOLDER.sub(substitute, value)

    if isinstance(value, dict):
        return {key: resolve_placeholders(item, env) for key, item in value.items()}

    if isinstance(value, list):
        return [resolve_placeholders(item, env) for item in value]

    return value


def format_validation_error(error: ValidationError) -> str:
    """One line per problem: ``location: message``."""
    lines = []
    for item in error.errors():
        location = ".".join(str(part) for part in item["loc"]) or "plan"
        lines.append(f"  {location}: {item['msg']}")
    return "\n".join(lines)


def parse_plan(data: Any, env: Mapping[str, str] | None = None) -> LoadPlan:
    """Validate an already-decoded plan document.

    Raises:
        ConfigurationError: If the plan is invalid
    """
    if not isinstance(data, dict):
        raise ConfigurationError("Test plan must be a JSON object")

    resolved = resolve_placeholders(data, env)
    try:
        return LoadPlan.model_validate(resolved)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid test plan ({e.error_count()} errors):\n{format_validation_error(e)}"
        ) from e


def load_plan(path: str | Path, env: Mapping[str, str] | None = None) -> LoadPlan:
    """Load and validate a plan file.

    Raises:
        ConfigurationError: If the file is missing, not JSON, or invalid
    """
    plan_path = Path(path)
    if not plan_path.is_file():
        raise ConfigurationError(f"Test plan not found: {plan_path}")

    logger.info(f"Loading test plan from {plan_path}")

    try:
        data = orjson.loads(plan_path.read_bytes())
    except orjson.JSONDecodeError as e:
        raise ConfigurationError(f"Invalid JSON in {plan_path}: {e}") from e
    except OSError as e:
        raise ConfigurationError(f"Cannot read test plan {plan_path}: {e}") from e

    plan = parse_plan(data, env)
    logger.info(
        f"Loaded plan with {len(plan.scenarios)} scenarios, "
        f"{len(plan.load_profiles)} load profiles, {len(plan.thresholds)} thresholds"
    )
    return plan
