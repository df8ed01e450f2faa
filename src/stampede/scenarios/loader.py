"""Scenario module loading.

Imports Python modules named on the command line and registers every
function decorated with ``@scenario``.

Example:
    # myscenarios.py
    @scenario("browse", weight=3)
    async def browse(ctx: ExecutionContext) -> None:
        await ctx.get("/products")

    registry = ScenarioRegistry()
    load_scenario_module("myscenarios", registry)
"""

from __future__ import annotations

import importlib
import inspect
import logging
import sys
from pathlib import Path
from types import ModuleType

from stampede.errors import ConfigurationError
from stampede.scenarios.registry import SCENARIO_ATTR, ScenarioRegistry

logger = logging.getLogger(__name__)


def find_scenarios(module: ModuleType) -> list[tuple[str, object, dict]]:
    """Return ``(attribute, function, options)`` for each decorated function."""
    found = []
    for attr in dir(module):
        obj = getattr(module, attr)
        options = getattr(obj, SCENARIO_ATTR, None)
        if options is None or not callable(obj):
            continue
        # Skip functions imported from another module
        if getattr(obj, "__module__", module.__name__) != module.__name__:
            continue
        found.append((attr, obj, options))
    return found


def load_scenario_module(
    module_name: str,
    registry: ScenarioRegistry,
    search_path: str | Path | None = None,
) -> list[str]:
    """Import ``module_name`` and register its scenarios.

    Args:
        module_name: Dotted module name
        registry: Registry receiving the scenarios
        search_path: Directory added to ``sys.path`` while importing

    Returns:
        Names of the registered scenarios

    Raises:
        ConfigurationError: If the module cannot be imported, defines no
            scenarios, or defines a scenario that is not a coroutine function
    """
    path_entry = str(search_path) if search_path is not None else None
    added = path_entry is not None and path_entry not in sys.path
    if added:
        sys.path.insert(0, path_entry)  # type: ignore[arg-type]

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationError(f"Cannot import scenario module '{module_name}': {e}") from e
    finally:
        if added:
            sys.path.remove(path_entry)  # type: ignore[arg-type]

    registered: list[str] = []
    for attr, func, options in find_scenarios(module):
        if not inspect.iscoroutinefunction(func):
            raise ConfigurationError(
                f"Scenario '{module_name}.{attr}' must be an async function"
            )
        scenario = registry.register(
            options["name"],
            func,  # type: ignore[arg-type]
            weight=options["weight"],
            description=options["description"],
        )
        registered.append(scenario.name)

    if not registered:
        raise ConfigurationError(f"Module '{module_name}' defines no @scenario functions")

    logger.info(f"Loaded {len(registered)} scenarios from {module_name}: {registered}")
    return registered
