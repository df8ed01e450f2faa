"""Scenarios scripted in the test plan.

A scripted scenario is an ordered list of request steps. Each step names a
method and either a literal ``path`` or a plan ``endpoint``; ``{id}`` in the
path becomes a random integer in 1..1000. The body is either a literal
``payload`` or a random item of a ``test_data`` list (``payloadFrom``).
``pause`` sleeps a random ``[min, max]`` seconds after the step and returns
early when the virtual user is stopping.
"""

from __future__ import annotations

import copy
import logging
from typing import TYPE_CHECKING, Any, Mapping

from stampede.scenarios.registry import ScenarioBody, ScenarioRegistry

if TYPE_CHECKING:
    from stampede.plan.models import LoadPlan, ScenarioDefinition, ScenarioStep
    from stampede.scenarios.context import ExecutionContext

logger = logging.getLogger(__name__)

ID_PLACEHOLDER = "{id}"


def _step_path(step: ScenarioStep, endpoints: Mapping[str, str]) -> str:
    if step.path is not None:
        return step.path
    return endpoints[step.endpoint]  # type: ignore[index]


def build_scripted_body(
    name: str,
    definition: ScenarioDefinition,
    endpoints: Mapping[str, str],
) -> ScenarioBody:
    """Compile a scenario definition into a scenario body."""
    steps = [(step, _step_path(step, endpoints)) for step in definition.steps]

    async def body(ctx: ExecutionContext) -> None:
        for step, template in steps:
            path = template
            if ID_PLACEHOLDER in path:
                path = path.replace(ID_PLACEHOLDER, str(ctx.random_id()))

            payload: Any = step.payload
            if step.payload_from is not None:
                payload = ctx.pick(step.payload_from)
            if payload is not None:
                payload = copy.deepcopy(payload)

            await ctx.request(
                step.method,
                path,
                payload,
                headers=step.headers or None,
                # Label by template so /items/{id} is one series, not a thousand
                name=step.name or f"{step.method} {template}",
            )

            if step.pause is not None:
                await ctx.think(*step.pause)

    body.__name__ = f"scripted_{name}"
    body.__qualname__ = body.__name__
    return body


def registry_from_plan(
    plan: LoadPlan, registry: ScenarioRegistry | None = None
) -> ScenarioRegistry:
    """Register every enabled scripted scenario of ``plan``.

    Scenarios with weight 0 are skipped.
    """
    if registry is None:
        registry = ScenarioRegistry()
    for name, definition in plan.scenarios.items():
        if definition.weight == 0:
            logger.info(f"Scenario '{name}' has weight 0, skipping")
            continue
        registry.register(
            name,
            build_scripted_body(name, definition, plan.endpoints),
            weight=definition.weight,
            description=definition.description,
        )
    return registry
