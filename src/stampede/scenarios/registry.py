"""Named scenarios and weighted selection.

Selection walks the scenarios in registration order, accumulating weight, and
returns the first whose cumulative weight exceeds a uniform draw in
``[0, total_weight)``. Weights need not sum to 1. With a seeded random source
the sequence of selections is deterministic.

Example:
    registry = ScenarioRegistry()
    registry.register("browse", browse, weight=3)
    registry.register("checkout", checkout, weight=1)
    registry.freeze()

    scenario = registry.select(random.Random(42))
"""

from __future__ import annotations

import logging
import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Awaitable, Callable, Iterator

from stampede.errors import ConfigurationError

if TYPE_CHECKING:
    from stampede.scenarios.context import ExecutionContext

logger = logging.getLogger(__name__)

ScenarioBody = Callable[["ExecutionContext"], Awaitable[None]]

# Attribute set on functions decorated with @scenario
SCENARIO_ATTR = "__stampede_scenario__"


@dataclass(frozen=True)
class Scenario:
    """A named, weighted scenario body."""

    name: str
    weight: float
    body: ScenarioBody
    description: str | None = None


class ScenarioRegistry:
    """Ordered collection of scenarios, read-only once frozen."""

    def __init__(self) -> None:
        self._scenarios: list[Scenario] = []
        self._names: set[str] = set()
        self._frozen = False

    def register(
        self,
        name: str,
        body: ScenarioBody,
        weight: float = 1.0,
        description: str | None = None,
    ) -> Scenario:
        """Register a scenario.

        Raises:
            ConfigurationError: On a duplicate name, a non-positive weight,
                a non-callable body, or a frozen registry
        """
        if self._frozen:
            raise ConfigurationError(
                f"Cannot register scenario '{name}': registry is frozen once a run starts"
            )
        if not name:
            raise ConfigurationError("Scenario name must not be empty")
        if name in self._names:
            raise ConfigurationError(f"Scenario '{name}' is already registered")
        if not callable(body):
            raise ConfigurationError(f"Scenario '{name}' body is not callable")
        if not isinstance(weight, (int, float)) or not math.isfinite(weight) or weight <= 0:
            raise ConfigurationError(f"Scenario '{name}' weight must be > 0, got {weight!r}")

        scenario = Scenario(name=name, weight=float(weight), body=body, description=description)
        self._scenarios.append(scenario)
        self._names.add(name)
        logger.debug(f"Registered scenario: {name} (weight {weight})")
        return scenario

    def freeze(self) -> None:
        """Validate and make the registry read-only."""
        self.validate()
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def validate(self) -> None:
        """Raise ``ConfigurationError`` if nothing could ever be selected."""
        if not self._scenarios:
            raise ConfigurationError("No scenarios registered")
        if self.total_weight <= 0:
            raise ConfigurationError("Total scenario weight must be > 0")

    @property
    def total_weight(self) -> float:
        return sum(s.weight for s in self._scenarios)

    def share(self, name: str) -> float:
        """Expected selection frequency of ``name`` (``weight / total_weight``)."""
        return self.get(name).weight / self.total_weight

    def select(self, rng: random.Random) -> Scenario:
        """Pick a scenario by cumulative-weight scan."""
        total = self.total_weight
        if not self._scenarios or total <= 0:
            raise ConfigurationError("No selectable scenarios")

        r = rng.random() * total
        cumulative = 0.0
        for scenario in self._scenarios:
            cumulative += scenario.weight
            if r < cumulative:
                return scenario

        # Floating point rounding can leave r == total
        return self._scenarios[-1]

    def get(self, name: str) -> Scenario:
        for scenario in self._scenarios:
            if scenario.name == name:
                return scenario
        raise KeyError(name)

    @property
    def names(self) -> list[str]:
        return [s.name for s in self._scenarios]

    def __len__(self) -> int:
        return len(self._scenarios)

    def __iter__(self) -> Iterator[Scenario]:
        return iter(list(self._scenarios))

    def __contains__(self, name: object) -> bool:
        return name in self._names


def scenario(
    name: str | None = None,
    weight: float = 1.0,
    description: str | None = None,
) -> Callable[[ScenarioBody], ScenarioBody]:
    """Mark a coroutine function as a scenario for module loading.

    The function is left unchanged; ``load_scenario_module`` registers every
    marked function it finds.

    Example:
        @scenario("browse", weight=3)
        async def browse(ctx: ExecutionContext) -> None:
            await ctx.get("/products")
    """

    def decorator(func: ScenarioBody) -> ScenarioBody:
        setattr(
            func,
            SCENARIO_ATTR,
            {
                "name": name or getattr(func, "__name__", "scenario"),
                "weight": weight,
                "description": description or (func.__doc__ or "").strip() or None,
            },
        )
        return func

    return decorator
