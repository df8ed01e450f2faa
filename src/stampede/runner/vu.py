"""Virtual users.

A virtual user repeatedly selects a scenario, runs it, and sleeps a random
think time, until it is told to stop:

    IDLE -> RUNNING -> (select -> execute -> think)* -> STOPPING -> TERMINATED

Stopping is graceful: the current iteration's requests finish (or time out)
and the think-time sleep returns immediately, but no further scenario is
selected. A scenario body that raises is logged and counted, and the loop
carries on with the next iteration.
"""

from __future__ import annotations

import asyncio
import logging
import random
import time
from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Mapping

from stampede.errors import ScenarioError
from stampede.observability.logging import set_vu_context
from stampede.scenarios.context import ExecutionContext

if TYPE_CHECKING:
    from stampede.http.executor import RequestExecutor
    from stampede.metrics.collector import MetricsCollector
    from stampede.scenarios.registry import ScenarioRegistry

logger = logging.getLogger(__name__)


class VUStatus(str, Enum):
    """Lifecycle of a virtual user."""

    IDLE = "idle"
    RUNNING = "running"
    STOPPING = "stopping"
    TERMINATED = "terminated"


@dataclass
class VUState:
    """State owned exclusively by one virtual user."""

    id: int
    status: VUStatus = VUStatus.IDLE
    iteration_count: int = 0
    failed_iterations: int = 0
    started_at: float | None = None
    stopped_at: float | None = None

    @property
    def running(self) -> bool:
        return self.status is VUStatus.RUNNING


class VirtualUser:
    """One simulated user, run as its own asyncio task."""

    def __init__(
        self,
        vu_id: int,
        registry: ScenarioRegistry,
        executor: RequestExecutor,
        collector: MetricsCollector,
        think_time: tuple[float, float] = (1.0, 3.0),
        rng: random.Random | None = None,
        test_data: Mapping[str, list[Any]] | None = None,
        max_iterations: int | None = None,
    ) -> None:
        """Initialize virtual user.

        Args:
            vu_id: Identifier, unique within the run
            registry: Scenarios to select from
            executor: Executor shared by every virtual user of the run
            collector: Run-scoped metrics collector
            think_time: ``(min, max)`` seconds slept between iterations
            rng: Random source for scenario selection, think time and test data
            test_data: Named payload lists available to scenario bodies
            max_iterations: Stop after this many iterations (unbounded if None)
        """
        self.state = VUState(id=vu_id)
        self.registry = registry
        self.collector = collector
        self.think_time = think_time
        self.rng = rng or random.Random()
        self.max_iterations = max_iterations
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None
        self.context = ExecutionContext(
            vu_id=vu_id,
            executor=executor,
            rng=self.rng,
            stop_event=self._stop_event,
            test_data=test_data,
        )

    @property
    def id(self) -> int:
        return self.state.id

    @property
    def stopping(self) -> bool:
        """True once told to stop (the task may still be finishing)."""
        return self._stop_event.is_set()

    @property
    def done(self) -> bool:
        if self.state.status is VUStatus.TERMINATED:
            return True
        return self._task is not None and self._task.done()

    @property
    def task(self) -> asyncio.Task[None] | None:
        return self._task

    def start(self) -> asyncio.Task[None]:
        """Start the loop in a new task."""
        if self._task is not None:
            raise RuntimeError(f"VU {self.id} already started")
        self._task = asyncio.create_task(self.run(), name=f"vu-{self.id}")
        return self._task

    def stop(self) -> None:
        """Ask the virtual user to stop after its current iteration."""
        if self._stop_event.is_set():
            return
        self._stop_event.set()
        if self.state.status is VUStatus.RUNNING:
            self.state.status = VUStatus.STOPPING

    def cancel(self) -> None:
        """Abort the in-flight iteration."""
        self.stop()
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def run(self) -> None:
        """Run iterations until stopped."""
        self.state.status = VUStatus.STOPPING if self.stopping else VUStatus.RUNNING
        self.state.started_at = time.monotonic()
        set_vu_context(self.id)
        logger.debug(f"VU {self.id} started")

        try:
            while not self.stopping:
                await self.run_iteration()

                if self.max_iterations is not None and (
                    self.state.iteration_count >= self.max_iterations
                ):
                    self.stop()
                    break
                if self.stopping:
                    break

                await self.context.think(*self.think_time)
        finally:
            self.state.status = VUStatus.TERMINATED
            self.state.stopped_at = time.monotonic()
            logger.debug(
                f"VU {self.id} terminated after {self.state.iteration_count} iterations"
            )

    async def run_iteration(self) -> bool:
        """Select and run one scenario.

        Returns:
            True if the scenario body completed without raising
        """
        scenario = self.registry.select(self.rng)
        iteration = self.state.iteration_count + 1

        self.context.scenario = scenario.name
        self.context.iteration = iteration
        set_vu_context(self.id, iteration=iteration, scenario=scenario.name)

        start = time.perf_counter()
        failed = False
        try:
            await scenario.body(self.context)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            failed = True
            self.state.failed_iterations += 1
            logger.warning(str(ScenarioError(scenario.name, e)))
            logger.debug("Scenario traceback", exc_info=True)
        finally:
            self.state.iteration_count = iteration

        self.collector.record_iteration(
            scenario.name, (time.perf_counter() - start) * 1000, failed
        )
        return not failed
