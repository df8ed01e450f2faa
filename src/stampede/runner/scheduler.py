"""Load profile scheduler.

The scheduler is the only writer of the live virtual-user set. At every
control tick it computes the desired VU count from the profile (linear ramp
between stage boundaries) and reconciles:

- live < desired: spawn new virtual users
- live > desired: mark the newest-started virtual users for graceful stop

Virtual users that are stopping no longer count as live. When the last stage
ends the scheduler returns; if a global deadline shorter than the profile is
reached first it stops every virtual user and raises ``DeadlineExceeded``.

Example:
    scheduler = LoadProfileScheduler(profile, spawn=make_vu, collector=collector)
    try:
        await scheduler.run()
    finally:
        await scheduler.stop_all(grace_period=30)
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

from stampede.errors import DeadlineExceeded
from stampede.profile.stages import desired_vus, target_at

if TYPE_CHECKING:
    from stampede.metrics.collector import MetricsCollector
    from stampede.profile.stages import LoadProfile
    from stampede.runner.vu import VirtualUser

logger = logging.getLogger(__name__)

DEFAULT_CONTROL_INTERVAL = 1.0

VUFactory = Callable[[int], "VirtualUser"]


@dataclass(frozen=True)
class ControlSample:
    """Scheduler state after one reconciliation."""

    elapsed: float
    target: float
    desired: int
    live: int


class LoadProfileScheduler:
    """Drives the virtual-user population along a load profile."""

    def __init__(
        self,
        profile: LoadProfile,
        spawn: VUFactory,
        collector: MetricsCollector | None = None,
        control_interval: float = DEFAULT_CONTROL_INTERVAL,
        deadline: float | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_vus: Callable[[int], None] | None = None,
    ) -> None:
        """Initialize scheduler.

        Args:
            profile: Load profile to follow
            spawn: Factory building a (not yet started) virtual user from an id
            collector: Collector receiving the ``vus`` gauge
            control_interval: Seconds between reconciliations
            deadline: Global run deadline in seconds from start
            clock: Monotonic clock
            on_vus: Called with the live VU count after every reconciliation
        """
        if control_interval <= 0:
            raise ValueError(f"control_interval must be > 0, got {control_interval}")

        self.profile = profile
        self.spawn = spawn
        self.collector = collector
        self.control_interval = control_interval
        self.deadline = deadline
        self.on_vus = on_vus
        self._clock = clock
        self._vus: list[VirtualUser] = []
        self._retired: list[VirtualUser] = []
        self._next_id = 1
        self._started_at: float | None = None
        self.samples: list[ControlSample] = []

    @property
    def live_vus(self) -> list[VirtualUser]:
        """Virtual users not yet told to stop, in start order."""
        return [vu for vu in self._vus if not vu.stopping]

    @property
    def all_vus(self) -> list[VirtualUser]:
        """Every virtual user started during the run, in start order."""
        return self._retired + self._vus

    @property
    def elapsed(self) -> float:
        if self._started_at is None:
            return 0.0
        return self._clock() - self._started_at

    @property
    def run_length(self) -> float:
        """Seconds the scheduler will run: the profile, capped by the deadline."""
        total = self.profile.total_duration
        if self.deadline is not None:
            return min(total, self.deadline)
        return total

    def reconcile(self, elapsed: float) -> ControlSample:
        """Adjust the live set to the profile target at ``elapsed``."""
        target = target_at(self.profile, elapsed)
        desired = desired_vus(self.profile, elapsed)
        live = self.live_vus

        if len(live) < desired:
            for _ in range(desired - len(live)):
                vu = self.spawn(self._next_id)
                self._next_id += 1
                self._vus.append(vu)
                vu.start()
        elif len(live) > desired:
            # Newest first
            for vu in reversed(live[desired:]):
                vu.stop()

        self._prune()
        live_count = len(self.live_vus)

        if self.collector is not None:
            self.collector.record_vus(live_count)
        if self.on_vus is not None:
            self.on_vus(live_count)

        sample = ControlSample(elapsed=elapsed, target=target, desired=desired, live=live_count)
        self.samples.append(sample)
        logger.debug(
            f"t={elapsed:.1f}s target={target:.2f} desired={desired} live={live_count}"
        )
        return sample

    def _prune(self) -> None:
        finished = [vu for vu in self._vus if vu.done]
        if finished:
            self._retired.extend(finished)
            self._vus = [vu for vu in self._vus if not vu.done]

    async def run(self) -> None:
        """Follow the profile until its last stage ends.

        Raises:
            DeadlineExceeded: If the deadline is reached before the profile
                ends; every virtual user has been told to stop by then
        """
        total = self.profile.total_duration
        run_length = self.run_length
        self._started_at = self._clock()
        logger.info(
            f"Following load profile '{self.profile.name}': {len(self.profile.stages)} stages, "
            f"{total:.1f}s, up to {self.profile.max_target} VUs"
        )

        while True:
            elapsed = self.elapsed
            if elapsed >= run_length:
                break
            self.reconcile(elapsed)
            next_tick = min(elapsed + self.control_interval, run_length)
            await asyncio.sleep(max(next_tick - self.elapsed, 0.0))

        if run_length < total:
            logger.error(f"Run deadline of {run_length:.1f}s reached, stopping all VUs")
            self.stop_vus()
            raise DeadlineExceeded(run_length, total)

        # Final sample at the end of the last stage
        self.reconcile(total)
        logger.info(f"Load profile '{self.profile.name}' completed")

    def stop_vus(self) -> None:
        """Tell every virtual user to stop after its current iteration."""
        for vu in self._vus:
            vu.stop()

    async def stop_all(self, grace_period: float = 30.0, abort: bool = False) -> None:
        """Stop every virtual user and wait for their tasks.

        Args:
            grace_period: Seconds to wait for in-flight iterations before
                cancelling them
            abort: Cancel in-flight iterations immediately
        """
        self.stop_vus()
        tasks = [vu.task for vu in self._vus if vu.task is not None and not vu.task.done()]

        if tasks:
            if abort:
                logger.info(f"Aborting {len(tasks)} in-flight VUs")
                for vu in self._vus:
                    vu.cancel()
            else:
                logger.info(f"Waiting up to {grace_period:.0f}s for {len(tasks)} VUs to finish")
                _, pending = await asyncio.wait(tasks, timeout=grace_period)
                if pending:
                    logger.warning(
                        f"{len(pending)} VUs did not finish within the {grace_period:.0f}s "
                        "grace period, cancelling"
                    )
                    for task in pending:
                        task.cancel()
            results = await asyncio.gather(*tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error(f"VU task failed: {type(result).__name__}: {result}")

        self._prune()
        if self.collector is not None:
            self.collector.record_vus(0)
        if self.on_vus is not None:
            self.on_vus(0)
