"""Execution context handed to scenario bodies."""

from __future__ import annotations

import asyncio
import random
from typing import TYPE_CHECKING, Any, Mapping

if TYPE_CHECKING:
    from stampede.http.executor import RequestExecutor
    from stampede.http.outcome import RequestOutcome


class ExecutionContext:
    """Per-virtual-user view of the run.

    Each virtual user owns one context for its whole life. Scenario bodies
    issue requests through it (so every request is tagged with the VU and
    scenario), draw random values from the VU's own seeded source, keep
    per-VU state in ``data``, and pause with a sleep that returns as soon as
    the VU is told to stop.
    """

    def __init__(
        self,
        vu_id: int,
        executor: RequestExecutor,
        rng: random.Random | None = None,
        stop_event: asyncio.Event | None = None,
        test_data: Mapping[str, list[Any]] | None = None,
    ) -> None:
        self.vu_id = vu_id
        self.executor = executor
        self.rng = rng or random.Random()
        self.test_data = test_data or {}
        self.data: dict[str, Any] = {}
        self.scenario: str | None = None
        self.iteration = 0
        self._stop_event = stop_event or asyncio.Event()

    @property
    def base_url(self) -> str:
        return self.executor.base_url

    @property
    def stopping(self) -> bool:
        """True once the virtual user has been told to stop."""
        return self._stop_event.is_set()

    async def request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        headers: Mapping[str, str] | None = None,
        name: str | None = None,
        timeout: float | None = None,
    ) -> RequestOutcome:
        """Issue one request through the run's executor."""
        return await self.executor.execute(
            method,
            path,
            payload,
            headers,
            name=name,
            scenario=self.scenario,
            vu_id=self.vu_id,
            timeout=timeout,
        )

    async def get(self, path: str, **kwargs: Any) -> RequestOutcome:
        return await self.request("GET", path, **kwargs)

    async def post(self, path: str, payload: Any = None, **kwargs: Any) -> RequestOutcome:
        return await self.request("POST", path, payload, **kwargs)

    async def put(self, path: str, payload: Any = None, **kwargs: Any) -> RequestOutcome:
        return await self.request("PUT", path, payload, **kwargs)

    async def patch(self, path: str, payload: Any = None, **kwargs: Any) -> RequestOutcome:
        return await self.request("PATCH", path, payload, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> RequestOutcome:
        return await self.request("DELETE", path, **kwargs)

    async def sleep(self, seconds: float) -> bool:
        """Sleep for ``seconds`` unless stopped first.

        Returns:
            True if the full duration elapsed, False if interrupted by stop
        """
        if seconds <= 0:
            # Still yield so a VU without think time cannot starve the others
            await asyncio.sleep(0)
            return not self.stopping
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            return True
        return False

    async def think(self, minimum: float, maximum: float) -> bool:
        """Sleep a uniform random time in ``[minimum, maximum]``."""
        return await self.sleep(self.rng.uniform(minimum, maximum))

    def random_id(self, low: int = 1, high: int = 1000) -> int:
        return self.rng.randint(low, high)

    def pick(self, key: str) -> Any:
        """Random item from the named ``test_data`` list.

        Raises:
            KeyError: If the list does not exist or is empty
        """
        items = self.test_data.get(key)
        if not items:
            raise KeyError(f"No test data named '{key}'")
        return self.rng.choice(items)
