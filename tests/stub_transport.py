"""In-memory transport used by tests instead of a real HTTP client."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Callable, Mapping

from stampede.http.transport import TransportResponse

JSON_HEADERS = {"content-type": "application/json"}


@dataclass
class StubCall:
    """One request seen by the stub transport."""

    method: str
    url: str
    headers: dict[str, str]
    body: bytes | None
    timeout: float


@dataclass
class StubTransport:
    """Transport returning a fixed response (or raising a fixed error).

    ``latency_ms`` is reported as-is; ``delay`` is real time spent in the
    call (for concurrency and stop tests).
    """

    status: int = 200
    latency_ms: float = 50.0
    body: bytes = b'{"ok": true}'
    headers: Mapping[str, str] = field(default_factory=lambda: dict(JSON_HEADERS))
    delay: float = 0.0
    error: Exception | None = None
    responder: Callable[[StubCall], TransportResponse] | None = None
    calls: list[StubCall] = field(default_factory=list)

    async def issue(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        call = StubCall(method, url, dict(headers), body, timeout)
        self.calls.append(call)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        if self.responder is not None:
            return self.responder(call)
        return TransportResponse(
            status=self.status,
            latency_ms=self.latency_ms,
            headers=dict(self.headers),
            body=self.body,
        )
