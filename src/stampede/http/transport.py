"""HTTP transport used by the request executor.

The executor depends only on the ``Transport`` protocol: issue one request,
get back status, latency, headers and body, or raise ``TransportError``.
``HttpxTransport`` is the production implementation; tests substitute a stub.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Mapping, Protocol

import httpx

from stampede.errors import TransportError, TransportTimeout

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportResponse:
    """Raw response as seen by the executor."""

    status: int
    latency_ms: float
    headers: Mapping[str, str] = field(default_factory=dict)
    body: bytes = b""


class Transport(Protocol):
    """Opaque "issue request, get status/latency/body" capability."""

    async def issue(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        """Issue one request.

        Raises:
            TransportTimeout: If no response arrived within ``timeout``
            TransportError: On any other transport failure
        """
        ...


class HttpxTransport:
    """Transport backed by a shared ``httpx.AsyncClient``.

    One client (and connection pool) is shared by every virtual user of a run.
    """

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        max_connections: int | None = None,
        verify: bool = True,
    ) -> None:
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            limits=httpx.Limits(max_connections=max_connections, max_keepalive_connections=None),
            verify=verify,
            follow_redirects=False,
        )

    async def issue(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout: float,
    ) -> TransportResponse:
        start = time.perf_counter()
        try:
            response = await self._client.request(
                method,
                url,
                headers=dict(headers),
                content=body,
                timeout=timeout,
            )
        except httpx.TimeoutException as e:
            raise TransportTimeout(f"{method} {url} timed out after {timeout:.1f}s") from e
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise TransportError(f"{method} {url} failed: {type(e).__name__}: {e}") from e
        except Exception as e:
            # e.g. an ExceptionGroup from the connection layer for an out-of-range port
            raise TransportError(f"{method} {url} failed: {type(e).__name__}: {e}") from e
        latency_ms = (time.perf_counter() - start) * 1000

        return TransportResponse(
            status=response.status_code,
            latency_ms=latency_ms,
            headers=dict(response.headers),
            body=response.content,
        )

    async def aclose(self) -> None:
        """Close the underlying client if this transport created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpxTransport:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
