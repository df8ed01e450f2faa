"""Request outcomes produced by the executor."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

import orjson


class ErrorKind(str, Enum):
    """Why a request was classified as failed."""

    TIMEOUT = "timeout"
    TRANSPORT = "transport"
    STATUS = "status"
    LATENCY = "latency"
    EMPTY_BODY = "empty_body"
    CONTENT_TYPE = "content_type"
    PAYLOAD = "payload"


@dataclass(frozen=True)
class CheckResult:
    """Result of one success check applied to a response."""

    name: str
    passed: bool
    error_kind: ErrorKind


@dataclass(frozen=True)
class RequestOutcome:
    """Immutable result of a single request.

    ``status_code`` is ``None`` when the transport failed before a response
    arrived. ``checks`` lists every check that was applied, in order; the
    first failing one determines ``error_kind``.
    """

    method: str
    url: str
    name: str
    status_code: int | None
    latency_ms: float
    body_size: int
    succeeded: bool
    error_kind: ErrorKind | None = None
    error: str | None = None
    checks: tuple[CheckResult, ...] = ()
    scenario: str | None = None
    vu_id: int | None = None
    timestamp: float = field(default_factory=time.time)
    headers: Mapping[str, str] = field(default_factory=dict, repr=False, compare=False)
    body: bytes = field(default=b"", repr=False, compare=False)

    @property
    def failed_checks(self) -> list[str]:
        """Names of the checks that did not hold."""
        return [check.name for check in self.checks if not check.passed]

    @property
    def text(self) -> str:
        return self.body.decode("utf-8", errors="replace")

    def json(self) -> Any:
        """Decode the body as JSON.

        Raises:
            orjson.JSONDecodeError: If the body is not valid JSON
        """
        return orjson.loads(self.body)
