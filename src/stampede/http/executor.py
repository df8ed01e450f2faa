"""Single-request execution and success classification.

The executor is the only component that talks to the transport. Every call
produces exactly one ``RequestOutcome``, which is recorded into the run's
``MetricsCollector`` before it is returned. Unencodable payloads, transport
failures and timeouts become failed outcomes; ``execute`` never raises them.

Example:
    executor = RequestExecutor(
        transport=HttpxTransport(),
        collector=collector,
        base_url="https://api.example.com",
        headers={"Accept": "application/json"},
        checks=CheckConfig(max_latency_ms=1000, content_type="application/json"),
    )
    outcome = await executor.execute("GET", "/users")
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Mapping

import orjson

from stampede.errors import TransportError, TransportTimeout
from stampede.http.auth import AuthConfig, build_auth_headers
from stampede.http.outcome import CheckResult, ErrorKind, RequestOutcome

if TYPE_CHECKING:
    from stampede.http.transport import Transport, TransportResponse
    from stampede.metrics.collector import MetricsCollector

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0

# Characters of a failing response body included in the warning
BODY_PREVIEW_LENGTH = 200


@dataclass(frozen=True)
class CheckConfig:
    """Success predicate applied to every response.

    A response succeeds only when all checks hold: status in [200, 300),
    latency below ``max_latency_ms``, a non-empty body (when
    ``require_body``), and a ``Content-Type`` containing ``content_type``
    (when declared).
    """

    max_latency_ms: float = 1000.0
    require_body: bool = True
    content_type: str | None = None


def _header(headers: Mapping[str, str], name: str) -> str | None:
    lowered = name.lower()
    for key, value in headers.items():
        if key.lower() == lowered:
            return value
    return None


def _encode_payload(payload: Any, headers: dict[str, str]) -> bytes | None:
    """Encode a request body, adding a JSON content type for encoded objects.

    Raises:
        orjson.JSONEncodeError: If the payload is not JSON-serializable
    """
    if payload is None:
        return None
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, str):
        return payload.encode("utf-8")
    body = orjson.dumps(payload)
    if _header(headers, "content-type") is None:
        headers["Content-Type"] = "application/json"
    return body


def run_checks(response: TransportResponse, config: CheckConfig) -> tuple[CheckResult, ...]:
    """Apply the success checks in order: status, latency, body, content type."""
    results = [
        CheckResult("status", 200 <= response.status < 300, ErrorKind.STATUS),
        CheckResult("latency", response.latency_ms < config.max_latency_ms, ErrorKind.LATENCY),
    ]
    if config.require_body:
        results.append(CheckResult("body", len(response.body) > 0, ErrorKind.EMPTY_BODY))
    if config.content_type:
        content_type = _header(response.headers, "content-type") or ""
        results.append(
            CheckResult(
                "content_type",
                config.content_type.lower() in content_type.lower(),
                ErrorKind.CONTENT_TYPE,
            )
        )
    return tuple(results)


class RequestExecutor:
    """Issues requests through a transport and records their outcomes."""

    def __init__(
        self,
        transport: Transport,
        collector: MetricsCollector,
        base_url: str = "",
        headers: Mapping[str, str] | None = None,
        auth: AuthConfig | None = None,
        checks: CheckConfig | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        detailed_logs: bool = False,
    ) -> None:
        """Initialize executor.

        Args:
            transport: Transport used to issue requests
            collector: Run-scoped collector every outcome is recorded into
            base_url: Prefix for relative request paths
            headers: Base headers sent with every request
            auth: Static authentication descriptor
            checks: Success predicate configuration
            timeout: Per-request timeout in seconds
            detailed_logs: Log successful requests at INFO instead of DEBUG
        """
        self.transport = transport
        self.collector = collector
        self.base_url = base_url.rstrip("/")
        self.checks = checks or CheckConfig()
        self.timeout = timeout
        self.detailed_logs = detailed_logs
        self._base_headers = {**(headers or {}), **build_auth_headers(auth)}

    @property
    def base_headers(self) -> dict[str, str]:
        return dict(self._base_headers)

    def resolve_url(self, url: str) -> str:
        if url.startswith(("http://", "https://")):
            return url
        if not url.startswith("/"):
            url = f"/{url}"
        return f"{self.base_url}{url}"

    async def execute(
        self,
        method: str,
        url: str,
        payload: Any = None,
        header_overrides: Mapping[str, str] | None = None,
        *,
        name: str | None = None,
        scenario: str | None = None,
        vu_id: int | None = None,
        timeout: float | None = None,
    ) -> RequestOutcome:
        """Issue one request and return its recorded outcome.

        Args:
            method: HTTP method
            url: Absolute URL or path relative to ``base_url``
            payload: JSON-serializable body, raw ``bytes`` or ``str``
            header_overrides: Headers overriding the base headers for this call
            name: Label for logs and metrics (defaults to ``METHOD url``)
            scenario: Scenario tag recorded with the outcome
            vu_id: Virtual user issuing the request
            timeout: Override of the executor timeout
        """
        method = method.upper()
        full_url = self.resolve_url(url)
        label = name or f"{method} {url}"
        timeout = self.timeout if timeout is None else timeout

        headers = dict(self._base_headers)
        start = time.perf_counter()
        try:
            body = _encode_payload(payload, headers)
        except orjson.JSONEncodeError as e:
            outcome = self._failure(method, full_url, label, ErrorKind.PAYLOAD, e, start)
            return self._finish(outcome, scenario, vu_id)
        if header_overrides:
            headers.update(header_overrides)

        logger.debug(f"Making {method} request to: {full_url}")

        start = time.perf_counter()
        try:
            response = await self.transport.issue(method, full_url, headers, body, timeout)
        except TransportTimeout as e:
            outcome = self._failure(method, full_url, label, ErrorKind.TIMEOUT, e, start)
        except TransportError as e:
            outcome = self._failure(method, full_url, label, ErrorKind.TRANSPORT, e, start)
        except Exception as e:
            logger.exception(f"Unexpected transport failure for {method} {full_url}")
            outcome = self._failure(method, full_url, label, ErrorKind.TRANSPORT, e, start)
        else:
            outcome = self._classify(method, full_url, label, response)

        return self._finish(outcome, scenario, vu_id)

    def _finish(
        self, outcome: RequestOutcome, scenario: str | None, vu_id: int | None
    ) -> RequestOutcome:
        if scenario is not None or vu_id is not None:
            outcome = replace(outcome, scenario=scenario, vu_id=vu_id)

        self.collector.record(outcome)
        self._log(outcome)
        return outcome

    def _classify(
        self, method: str, url: str, label: str, response: TransportResponse
    ) -> RequestOutcome:
        checks = run_checks(response, self.checks)
        first_failure = next((check for check in checks if not check.passed), None)
        return RequestOutcome(
            method=method,
            url=url,
            name=label,
            status_code=response.status,
            latency_ms=response.latency_ms,
            body_size=len(response.body),
            succeeded=first_failure is None,
            error_kind=first_failure.error_kind if first_failure else None,
            checks=checks,
            headers=response.headers,
            body=response.body,
        )

    def _failure(
        self,
        method: str,
        url: str,
        label: str,
        kind: ErrorKind,
        error: BaseException,
        start: float,
    ) -> RequestOutcome:
        return RequestOutcome(
            method=method,
            url=url,
            name=label,
            status_code=None,
            latency_ms=(time.perf_counter() - start) * 1000,
            body_size=0,
            succeeded=False,
            error_kind=kind,
            error=str(error),
        )

    def _log(self, outcome: RequestOutcome) -> None:
        duration = f"{outcome.latency_ms:.0f}ms"
        if outcome.succeeded:
            level = logging.INFO if self.detailed_logs else logging.DEBUG
            logger.log(
                level,
                f"{outcome.method} {outcome.url} - Status: {outcome.status_code}, "
                f"Duration: {duration}",
            )
        elif outcome.status_code is None:
            logger.warning(
                f"Request failed: {outcome.method} {outcome.url} - "
                f"{outcome.error_kind.value if outcome.error_kind else 'error'}: {outcome.error}"
            )
        else:
            preview = outcome.text[:BODY_PREVIEW_LENGTH]
            logger.warning(
                f"Request failed: {outcome.method} {outcome.url} - Status: "
                f"{outcome.status_code}, Duration: {duration}, "
                f"Failed checks: {', '.join(outcome.failed_checks)}, Body: {preview}"
            )

