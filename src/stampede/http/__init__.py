"""HTTP request execution.

Provides:
- Transport protocol and the httpx-backed transport
- Static authentication headers (bearer, API key, cookie, basic)
- RequestExecutor with success checks and outcome recording
"""

from stampede.http.auth import AuthConfig, AuthType, build_auth_headers, build_cookie_header
from stampede.http.executor import CheckConfig, RequestExecutor, run_checks
from stampede.http.outcome import CheckResult, ErrorKind, RequestOutcome
from stampede.http.transport import HttpxTransport, Transport, TransportResponse

__all__ = [
    # Auth
    "AuthConfig",
    "AuthType",
    "build_auth_headers",
    "build_cookie_header",
    # Execution
    "CheckConfig",
    "CheckResult",
    "ErrorKind",
    "RequestExecutor",
    "RequestOutcome",
    "run_checks",
    # Transport
    "HttpxTransport",
    "Transport",
    "TransportResponse",
]
