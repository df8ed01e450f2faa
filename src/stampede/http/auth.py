"""Static authentication headers.

Supported descriptor types:
- none: no header
- bearer: ``Authorization: Bearer <token>``
- api-key: ``<header>: <token>`` (``X-API-Key`` by default)
- cookie: ``Cookie: name=value; name=value`` built from ``tokens``
- basic: ``Authorization: Basic base64(<token>)`` where token is ``user:password``

Credentials are fixed for the whole run; there is no refresh or login flow.
"""

from __future__ import annotations

import base64
import logging
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator

from stampede.errors import ConfigurationError

logger = logging.getLogger(__name__)


class AuthType(str, Enum):
    """Authentication descriptor types."""

    NONE = "none"
    BEARER = "bearer"
    API_KEY = "api-key"
    COOKIE = "cookie"
    BASIC = "basic"


class AuthConfig(BaseModel):
    """Authentication descriptor from the test plan."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    enabled: bool = False
    type: AuthType = AuthType.NONE
    token: str | None = None
    tokens: dict[str, str] = Field(default_factory=dict)
    header: str = "X-API-Key"

    @model_validator(mode="after")
    def _check_credentials(self) -> AuthConfig:
        if not self.enabled or self.type is AuthType.NONE:
            return self
        if self.type is AuthType.COOKIE:
            if not self.tokens:
                raise ValueError("cookie authentication requires 'tokens'")
        elif not self.token:
            raise ValueError(f"{self.type.value} authentication requires 'token'")
        return self

    def describe(self) -> str:
        """Short human-readable description for the setup banner."""
        if not self.enabled or self.type is AuthType.NONE:
            return "Disabled"
        if self.type is AuthType.COOKIE:
            return f"Cookie-based ({len(self.tokens)} tokens)"
        return f"Enabled ({self.type.value})"


def build_cookie_header(tokens: dict[str, str]) -> str:
    """Join cookie tokens as ``name=value`` pairs separated by ``"; "``.

    Empty values and unresolved ``${...}`` placeholders are skipped with a
    warning so a missing environment variable never produces a bogus cookie.
    """
    parts: list[str] = []
    for name, value in tokens.items():
        if not value or value.startswith("${"):
            logger.warning(f"Cookie token '{name}' is not set, skipping")
            continue
        parts.append(f"{name}={value}")
    return "; ".join(parts)


def build_auth_headers(auth: AuthConfig | None) -> dict[str, str]:
    """Headers contributed by an authentication descriptor.

    Raises:
        ConfigurationError: If the descriptor cannot produce a header
    """
    if auth is None or not auth.enabled:
        return {}

    if auth.type is AuthType.NONE:
        return {}

    if auth.type is AuthType.BEARER:
        return {"Authorization": f"Bearer {auth.token}"}

    if auth.type is AuthType.API_KEY:
        return {auth.header: auth.token or ""}

    if auth.type is AuthType.BASIC:
        encoded = base64.b64encode((auth.token or "").encode("utf-8")).decode("ascii")
        return {"Authorization": f"Basic {encoded}"}

    if auth.type is AuthType.COOKIE:
        cookie = build_cookie_header(auth.tokens)
        if not cookie:
            raise ConfigurationError("Cookie authentication is enabled but no token is set")
        return {"Cookie": cookie}

    raise ConfigurationError(f"Unsupported authentication type: {auth.type}")
