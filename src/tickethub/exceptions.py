"""Exceptions raised by tickethub.

    TicketHubError
    ├── ConfigError
    ├── ValidationError        malformed ticket id or setting
    ├── CacheError             misuse of TTLCache
    └── ProviderError          anything a provider call can fail with
        ├── NetworkError
        ├── RateLimitError
        ├── ProviderPermissionError
        ├── ParsingError
        └── NotFoundError

`tickethub.messages.describe_exception` turns any of these into the
text shown to users; ``str()`` is for logs.
"""

from typing import Any


class TicketHubError(Exception):
    """Root of the tickethub exception tree.

    ``details`` carries machine-readable context (status codes, the
    rejected field) and is appended to ``str()`` when present.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def _prefix(self) -> str:
        return ""

    def __str__(self) -> str:
        parts = [self._prefix() + self.message]
        if self.details:
            parts.append(f"Details: {self.details}")
        return " | ".join(parts)


class ConfigError(TicketHubError):
    """Bad YAML, an unknown provider, or a provider missing its settings."""


class ValidationError(TicketHubError):
    """An input was rejected before any network call.

    Providers raise this from ``get_ticket`` when the id does not match
    their key format; ``field`` names what was rejected.
    """

    def __init__(self, message: str, field: str, value: Any = None) -> None:
        super().__init__(message, {"field": field, "value": value})
        self.field = field
        self.value = value


class CacheError(TicketHubError):
    """TTLCache built with a non-positive TTL or size."""


class ProviderError(TicketHubError):
    """A provider call failed. ``provider`` is the provider's name."""

    def __init__(
        self,
        message: str,
        provider: str,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details)
        self.provider = provider

    def _prefix(self) -> str:
        return f"[{self.provider}] "


class NetworkError(ProviderError):
    """Connection, DNS or timeout failure; ``timeout`` tells which."""

    def __init__(
        self,
        message: str,
        provider: str,
        *,
        timeout: bool = False,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, provider, details)
        self.timeout = timeout


class RateLimitError(ProviderError):
    """HTTP 429 or Slack ``ratelimited``.

    ``retry_after`` holds the seconds the provider asked for, when it
    sent a Retry-After header.
    """

    def __init__(
        self,
        message: str,
        provider: str,
        *,
        retry_after: int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, provider, details)
        self.retry_after = retry_after


class ProviderPermissionError(ProviderError):
    """Invalid token or missing scopes (HTTP 401/403)."""


class ParsingError(ProviderError):
    """Response payload was not shaped as expected."""


class NotFoundError(ProviderError):
    """The id was well formed but the provider has no such ticket."""
