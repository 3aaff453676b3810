"""User-facing error messages.

`describe_error` turns an error kind and the operation it happened in
into one line for humans, e.g.::

    >>> describe_error("timeout", "ticket_fetch")
    '🎫 Ticket Loading: The request timed out. Please try again or check your connection.'

Unknown kinds and contexts pass through verbatim, so a raw message
such as ``"test error"`` still reaches the user.
"""

from __future__ import annotations

from typing import Final

from tickethub.exceptions import (
    ConfigError,
    NetworkError,
    ProviderError,
    ProviderPermissionError,
    RateLimitError,
)

CONTEXT_LABELS: Final[dict[str, str]] = {
    "ticket_fetch": "🎫 Ticket Loading",
    "context_build": "📁 Workspace Analysis",
    "ai_generation": "🤖 AI Plan Generation",
    "provider_connection": "🔗 Service Connection",
    "settings_save": "⚙️ Settings Configuration",
}

ERROR_MESSAGES: Final[dict[str, str]] = {
    "connection_failed": "Unable to connect to the service. Please check your network and credentials.",
    "invalid_credentials": "Your credentials appear to be invalid. Please check your settings.",
    "service_unavailable": "The service is currently unavailable. Please try again later.",
    "timeout": "The request timed out. Please try again or check your connection.",
    "rate_limit": "Too many requests. Please wait a moment and try again.",
    "invalid_config": "Configuration is invalid. Please check your settings.",
}


def describe_error(error_kind: str, context: str) -> str:
    """Return ``"<context label>: <friendly message>"``."""
    label = CONTEXT_LABELS.get(context, context)
    message = ERROR_MESSAGES.get(error_kind, error_kind)
    return f"{label}: {message}"


def error_kind_for(exc: BaseException) -> str:
    """Map an exception to an error kind understood by `describe_error`.

    Exceptions without a matching kind map to their own message, which
    `describe_error` then shows as is.
    """
    if isinstance(exc, NetworkError):
        return "timeout" if exc.timeout else "connection_failed"
    if isinstance(exc, RateLimitError):
        return "rate_limit"
    if isinstance(exc, ProviderPermissionError):
        return "invalid_credentials"
    if isinstance(exc, ConfigError):
        return "invalid_config"
    if isinstance(exc, ProviderError):
        status = exc.details.get("status_code")
        if isinstance(status, int) and status >= 500:
            return "service_unavailable"
        return exc.message
    return getattr(exc, "message", None) or str(exc) or type(exc).__name__


def describe_exception(exc: BaseException, context: str) -> str:
    """Shorthand for ``describe_error(error_kind_for(exc), context)``."""
    return describe_error(error_kind_for(exc), context)
