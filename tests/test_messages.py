"""Tests for user-facing error messages."""

import pytest

from tickethub.exceptions import (
    ConfigError,
    NetworkError,
    NotFoundError,
    ProviderError,
    ProviderPermissionError,
    RateLimitError,
    ValidationError,
)
from tickethub.messages import (
    CONTEXT_LABELS,
    ERROR_MESSAGES,
    describe_error,
    describe_exception,
    error_kind_for,
)


class TestDescribeError:
    """Tests for describe_error."""

    @pytest.mark.parametrize("context", list(CONTEXT_LABELS))
    def test_unknown_kind_passes_through(self, context: str) -> None:
        message = describe_error("test error", context)

        assert "test error" in message
        assert message.startswith(CONTEXT_LABELS[context])

    @pytest.mark.parametrize("kind", list(ERROR_MESSAGES))
    def test_known_kinds_are_transformed(self, kind: str) -> None:
        message = describe_error(kind, "ticket_fetch")

        assert message == f"🎫 Ticket Loading: {ERROR_MESSAGES[kind]}"
        assert kind not in message

    def test_timeout_text(self) -> None:
        assert describe_error("timeout", "provider_connection") == (
            "🔗 Service Connection: The request timed out. Please try again or check your connection."
        )

    def test_unknown_context_passes_through(self) -> None:
        assert describe_error("rate_limit", "bulk_import").startswith("bulk_import: Too many requests")


class TestErrorKind:
    """Tests for error_kind_for."""

    @pytest.mark.parametrize(
        ("exc", "kind"),
        [
            (NetworkError("slow", "jira", timeout=True), "timeout"),
            (NetworkError("refused", "jira"), "connection_failed"),
            (RateLimitError("slow down", "github", retry_after=5), "rate_limit"),
            (ProviderPermissionError("bad token", "slack"), "invalid_credentials"),
            (ConfigError("broken yaml"), "invalid_config"),
            (ProviderError("HTTP 503", "jira", {"status_code": 503}), "service_unavailable"),
        ],
    )
    def test_mapped_kinds(self, exc: Exception, kind: str) -> None:
        assert error_kind_for(exc) == kind

    def test_client_error_uses_message(self) -> None:
        exc = ProviderError("HTTP 400 from /search", "jira", {"status_code": 400})
        assert error_kind_for(exc) == "HTTP 400 from /search"

    def test_not_found_uses_message(self) -> None:
        assert error_kind_for(NotFoundError("Resource not found: /x", "github")) == "Resource not found: /x"

    def test_validation_error_uses_message(self) -> None:
        exc = ValidationError("Bad id", field="id", value="x")
        assert error_kind_for(exc) == "Bad id"

    def test_plain_exception(self) -> None:
        assert error_kind_for(RuntimeError("kaput")) == "kaput"
        assert error_kind_for(RuntimeError()) == "RuntimeError"

    def test_describe_exception(self) -> None:
        exc = RateLimitError("slow down", "github")
        assert describe_exception(exc, "ticket_fetch") == (
            "🎫 Ticket Loading: Too many requests. Please wait a moment and try again."
        )
