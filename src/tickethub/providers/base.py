"""Provider capability set and shared mapping helpers.

Every provider (Jira, GitHub, Slack) satisfies the `TicketProvider`
protocol structurally; there is no base class to inherit from. Each
provider composes its own `HttpTransport` and its own `TTLCache`.

Example:
    class MyProvider:
        def get_provider_name(self) -> str:
            return "my_provider"

        async def get_ticket(self, ticket_id: str) -> RecentTicket:
            ...

    provider: TicketProvider = MyProvider()
"""

from __future__ import annotations

import re
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from tickethub.cache import CacheStats
    from tickethub.models import RecentTicket

__all__ = ["TicketProvider", "parse_datetime", "parse_slack_ts", "ticket_cache_key"]

# "+0000" style offsets (Jira) need a colon before fromisoformat on older runtimes
_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


@runtime_checkable
class TicketProvider(Protocol):
    """Operations every ticket source offers.

    Providers should:
        - Validate ticket ids before any network call
        - Raise ProviderError subclasses from fetch operations
        - Convert failures to False only in validate_config
        - Keep map_to_recent_ticket pure and total
    """

    def get_provider_name(self) -> str:
        """Return the short provider name ('jira', 'github', 'slack')."""
        ...

    async def validate_config(self) -> bool:
        """Check credentials against the live service; never raises."""
        ...

    async def get_ticket(self, ticket_id: str) -> RecentTicket:
        """Fetch one ticket by provider-specific id."""
        ...

    def map_to_recent_ticket(self, raw: dict[str, Any]) -> RecentTicket:
        """Normalize a raw provider record."""
        ...

    async def get_recent_tickets(self, limit: int = 20) -> list[RecentTicket]:
        """Fetch the current user's recently updated tickets."""
        ...

    def clear_cache(self) -> None:
        """Drop every cached entry."""
        ...

    def get_cache_stats(self) -> CacheStats:
        """Return size, keys and hit counters of the provider cache."""
        ...

    def invalidate_cache(self, pattern: str | re.Pattern[str]) -> int:
        """Drop cached entries whose key contains or matches ``pattern``."""
        ...

    async def close(self) -> None:
        """Release network resources."""
        ...


def ticket_cache_key(ticket_id: str) -> str:
    """Return the cache key a single ticket is stored under."""
    return f"ticket:{ticket_id}"


def parse_datetime(value: str | None) -> datetime:
    """Parse an ISO-8601 timestamp into an aware UTC datetime.

    Accepts ``Z`` suffixes and compact ``+0000`` offsets. Missing or
    unparseable values fall back to the current time.
    """
    if not value:
        return datetime.now(UTC)

    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    text = _COMPACT_OFFSET.sub(r"\1:\2", text)

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return datetime.now(UTC)

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def parse_slack_ts(ts: str | None) -> datetime:
    """Convert a Slack ``"seconds.micros"`` timestamp to a UTC datetime."""
    try:
        return datetime.fromtimestamp(float(ts), tz=UTC)  # type: ignore[arg-type]
    except (ValueError, TypeError):
        return datetime.now(UTC)
