"""Tests for cross-provider aggregation."""

from __future__ import annotations

import re
from datetime import UTC, datetime

import pytest

from tickethub.aggregator import AggregateResult, TicketAggregator
from tickethub.cache import CacheStats
from tickethub.exceptions import ConfigError, NetworkError, ProviderPermissionError
from tickethub.models import RecentTicket
from tickethub.providers.base import TicketProvider


def make_ticket(provider: str, ticket_id: str, day: int) -> RecentTicket:
    return RecentTicket(
        id=ticket_id,
        key=ticket_id,
        summary=f"Ticket {ticket_id}",
        status="Open",
        created=datetime(2024, 1, 1, tzinfo=UTC),
        updated=datetime(2024, 1, day, tzinfo=UTC),
        provider=provider,  # type: ignore[arg-type]
    )


class FakeProvider:
    """In-memory provider returning canned tickets or raising."""

    def __init__(
        self,
        name: str,
        tickets: list[RecentTicket] | None = None,
        error: Exception | None = None,
        valid: bool | Exception = True,
    ) -> None:
        self.name = name
        self.tickets = tickets or []
        self.error = error
        self.valid = valid
        self.limits: list[int] = []
        self.cleared = False
        self.closed = False

    def get_provider_name(self) -> str:
        return self.name

    async def validate_config(self) -> bool:
        if isinstance(self.valid, Exception):
            raise self.valid
        return self.valid

    async def get_ticket(self, ticket_id: str) -> RecentTicket:
        for ticket in self.tickets:
            if ticket.id == ticket_id:
                return ticket
        raise NetworkError("gone", self.name)

    def map_to_recent_ticket(self, raw: dict) -> RecentTicket:
        return make_ticket(self.name, raw["id"], 1)

    async def get_recent_tickets(self, limit: int = 20) -> list[RecentTicket]:
        self.limits.append(limit)
        if self.error is not None:
            raise self.error
        return list(self.tickets)

    def clear_cache(self) -> None:
        self.cleared = True

    def get_cache_stats(self) -> CacheStats:
        return CacheStats(size=0, keys=[], hits=0, misses=0)

    def invalidate_cache(self, pattern: str | re.Pattern[str]) -> int:
        return 0

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def jira() -> FakeProvider:
    return FakeProvider(
        "jira",
        [make_ticket("jira", "PROJ-1", 3), make_ticket("jira", "PROJ-2", 1), make_ticket("jira", "PROJ-1", 3)],
    )


@pytest.fixture
def github() -> FakeProvider:
    return FakeProvider("github", [make_ticket("github", "o/r#7", 2), make_ticket("github", "o/r#8", 5)])


class TestRecentTickets:
    """Tests for TicketAggregator.get_recent_tickets."""

    def test_fake_satisfies_protocol(self, jira: FakeProvider) -> None:
        assert isinstance(jira, TicketProvider)

    async def test_merges_sorted_and_deduplicated(self, jira: FakeProvider, github: FakeProvider) -> None:
        aggregator = TicketAggregator([jira, github])

        result = await aggregator.get_recent_tickets()

        assert [t.id for t in result.tickets] == ["o/r#8", "PROJ-1", "o/r#7", "PROJ-2"]
        assert result.ok
        assert jira.limits == [20]

    async def test_same_id_different_provider_kept(self) -> None:
        first = FakeProvider("jira", [make_ticket("jira", "1", 1)])
        second = FakeProvider("github", [make_ticket("github", "1", 2)])

        result = await TicketAggregator([first, second]).get_recent_tickets()

        assert [(t.provider, t.id) for t in result.tickets] == [("github", "1"), ("jira", "1")]

    async def test_truncates_to_limit(self, jira: FakeProvider, github: FakeProvider) -> None:
        result = await TicketAggregator([jira, github]).get_recent_tickets(limit=2)

        assert [t.id for t in result.tickets] == ["o/r#8", "PROJ-1"]

    async def test_failed_provider_reported(self, jira: FakeProvider) -> None:
        broken = FakeProvider("slack", error=ProviderPermissionError("bad token", "slack"))

        result = await TicketAggregator([jira, broken]).get_recent_tickets()

        assert [t.id for t in result.tickets] == ["PROJ-1", "PROJ-2"]
        assert not result.ok
        assert result.errors == {
            "slack": "🎫 Ticket Loading: Your credentials appear to be invalid. Please check your settings."
        }

    async def test_all_providers_failed(self) -> None:
        broken = FakeProvider("github", error=NetworkError("slow", "github", timeout=True))

        result = await TicketAggregator([broken]).get_recent_tickets()

        assert result == AggregateResult(
            tickets=[],
            errors={
                "github": "🎫 Ticket Loading: The request timed out. Please try again or check your connection."
            },
        )

    async def test_restrict_providers(self, jira: FakeProvider, github: FakeProvider) -> None:
        result = await TicketAggregator([jira, github]).get_recent_tickets(providers=["github"])

        assert {t.provider for t in result.tickets} == {"github"}
        assert jira.limits == []

    async def test_unknown_provider(self, jira: FakeProvider) -> None:
        with pytest.raises(ConfigError, match="Provider not configured: slack"):
            await TicketAggregator([jira]).get_recent_tickets(providers=["slack"])


class TestAggregatorOperations:
    """Tests for get_ticket, validate_all, clear_caches and close."""

    async def test_get_ticket(self, jira: FakeProvider, github: FakeProvider) -> None:
        ticket = await TicketAggregator([jira, github]).get_ticket("github", "o/r#7")
        assert ticket.provider == "github"

    async def test_get_ticket_unknown_provider(self, jira: FakeProvider) -> None:
        with pytest.raises(ConfigError):
            await TicketAggregator([jira]).get_ticket("slack", "C1:1.2")

    async def test_validate_all(self) -> None:
        providers = [
            FakeProvider("jira", valid=True),
            FakeProvider("github", valid=False),
            FakeProvider("slack", valid=NetworkError("down", "slack")),
        ]

        status = await TicketAggregator(providers).validate_all()

        assert status == {"jira": True, "github": False, "slack": False}

    async def test_validate_all_propagates_bugs(self) -> None:
        aggregator = TicketAggregator([FakeProvider("jira", valid=RuntimeError("bug"))])

        with pytest.raises(RuntimeError):
            await aggregator.validate_all()

    async def test_clear_and_close(self, jira: FakeProvider, github: FakeProvider) -> None:
        aggregator = TicketAggregator([jira, github])

        aggregator.clear_caches()
        await aggregator.close()

        assert jira.cleared and github.cleared
        assert jira.closed and github.closed
        assert aggregator.provider_names == ["jira", "github"]
