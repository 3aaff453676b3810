"""Aggregation of tickets across providers.

`TicketAggregator` fans out to every configured provider concurrently,
merges the results into one recency-ordered list, and reports per
provider failures as user-facing messages instead of failing the whole
call.

Example:
    aggregator = TicketAggregator(create_providers(load_config()))
    result = await aggregator.get_recent_tickets(limit=20)
    for ticket in result.tickets:
        print(ticket.key, ticket.summary)
    for provider, message in result.errors.items():
        print(provider, message)
    await aggregator.close()
"""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from tickethub.exceptions import ConfigError, ProviderError
from tickethub.logging import get_logger
from tickethub.messages import describe_exception
from tickethub.models import RecentTicket

if TYPE_CHECKING:
    from collections.abc import Sequence

    from tickethub.providers.base import TicketProvider

logger = get_logger(__name__)


class AggregateResult(BaseModel):
    """Merged tickets plus the providers that failed to contribute."""

    tickets: list[RecentTicket] = Field(default_factory=list, description="Newest first")
    errors: dict[str, str] = Field(
        default_factory=dict,
        description="Provider name -> user-facing error message",
    )

    @property
    def ok(self) -> bool:
        """Return True when every provider answered."""
        return not self.errors


class TicketAggregator:
    """Fan-out facade over a set of providers."""

    def __init__(self, providers: Sequence[TicketProvider]) -> None:
        self._providers: dict[str, TicketProvider] = {
            provider.get_provider_name(): provider for provider in providers
        }

    @property
    def provider_names(self) -> list[str]:
        """Return the names of the configured providers."""
        return list(self._providers)

    def get_provider(self, name: str) -> TicketProvider:
        """Return a provider by name.

        Raises:
            ConfigError: If no provider with that name is configured.
        """
        try:
            return self._providers[name]
        except KeyError:
            raise ConfigError(
                f"Provider not configured: {name}",
                {"available": self.provider_names},
            ) from None

    async def get_recent_tickets(
        self,
        limit: int = 20,
        providers: Sequence[str] | None = None,
    ) -> AggregateResult:
        """Fetch recent tickets from every provider concurrently.

        Args:
            limit: Maximum tickets asked from each provider and returned overall.
            providers: Restrict to these provider names.

        Returns:
            Tickets de-duplicated by (provider, id) and sorted by ``updated``
            descending, plus an error message for each failed provider.
        """
        start_time = time.monotonic()
        names = list(providers) if providers is not None else self.provider_names
        selected = [self.get_provider(name) for name in names]

        results = await asyncio.gather(
            *(provider.get_recent_tickets(limit) for provider in selected),
            return_exceptions=True,
        )

        seen: set[tuple[str, str]] = set()
        tickets: list[RecentTicket] = []
        errors: dict[str, str] = {}

        for name, result in zip(names, results, strict=True):
            if isinstance(result, BaseException):
                if not isinstance(result, Exception):
                    raise result
                logger.warning(
                    f"Provider {name} fetch failed",
                    extra={"provider": name, "error": str(result)},
                )
                errors[name] = describe_exception(result, "ticket_fetch")
                continue

            for ticket in result:
                identity = (ticket.provider, ticket.id)
                if identity not in seen:
                    seen.add(identity)
                    tickets.append(ticket)

        tickets.sort(key=lambda t: t.updated, reverse=True)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Aggregated recent tickets",
            extra={
                "providers": names,
                "tickets": len(tickets),
                "failed": list(errors),
                "duration_ms": duration_ms,
            },
        )

        return AggregateResult(tickets=tickets[:limit], errors=errors)

    async def get_ticket(self, provider: str, ticket_id: str) -> RecentTicket:
        """Fetch one ticket from the named provider.

        Raises:
            ConfigError: If the provider is not configured.
            ValidationError: If the id has the wrong format for the provider.
            ProviderError: If the fetch fails.
        """
        return await self.get_provider(provider).get_ticket(ticket_id)

    async def validate_all(self) -> dict[str, bool]:
        """Validate every provider's configuration concurrently."""
        results = await asyncio.gather(
            *(provider.validate_config() for provider in self._providers.values()),
            return_exceptions=True,
        )

        status: dict[str, bool] = {}
        for name, result in zip(self._providers, results, strict=True):
            if isinstance(result, ProviderError):
                logger.warning("Validation raised", extra={"provider": name, "error": str(result)})
                status[name] = False
            elif isinstance(result, BaseException):
                raise result
            else:
                status[name] = result

        logger.info("Validation completed", extra={"providers": status})
        return status

    def clear_caches(self) -> None:
        """Clear every provider cache."""
        for provider in self._providers.values():
            provider.clear_cache()
        logger.debug("Provider caches cleared")

    async def close(self) -> None:
        """Close every provider's network resources."""
        await asyncio.gather(*(provider.close() for provider in self._providers.values()))
