"""Ticket providers and the factory that builds them from configuration.

Example:
    config = load_config()
    providers = create_providers(config)
    for provider in providers:
        print(provider.get_provider_name(), await provider.validate_config())
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from tickethub.config import validate_provider_config
from tickethub.constants import PROVIDER_GITHUB, PROVIDER_JIRA, PROVIDER_SLACK
from tickethub.exceptions import ConfigError
from tickethub.logging import get_logger
from tickethub.providers.base import TicketProvider
from tickethub.providers.github import GitHubProvider
from tickethub.providers.jira import JiraProvider
from tickethub.providers.slack import SlackProvider

if TYPE_CHECKING:
    import httpx

    from tickethub.config import TicketHubConfig

__all__ = [
    "PROVIDER_NAMES",
    "GitHubProvider",
    "JiraProvider",
    "SlackProvider",
    "TicketProvider",
    "create_provider",
    "create_providers",
]

logger = get_logger(__name__)

PROVIDER_NAMES = (PROVIDER_JIRA, PROVIDER_GITHUB, PROVIDER_SLACK)


def create_provider(
    name: str,
    config: TicketHubConfig,
    client: httpx.AsyncClient | None = None,
) -> TicketProvider:
    """Build one provider from the root configuration.

    Args:
        name: Provider name ("jira", "github", "slack").
        config: Root configuration.
        client: Optional HTTP client shared with the provider.

    Returns:
        The provider instance.

    Raises:
        ConfigError: If the name is unknown or the provider config is unusable.
    """
    if name not in PROVIDER_NAMES:
        raise ConfigError(f"Unknown provider: {name}", {"available": list(PROVIDER_NAMES)})

    provider_config = getattr(config.providers, name)
    problems = validate_provider_config(name, provider_config)
    if problems:
        raise ConfigError(f"{name} configuration is invalid", {"problems": problems})

    cache_size = config.cache.max_size
    patterns = config.patterns

    if name == PROVIDER_JIRA:
        return JiraProvider(provider_config, patterns, cache_size, client)
    if name == PROVIDER_GITHUB:
        return GitHubProvider(provider_config, patterns, cache_size, client)
    return SlackProvider(provider_config, patterns, cache_size, client)


def create_providers(config: TicketHubConfig) -> list[TicketProvider]:
    """Build every enabled provider, skipping (and logging) unusable ones."""
    providers: list[TicketProvider] = []

    for name in PROVIDER_NAMES:
        if not getattr(config.providers, name).enabled:
            logger.debug("Provider disabled", extra={"provider": name})
            continue
        try:
            providers.append(create_provider(name, config))
        except ConfigError as e:
            logger.warning("Skipping provider", extra={"provider": name, "error": str(e)})

    return providers
