"""Tests for the provider factory."""

import pytest

from tickethub.config import GitHubConfig, JiraConfig, ProvidersConfig, SlackConfig, TicketHubConfig
from tickethub.exceptions import ConfigError
from tickethub.providers import (
    GitHubProvider,
    JiraProvider,
    SlackProvider,
    TicketProvider,
    create_provider,
    create_providers,
)

SLACK_TOKEN = "xoxb-" + "b" * 50


@pytest.fixture
def full_config() -> TicketHubConfig:
    return TicketHubConfig(
        providers=ProvidersConfig(
            jira=JiraConfig(base_url="https://x.atlassian.net", token="jira-token-1", enabled=True),
            github=GitHubConfig(token="ghp_token_2", enabled=True),
            slack=SlackConfig(token=SLACK_TOKEN, enabled=True),
        )
    )


class TestCreateProvider:
    """Tests for create_provider."""

    @pytest.mark.parametrize(
        ("name", "cls"),
        [("jira", JiraProvider), ("github", GitHubProvider), ("slack", SlackProvider)],
    )
    def test_builds_each(self, full_config: TicketHubConfig, name: str, cls: type) -> None:
        provider = create_provider(name, full_config)

        assert isinstance(provider, cls)
        assert isinstance(provider, TicketProvider)
        assert provider.get_provider_name() == name

    def test_unknown_name(self, full_config: TicketHubConfig) -> None:
        with pytest.raises(ConfigError, match="Unknown provider: linear"):
            create_provider("linear", full_config)

    def test_invalid_config(self) -> None:
        config = TicketHubConfig(providers=ProvidersConfig(slack=SlackConfig(token="xoxp-short", enabled=True)))

        with pytest.raises(ConfigError) as exc_info:
            create_provider("slack", config)
        assert "slack: token must be a bot token starting with 'xoxb-'" in exc_info.value.details["problems"]


class TestCreateProviders:
    """Tests for create_providers."""

    def test_all_enabled(self, full_config: TicketHubConfig) -> None:
        names = [p.get_provider_name() for p in create_providers(full_config)]
        assert names == ["jira", "github", "slack"]

    def test_disabled_and_invalid_skipped(self) -> None:
        config = TicketHubConfig(
            providers=ProvidersConfig(
                jira=JiraConfig(token="jira-token-1", enabled=True),
                github=GitHubConfig(token="ghp_token_2", enabled=True),
                slack=SlackConfig(token=SLACK_TOKEN, enabled=False),
            )
        )

        names = [p.get_provider_name() for p in create_providers(config)]

        assert names == ["github"]

    def test_nothing_enabled(self) -> None:
        assert create_providers(TicketHubConfig()) == []
