"""Configuration loader for tickethub.

Settings come from .tickethub.yaml (nearest one at or above the working
directory, with ${VAR} expansion) or, when there is no such file,
from provider token environment variables alone.

Example .tickethub.yaml:
    providers:
      jira:
        enabled: true
        base_url: https://company.atlassian.net
        email: me@company.com
        token: ${JIRA_TOKEN}
      slack:
        enabled: true
        token: ${SLACK_BOT_TOKEN}
        max_channels: 10

Example:
    config = load_config()
    if config.providers.jira.enabled:
        print(f"Jira URL: {config.providers.jira.base_url}")
"""

from __future__ import annotations

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Any
from urllib.parse import urlparse

import yaml
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from tickethub.constants import (
    CONFIG_FILE_NAME,
    DEFAULT_CACHE_MAX_SIZE,
    GITHUB_API_BASE_URL,
    GITHUB_CACHE_TTL_SECONDS,
    JIRA_CACHE_TTL_SECONDS,
    MIN_TOKEN_LENGTH,
    SLACK_API_BASE_URL,
    SLACK_BATCH_SIZE,
    SLACK_BOT_TOKEN_PREFIX,
    SLACK_CACHE_TTL_SECONDS,
    SLACK_MAX_CHANNELS,
    SLACK_MAX_CONCURRENT_CHANNELS,
    SLACK_MIN_TOKEN_LENGTH,
    SLACK_THREAD_REPLIES_LIMIT,
)
from tickethub.exceptions import ConfigError
from tickethub.patterns import PatternTables

# Matches ${VAR_NAME} or $VAR_NAME
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}|\$([A-Za-z_][A-Za-z0-9_]*)")


# =============================================================================
# PROVIDER CONFIGS
# =============================================================================


class JiraConfig(BaseModel):
    """Jira provider configuration.

    Attributes:
        base_url: Site root such as https://company.atlassian.net.
        email: Account email; when set the token is sent with basic auth.
        token: API token (or personal access token when email is empty).
        enabled: Whether the provider is enabled.
        cache_ttl_seconds: Lifetime of cached tickets.
    """

    base_url: str = Field(default="", description="Jira instance URL")
    email: str = Field(default="", description="Jira authentication email")
    token: str = Field(default="", description="Jira API token")
    enabled: bool = Field(default=False, description="Whether provider is enabled")
    cache_ttl_seconds: int = Field(default=JIRA_CACHE_TTL_SECONDS, gt=0)


class GitHubConfig(BaseModel):
    """GitHub provider configuration."""

    token: str = Field(default="", description="GitHub personal access token")
    base_url: str = Field(default=GITHUB_API_BASE_URL, description="GitHub API URL")
    enabled: bool = Field(default=False, description="Whether provider is enabled")
    cache_ttl_seconds: int = Field(default=GITHUB_CACHE_TTL_SECONDS, gt=0)


class SlackConfig(BaseModel):
    """Slack provider configuration.

    The batch limits bound how much of the workspace one
    `get_recent_tickets` call scans.

    Attributes:
        token: Bot token, starts with "xoxb-".
        base_url: Slack Web API URL.
        enabled: Whether the provider is enabled.
        cache_ttl_seconds: Lifetime of cached tickets.
        max_concurrent_channels: Channels scanned at the same time.
        max_channels: Channels scanned per call.
        batch_size: Messages fetched per channel history page.
        thread_replies_limit: Replies fetched per thread.
    """

    token: str = Field(default="", description="Slack bot token")
    base_url: str = Field(default=SLACK_API_BASE_URL, description="Slack Web API URL")
    enabled: bool = Field(default=False, description="Whether provider is enabled")
    cache_ttl_seconds: int = Field(default=SLACK_CACHE_TTL_SECONDS, gt=0)
    max_concurrent_channels: int = Field(default=SLACK_MAX_CONCURRENT_CHANNELS, gt=0)
    max_channels: int = Field(default=SLACK_MAX_CHANNELS, gt=0)
    batch_size: int = Field(default=SLACK_BATCH_SIZE, gt=0)
    thread_replies_limit: int = Field(default=SLACK_THREAD_REPLIES_LIMIT, ge=0)


class ProvidersConfig(BaseModel):
    """Configuration for all providers."""

    jira: JiraConfig = Field(default_factory=JiraConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    slack: SlackConfig = Field(default_factory=SlackConfig)


class CacheConfig(BaseModel):
    """Settings shared by every provider cache."""

    max_size: int = Field(
        default=DEFAULT_CACHE_MAX_SIZE,
        gt=0,
        description="Maximum entries per provider cache",
    )


class TicketHubConfig(BaseModel):
    """Root configuration model."""

    providers: ProvidersConfig = Field(default_factory=ProvidersConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    patterns: PatternTables = Field(default_factory=PatternTables)


# =============================================================================
# LOADING
# =============================================================================


def _substitute(match: re.Match[str]) -> str:
    name = match.group(1) or match.group(2)
    return os.environ.get(name, match.group(0))


def expand_env_vars(value: Any) -> Any:
    """Substitute ``${NAME}`` / ``$NAME`` in every string inside ``value``.

    Walks dicts and lists. Unset variables stay as written.
    """
    if isinstance(value, str):
        return ENV_VAR_PATTERN.sub(_substitute, value)
    if isinstance(value, dict):
        return {key: expand_env_vars(item) for key, item in value.items()}
    if isinstance(value, list):
        return list(map(expand_env_vars, value))
    return value


def config_from_env(env: Mapping[str, str] | None = None) -> TicketHubConfig:
    """Build a configuration from environment variables alone.

    A provider is enabled when its token variable is set.
    """
    env = os.environ if env is None else env

    jira_token = env.get("JIRA_TOKEN", "")
    github_token = env.get("GITHUB_TOKEN", "")
    slack_token = env.get("SLACK_BOT_TOKEN", "")

    return TicketHubConfig(
        providers=ProvidersConfig(
            jira=JiraConfig(
                base_url=env.get("JIRA_BASE_URL", ""),
                email=env.get("JIRA_EMAIL", ""),
                token=jira_token,
                enabled=bool(jira_token),
            ),
            github=GitHubConfig(token=github_token, enabled=bool(github_token)),
            slack=SlackConfig(token=slack_token, enabled=bool(slack_token)),
        )
    )


def find_config_file(start: Path | None = None) -> Path | None:
    """Return the nearest .tickethub.yaml at or above ``start`` (default: cwd)."""
    here = start or Path.cwd()
    candidates = (folder / CONFIG_FILE_NAME for folder in (here, *here.parents))
    return next((path for path in candidates if path.exists()), None)


def load_config(config_path: Path | None = None) -> TicketHubConfig:
    """Read configuration from YAML, falling back to the environment.

    With no ``config_path`` the nearest .tickethub.yaml is used. When no
    file exists, `config_from_env` decides which providers are enabled.
    String values in the file may reference environment variables.

    Raises:
        ConfigError: Unparseable YAML, a non-mapping root, or values the
            schema rejects.
    """
    path = config_path or find_config_file()
    if path is None or not path.exists():
        return config_from_env()

    try:
        raw = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", {"error": str(e)}) from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Config root must be a mapping: {path}")

    try:
        return TicketHubConfig.model_validate(expand_env_vars(raw))
    except PydanticValidationError as e:
        raise ConfigError(f"Invalid configuration in {path}", {"error": str(e)}) from e


# =============================================================================
# STRUCTURAL VALIDATION
# =============================================================================


def _is_http_url(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def validate_provider_config(name: str, config: BaseModel) -> list[str]:
    """Check a provider config for structural problems without network calls.

    Args:
        name: Provider name ("jira", "github", "slack").
        config: The provider's config model.

    Returns:
        Human-readable problems, empty when the config looks usable.
    """
    problems: list[str] = []
    token: str = getattr(config, "token", "")
    base_url: str = getattr(config, "base_url", "")

    if not token:
        problems.append(f"{name}: token is required")
    elif len(token) < MIN_TOKEN_LENGTH:
        problems.append(f"{name}: token looks too short")

    if not base_url:
        problems.append(f"{name}: base_url is required")
    elif not _is_http_url(base_url):
        problems.append(f"{name}: base_url must be an http(s) URL")

    if isinstance(config, SlackConfig) and token:
        if not token.startswith(SLACK_BOT_TOKEN_PREFIX):
            problems.append(f"{name}: token must be a bot token starting with 'xoxb-'")
        elif len(token) < SLACK_MIN_TOKEN_LENGTH:
            problems.append(f"{name}: bot token is shorter than {SLACK_MIN_TOKEN_LENGTH} chars")

    return problems
