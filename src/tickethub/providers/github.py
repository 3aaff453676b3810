"""GitHub provider for issues and pull requests.

Uses the GitHub REST API to fetch issues assigned to the authenticated
user, search issues, and group them by repository or by label class.

Example:
    config = GitHubConfig(token="ghp_xxx", enabled=True)
    provider = GitHubProvider(config)
    ticket = await provider.get_ticket("octocat/hello-world#42")
"""

from __future__ import annotations

import re
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from tickethub.cache import CacheStats, TTLCache
from tickethub.classifiers import classify_label_priority
from tickethub.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    GITHUB_API_VERSION,
    GITHUB_UNKNOWN_REPO,
    PROVIDER_GITHUB,
)
from tickethub.exceptions import ParsingError, ProviderError, ValidationError
from tickethub.logging import get_logger
from tickethub.models import ProjectGroup, RecentTicket, TaskGroup, priority_rank
from tickethub.patterns import DEFAULT_PATTERNS, PatternTables
from tickethub.providers.base import parse_datetime, ticket_cache_key
from tickethub.providers.transport import HttpTransport

if TYPE_CHECKING:
    import httpx

    from tickethub.config import GitHubConfig

logger = get_logger(__name__)

TICKET_ID_PATTERN = re.compile(r"^([^/]+)/([^#]+)#(\d+)$")
_API_REPO_URL = re.compile(r"api\.github\.com/repos/([^/]+/[^/]+)")
_WEB_REPO_URL = re.compile(r"github\.com/([^/]+/[^/]+)")


def extract_repo_from_url(url: str | None) -> str:
    """Return ``owner/repo`` from a GitHub web or API URL.

    >>> extract_repo_from_url("https://github.com/octocat/hello/issues/1")
    'octocat/hello'
    >>> extract_repo_from_url("https://api.github.com/repos/octocat/hello/issues/1")
    'octocat/hello'
    >>> extract_repo_from_url("https://example.com/x")
    'unknown/unknown'
    """
    if not url:
        return GITHUB_UNKNOWN_REPO
    for pattern in (_API_REPO_URL, _WEB_REPO_URL):
        match = pattern.search(url)
        if match:
            return match.group(1)
    return GITHUB_UNKNOWN_REPO


class GitHubProvider:
    """Ticket provider backed by GitHub issues and pull requests."""

    def __init__(
        self,
        config: GitHubConfig,
        patterns: PatternTables = DEFAULT_PATTERNS,
        cache_max_size: int = DEFAULT_CACHE_MAX_SIZE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the GitHub provider.

        Args:
            config: GitHub configuration with token and API base URL.
            patterns: Classifier tables.
            cache_max_size: Maximum entries kept in the cache.
            client: Optional pre-built HTTP client.
        """
        self._config = config
        self._patterns = patterns
        self._transport = HttpTransport(
            PROVIDER_GITHUB,
            config.base_url,
            headers={
                "Authorization": f"Bearer {config.token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": GITHUB_API_VERSION,
            },
            client=client,
        )
        self._cache: TTLCache[Any] = TTLCache(config.cache_ttl_seconds, cache_max_size)

    def get_provider_name(self) -> str:
        """Return the provider name."""
        return PROVIDER_GITHUB

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._transport.close()

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def invalidate_cache(self, pattern: str | re.Pattern[str]) -> int:
        return self._cache.invalidate_matching(pattern)

    async def _cached(
        self,
        cache_key: str,
        compute: Callable[[], Awaitable[list[RecentTicket]]],
    ) -> list[RecentTicket]:
        if cache_key in self._cache:
            logger.debug("GitHub cache hit", extra={"cache_key": cache_key})
        return list(await self._cache.get_or_compute(cache_key, compute))

    def _map_issue_list(self, data: Any, *, items_key: str | None = None) -> list[RecentTicket]:
        if items_key is not None:
            data = data.get(items_key, []) if isinstance(data, dict) else None
        if not isinstance(data, list):
            raise ParsingError("GitHub response is not an issue list", PROVIDER_GITHUB)
        return [self.map_to_recent_ticket(issue) for issue in data]

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def validate_config(self) -> bool:
        """Check the token by fetching the authenticated user."""
        if not self._config.token:
            logger.warning("GitHub provider missing token")
            return False

        try:
            await self._transport.get("/user")
        except ProviderError as e:
            logger.warning("GitHub config validation failed", extra={"error": str(e)})
            return False

        logger.info("GitHub config validation passed")
        return True

    async def get_ticket(self, ticket_id: str) -> RecentTicket:
        """Fetch an issue or pull request by ``owner/repo#number``.

        Raises:
            ValidationError: If the id is not ``owner/repo#number``.
            NotFoundError: If the issue does not exist.
        """
        match = TICKET_ID_PATTERN.match(ticket_id.strip())
        if not match:
            raise ValidationError(
                f'Invalid GitHub ticket id "{ticket_id}". Format should be "owner/repo#number"',
                field="id",
                value=ticket_id,
            )

        owner, repo, number = match.groups()
        cache_key = ticket_cache_key(f"{owner}/{repo}#{number}")
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("GitHub cache hit", extra={"ticket_id": ticket_id})
            return cached

        start_time = time.monotonic()
        data = await self._transport.get(f"/repos/{owner}/{repo}/issues/{number}")
        if not isinstance(data, dict):
            raise ParsingError("GitHub issue response is not an object", PROVIDER_GITHUB)
        ticket = self.map_to_recent_ticket(data)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Fetched GitHub issue",
            extra={"ticket_id": ticket_id, "duration_ms": duration_ms},
        )

        self._cache.set(cache_key, ticket)
        return ticket

    async def _assigned_issues(self, limit: int) -> list[RecentTicket]:
        data = await self._transport.get(
            "/issues",
            params={
                "filter": "assigned",
                "state": "open",
                "sort": "updated",
                "direction": "desc",
                "per_page": limit,
            },
        )
        return self._map_issue_list(data)

    async def _search_issues(self, query: str, limit: int) -> list[RecentTicket]:
        data = await self._transport.get(
            "/search/issues",
            params={"q": query, "sort": "updated", "order": "desc", "per_page": limit},
        )
        return self._map_issue_list(data, items_key="items")

    async def get_recent_tickets(self, limit: int = 20) -> list[RecentTicket]:
        """Fetch open issues assigned to the user, most recently updated first."""
        return await self._cached(f"recent:{limit}", lambda: self._assigned_issues(limit))

    async def search_by_text(self, query: str, limit: int = 20) -> list[RecentTicket]:
        """Search the user's assigned issues by text."""
        return await self._cached(
            f"search:{query}:{limit}",
            lambda: self._search_issues(f"{query} assignee:@me is:issue", limit),
        )

    async def get_my_pull_requests(self, limit: int = 20) -> list[RecentTicket]:
        """Fetch open pull requests assigned to the user."""
        return await self._cached(
            f"pull_requests:{limit}",
            lambda: self._search_issues("is:pr assignee:@me is:open", limit),
        )

    async def get_repository_issues(
        self,
        owner: str,
        repo: str,
        limit: int = 50,
    ) -> list[RecentTicket]:
        """Fetch open issues in one repository assigned to the user."""

        async def fetch() -> list[RecentTicket]:
            data = await self._transport.get(
                f"/repos/{owner}/{repo}/issues",
                params={
                    "assignee": "@me",
                    "state": "open",
                    "sort": "updated",
                    "direction": "desc",
                    "per_page": limit,
                },
            )
            return self._map_issue_list(data)

        return await self._cached(f"repo_issues:{owner}/{repo}:{limit}", fetch)

    async def get_tasks_by_project(self, limit: int = 100) -> list[ProjectGroup]:
        """Group the user's assigned issues by repository, largest group first."""
        issues = await self.get_recent_tickets(limit)

        by_repo: dict[str, list[RecentTicket]] = {}
        for issue in issues:
            by_repo.setdefault(extract_repo_from_url(issue.url), []).append(issue)

        projects = []
        for repo_key, tasks in by_repo.items():
            name = repo_key.split("/", 1)[-1]
            projects.append(
                ProjectGroup(
                    id=repo_key,
                    name=name,
                    key=repo_key,
                    description=f"{repo_key} - {len(tasks)} issues assigned",
                    tasks=tasks,
                )
            )

        return sorted(projects, key=lambda p: p.count, reverse=True)

    async def get_my_active_work_items(self, limit: int = 50) -> list[TaskGroup]:
        """Bucket the user's assigned issues by label class.

        Buckets: High Priority Issues, Pull Requests, Bugs, Features and
        Other Issues. An issue can land in more than one of the first
        four; Other Issues holds the rest. Empty buckets are dropped and
        the remainder ordered high, medium, low.
        """
        issues = await self.get_recent_tickets(limit)

        def labelled(ticket: RecentTicket, *names: str) -> bool:
            lowered = {label.lower() for label in ticket.labels}
            return any(name in lowered for name in names)

        def is_urgent(ticket: RecentTicket) -> bool:
            return priority_rank(ticket.priority) >= priority_rank("high")

        def is_pull_request(ticket: RecentTicket) -> bool:
            return "/pull/" in (ticket.url or "")

        def is_other(ticket: RecentTicket) -> bool:
            return not (
                is_urgent(ticket)
                or is_pull_request(ticket)
                or labelled(ticket, "bug", "enhancement", "feature")
            )

        groups = [
            TaskGroup(
                title="High Priority Issues",
                icon="🔥",
                priority="high",
                tasks=[t for t in issues if is_urgent(t)],
            ),
            TaskGroup(
                title="Pull Requests",
                icon="🔀",
                priority="medium",
                tasks=[t for t in issues if is_pull_request(t)],
            ),
            TaskGroup(
                title="Bugs",
                icon="🐛",
                priority="high",
                tasks=[t for t in issues if labelled(t, "bug")],
            ),
            TaskGroup(
                title="Features",
                icon="✨",
                priority="medium",
                tasks=[t for t in issues if labelled(t, "enhancement", "feature")],
            ),
            TaskGroup(
                title="Other Issues",
                icon="📋",
                priority="low",
                tasks=[t for t in issues if is_other(t)],
            ),
        ]

        non_empty = [group for group in groups if group.count > 0]
        return sorted(non_empty, key=lambda g: priority_rank(g.priority), reverse=True)

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def map_to_recent_ticket(self, raw: dict[str, Any]) -> RecentTicket:
        """Normalize a GitHub issue or pull request payload.

        The id is ``full_name#number``. When the payload has no
        ``repository`` object the repo is parsed from ``repository_url``
        or ``html_url``.
        """
        number = raw.get("number", 0)
        repository = raw.get("repository") or {}
        full_name = repository.get("full_name") or extract_repo_from_url(
            raw.get("repository_url") or raw.get("html_url")
        )
        labels = [
            label["name"] if isinstance(label, dict) else str(label)
            for label in raw.get("labels") or []
            if not isinstance(label, dict) or label.get("name")
        ]
        assignee = raw.get("assignee") or {}

        return RecentTicket(
            id=f"{full_name}#{number}",
            key=f"#{number}",
            summary=raw.get("title") or "",
            description=raw.get("body") or "",
            priority=classify_label_priority(labels, self._patterns),
            status="Open" if raw.get("state") == "open" else "Closed",
            assignee=assignee.get("login"),
            labels=labels,
            created=parse_datetime(raw.get("created_at")),
            updated=parse_datetime(raw.get("updated_at")),
            provider="github",
            url=raw.get("html_url"),
        )
