"""Jira provider for recent and individual tickets.

This provider talks to the Jira REST API (v3) and the Jira Software
agile API. Issue descriptions arrive as Atlassian Document Format (ADF)
and are flattened to plain text.

The provider requires configuration with:
    - base_url: Your Jira instance URL (e.g., https://company.atlassian.net)
    - email: Your Atlassian account email (basic auth), optional
    - token: An API token from https://id.atlassian.com/manage-profile/security/api-tokens

Example:
    config = JiraConfig(
        base_url="https://company.atlassian.net",
        email="user@company.com",
        token="your-api-token",
        enabled=True,
    )
    provider = JiraProvider(config)
    ticket = await provider.get_ticket("PROJ-123")
"""

from __future__ import annotations

import re
import time
from typing import TYPE_CHECKING, Any

from tickethub.cache import CacheStats, TTLCache
from tickethub.classifiers import (
    classify_jira_priority,
    is_blocked,
    is_in_progress,
    is_ready_to_start,
)
from tickethub.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    JIRA_API_BASE_PATH,
    JIRA_DEFAULT_STATUS,
    JIRA_TICKET_FIELDS,
    PROVIDER_JIRA,
)
from tickethub.exceptions import ParsingError, ProviderError, ValidationError
from tickethub.logging import get_logger
from tickethub.models import RecentTicket
from tickethub.patterns import DEFAULT_PATTERNS, PatternTables
from tickethub.providers.base import parse_datetime, ticket_cache_key
from tickethub.providers.transport import HttpTransport

if TYPE_CHECKING:
    import httpx

    from tickethub.config import JiraConfig

logger = get_logger(__name__)

JIRA_AGILE_BASE_PATH = "/rest/agile/1.0"
TICKET_ID_PATTERN = re.compile(r"^(?:[A-Z][A-Z0-9_]+-\d+|\d+)$")


def escape_jql(text: str) -> str:
    """Escape backslashes and double quotes for a JQL string literal."""
    return text.replace("\\", "\\\\").replace('"', '\\"')


def extract_text_from_adf(adf: dict[str, Any] | str | None) -> str:
    """Extract plain text from Atlassian Document Format.

    Block nodes (paragraphs, headings, list items) end with a newline.
    Plain strings pass through; None becomes "".
    """
    if adf is None:
        return ""

    if isinstance(adf, str):
        return adf

    def extract_from_node(node: dict[str, Any]) -> str:
        if node.get("type") == "text":
            return str(node.get("text", ""))

        content = node.get("content") or []
        texts = [extract_from_node(child) for child in content if isinstance(child, dict)]

        if node.get("type") in ("paragraph", "heading", "listItem"):
            return "".join(texts) + "\n"

        return "".join(texts)

    return extract_from_node(adf).strip()


class JiraProvider:
    """Ticket provider backed by Jira Cloud.

    Attributes:
        base_url: The Jira instance URL without a trailing slash.
    """

    def __init__(
        self,
        config: JiraConfig,
        patterns: PatternTables = DEFAULT_PATTERNS,
        cache_max_size: int = DEFAULT_CACHE_MAX_SIZE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Jira provider.

        Args:
            config: Jira configuration with base_url, email, and token.
            patterns: Classifier tables.
            cache_max_size: Maximum entries kept in the ticket cache.
            client: Optional pre-built HTTP client.
        """
        self._config = config
        self._patterns = patterns
        self.base_url = config.base_url.rstrip("/")

        if config.email:
            auth: tuple[str, str] | None = (config.email, config.token)
            headers = {"Content-Type": "application/json"}
        else:
            auth = None
            headers = {
                "Authorization": f"Bearer {config.token}",
                "Content-Type": "application/json",
            }

        self._transport = HttpTransport(
            PROVIDER_JIRA, self.base_url, headers=headers, auth=auth, client=client
        )
        self._cache: TTLCache[Any] = TTLCache(config.cache_ttl_seconds, cache_max_size)
        # Numeric issue id -> issue key; tickets are cached under the key
        self._key_aliases: dict[str, str] = {}

    def get_provider_name(self) -> str:
        """Return the provider name."""
        return PROVIDER_JIRA

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._transport.close()

    # -------------------------------------------------------------------------
    # Cache management
    # -------------------------------------------------------------------------

    def clear_cache(self) -> None:
        self._cache.clear()
        self._key_aliases.clear()

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def invalidate_cache(self, pattern: str | re.Pattern[str]) -> int:
        return self._cache.invalidate_matching(pattern)

    # -------------------------------------------------------------------------
    # Status predicates
    # -------------------------------------------------------------------------

    def is_in_progress(self, status: str) -> bool:
        return is_in_progress(status, self._patterns)

    def is_ready_to_start(self, status: str) -> bool:
        return is_ready_to_start(status, self._patterns)

    def is_blocked(self, status: str) -> bool:
        return is_blocked(status, self._patterns)

    # -------------------------------------------------------------------------
    # Fetching
    # -------------------------------------------------------------------------

    async def validate_config(self) -> bool:
        """Check the credentials by fetching the current user.

        Returns:
            True if Jira accepted the credentials, False otherwise.
        """
        if not self.base_url or not self._config.token:
            logger.warning("Jira provider missing base_url or token")
            return False

        try:
            await self._transport.get(f"{JIRA_API_BASE_PATH}/myself")
        except ProviderError as e:
            logger.warning("Jira config validation failed", extra={"error": str(e)})
            return False

        logger.info("Jira config validation passed")
        return True

    async def get_ticket(self, ticket_id: str) -> RecentTicket:
        """Fetch one issue by key (``PROJ-123``) or numeric id.

        The result is cached under the issue key, so a key and its numeric
        id share one entry.

        Raises:
            ValidationError: If the id is not a Jira key or numeric id.
            NotFoundError: If Jira does not know the issue.
            ProviderError: For any other failure.
        """
        ticket_id = ticket_id.strip()
        if not TICKET_ID_PATTERN.match(ticket_id):
            raise ValidationError(
                f'Invalid Jira ticket id "{ticket_id}". '
                'Format should be "PROJECT-123" or a numeric id',
                field="id",
                value=ticket_id,
            )

        cached = self._cache.get(ticket_cache_key(self._key_aliases.get(ticket_id, ticket_id)))
        if cached is not None:
            logger.debug("Jira cache hit", extra={"ticket_id": ticket_id})
            return cached

        start_time = time.monotonic()
        data = await self._transport.get(
            f"{JIRA_API_BASE_PATH}/issue/{ticket_id}",
            params={"fields": JIRA_TICKET_FIELDS},
        )
        ticket = self.map_to_recent_ticket(data)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Fetched Jira ticket",
            extra={"ticket_id": ticket_id, "duration_ms": duration_ms},
        )

        if ticket.id != ticket.key:
            self._key_aliases[ticket.id] = ticket.key
        self._cache.set(ticket_cache_key(ticket.key), ticket)
        return ticket

    async def _search(self, jql: str, limit: int, cache_key: str) -> list[RecentTicket]:
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Jira cache hit", extra={"cache_key": cache_key})
            return list(cached)

        start_time = time.monotonic()
        data = await self._transport.get(
            f"{JIRA_API_BASE_PATH}/search",
            params={"jql": jql, "maxResults": limit, "fields": JIRA_TICKET_FIELDS},
        )
        tickets = self._map_issues(data)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Searched Jira issues",
            extra={"jql": jql, "count": len(tickets), "duration_ms": duration_ms},
        )

        self._cache.set(cache_key, tickets)
        return list(tickets)

    def _map_issues(self, data: Any) -> list[RecentTicket]:
        if not isinstance(data, dict) or not isinstance(data.get("issues", []), list):
            raise ParsingError("Jira search response has no issue list", PROVIDER_JIRA)
        return [self.map_to_recent_ticket(issue) for issue in data.get("issues", [])]

    async def get_recent_tickets(self, limit: int = 10) -> list[RecentTicket]:
        """Fetch the most recently updated issues visible to the user."""
        return await self._search("ORDER BY updated DESC", limit, f"recent:{limit}")

    async def get_my_work(self, limit: int = 20) -> list[RecentTicket]:
        """Fetch issues the user is assigned to or reported."""
        jql = "assignee = currentUser() OR reporter = currentUser() ORDER BY updated DESC"
        return await self._search(jql, limit, f"my_work:{limit}")

    async def search_by_text(self, query: str, limit: int = 20) -> list[RecentTicket]:
        """Full-text search across issues."""
        jql = f'text ~ "{escape_jql(query)}" ORDER BY updated DESC'
        return await self._search(jql, limit, f"search:{query}:{limit}")

    async def get_recent_tickets_for_projects(
        self,
        project_keys: list[str],
        limit: int = 20,
    ) -> list[RecentTicket]:
        """Fetch recent issues restricted to the given projects."""
        if not project_keys:
            return await self.get_recent_tickets(limit)
        keys = ",".join(f'"{escape_jql(key)}"' for key in project_keys)
        jql = f"project in ({keys}) ORDER BY updated DESC"
        return await self._search(jql, limit, f"projects:{keys}:{limit}")

    async def get_projects(self) -> list[dict[str, str]]:
        """List projects as ``{"key", "name"}`` dicts."""
        data = await self._transport.get(f"{JIRA_API_BASE_PATH}/project/search")
        values = data.get("values", []) if isinstance(data, dict) else []
        return [{"key": p.get("key", ""), "name": p.get("name", "")} for p in values]

    async def get_boards(self, limit: int = 50) -> list[dict[str, Any]]:
        """List agile boards as ``{"id", "name", "type"}`` dicts."""
        data = await self._transport.get(
            f"{JIRA_AGILE_BASE_PATH}/board", params={"maxResults": limit}
        )
        values = data.get("values", []) if isinstance(data, dict) else []
        return [{"id": b.get("id"), "name": b.get("name", ""), "type": b.get("type")} for b in values]

    async def get_board_issues_assigned_to_me(
        self,
        board_id: int,
        limit: int = 50,
    ) -> list[RecentTicket]:
        """Fetch issues on a board that are assigned to the user."""
        data = await self._transport.get(
            f"{JIRA_AGILE_BASE_PATH}/board/{board_id}/issue",
            params={
                "jql": "assignee = currentUser() ORDER BY updated DESC",
                "maxResults": limit,
                "fields": JIRA_TICKET_FIELDS,
            },
        )
        return self._map_issues(data)

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def map_to_recent_ticket(self, raw: dict[str, Any]) -> RecentTicket:
        """Normalize a Jira issue payload.

        Missing fields get defaults: empty summary and description,
        ``medium`` priority, status "Unknown", no assignee.
        """
        fields = raw.get("fields") or {}
        key = str(raw.get("key", ""))
        priority = fields.get("priority") or {}
        status = fields.get("status") or {}
        assignee = fields.get("assignee") or {}

        return RecentTicket(
            id=str(raw.get("id") or key),
            key=key,
            summary=fields.get("summary") or "",
            description=extract_text_from_adf(fields.get("description")),
            priority=classify_jira_priority(priority.get("name"), self._patterns),
            status=status.get("name") or JIRA_DEFAULT_STATUS,
            assignee=assignee.get("displayName"),
            labels=list(fields.get("labels") or []),
            created=parse_datetime(fields.get("created")),
            updated=parse_datetime(fields.get("updated")),
            provider="jira",
            url=f"{self.base_url}/browse/{key}" if key else None,
        )
