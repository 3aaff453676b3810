"""Slack provider that turns task-like messages into tickets.

This provider scans channels whose names suggest task discussion
(``#dev-tasks``, ``#bugs``, ``#sprint-42``...) and keeps the messages
that look like work items. Each kept message becomes a `RecentTicket`
whose priority, status, assignee and labels are inferred from its text
and emoji reactions.

Batch mode (`get_recent_tickets`) is bounded by configuration:
    - at most ``max_channels`` channels per call
    - at most ``max_concurrent_channels`` channels in flight at once
    - ``batch_size`` messages of history per channel
    - ``thread_replies_limit`` replies per thread

Ticket ids have the form ``CHANNEL_ID:ts``, e.g. ``C0123ABC:1704067200.000100``.

Example:
    config = SlackConfig(token="xoxb-...", enabled=True)
    provider = SlackProvider(config)
    tickets = await provider.get_recent_tickets(limit=10)
"""

from __future__ import annotations

import asyncio
import math
import re
import time
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING, Any

from tickethub.cache import CacheStats, TTLCache
from tickethub.classifiers import (
    classify_message_priority,
    classify_message_status,
    clean_message_text,
    extract_assignee,
    extract_labels,
    extract_mentions,
    extract_summary,
    is_task_channel,
    is_task_message,
)
from tickethub.constants import (
    DEFAULT_CACHE_MAX_SIZE,
    DEFAULT_RETRY_AFTER_SECONDS,
    PROVIDER_SLACK,
    SLACK_CHANNEL_LIST_LIMIT,
    SLACK_DEFAULT_STATUS,
    SLACK_SUMMARY_MAX_LENGTH,
)
from tickethub.exceptions import (
    NotFoundError,
    ParsingError,
    ProviderError,
    ProviderPermissionError,
    RateLimitError,
    ValidationError,
)
from tickethub.logging import LogContext, get_logger
from tickethub.models import RecentTicket, priority_rank
from tickethub.patterns import DEFAULT_PATTERNS, PatternTables
from tickethub.providers.base import parse_slack_ts, ticket_cache_key
from tickethub.providers.transport import HttpTransport

if TYPE_CHECKING:
    import httpx

    from tickethub.config import SlackConfig

logger = get_logger(__name__)

TICKET_ID_PATTERN = re.compile(r"^([CGD][A-Z0-9]+):(\d+\.\d+)$")
CHANNEL_ID_PATTERN = re.compile(r"^[CGD][A-Z0-9]+$")

_AUTH_ERRORS = frozenset(
    {"invalid_auth", "not_authed", "missing_scope", "account_inactive", "token_revoked"}
)
_NOT_FOUND_ERRORS = frozenset({"channel_not_found", "message_not_found", "thread_not_found"})
_SKIPPED_SUBTYPES = frozenset({"channel_join", "channel_leave", "channel_topic", "channel_purpose"})

SEARCH_TASK_SUFFIX = "(TODO OR task OR bug OR feature OR urgent OR priority)"
HIGH_PRIORITY_QUERY = '🔥 OR urgent OR critical OR "high priority" OR emergency'


def sanitize_search_query(query: str) -> str:
    """Drop angle brackets and escape double quotes in a search query."""
    if not query:
        return ""
    return query.replace("<", "").replace(">", "").replace('"', '\\"').strip()


def filter_task_channels(
    channels: list[dict[str, Any]],
    tables: PatternTables = DEFAULT_PATTERNS,
) -> list[dict[str, Any]]:
    """Keep unarchived channels whose names look task-related."""
    return [
        channel
        for channel in channels
        if not channel.get("is_archived") and is_task_channel(channel.get("name"), tables)
    ]


def sort_channels_by_relevance(channels: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Order channels: unarchived first, then by member count desc, then by name."""
    return sorted(
        channels,
        key=lambda c: (
            bool(c.get("is_archived")),
            -int(c.get("num_members") or 0),
            c.get("name") or "",
        ),
    )


def ordered_reaction_names(message: dict[str, Any]) -> list[str]:
    """Return reaction names oldest first.

    Slack lists reactions in the order they were first added. An
    ``added_at`` key on a reaction, when present, takes precedence.
    """
    reactions = [r for r in message.get("reactions") or [] if r.get("name")]
    if any("added_at" in r for r in reactions):
        reactions = sorted(reactions, key=lambda r: float(r.get("added_at") or 0))
    return [r["name"] for r in reactions]


class SlackProvider:
    """Ticket provider backed by Slack channel messages."""

    def __init__(
        self,
        config: SlackConfig,
        patterns: PatternTables = DEFAULT_PATTERNS,
        cache_max_size: int = DEFAULT_CACHE_MAX_SIZE,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize the Slack provider.

        Args:
            config: Slack configuration with bot token and batch limits.
            patterns: Classifier tables.
            cache_max_size: Maximum entries kept in the cache.
            client: Optional pre-built HTTP client.
        """
        self._config = config
        self._patterns = patterns
        self._transport = HttpTransport(
            PROVIDER_SLACK,
            config.base_url,
            headers={"Authorization": f"Bearer {config.token}"},
            client=client,
        )
        self._cache: TTLCache[Any] = TTLCache(config.cache_ttl_seconds, cache_max_size)
        self._current_user: dict[str, str] | None = None

    def get_provider_name(self) -> str:
        """Return the provider name."""
        return PROVIDER_SLACK

    async def close(self) -> None:
        """Close the HTTP client."""
        await self._transport.close()

    def clear_cache(self) -> None:
        self._cache.clear()

    def get_cache_stats(self) -> CacheStats:
        return self._cache.stats()

    def invalidate_cache(self, pattern: str | re.Pattern[str]) -> int:
        return self._cache.invalidate_matching(pattern)

    async def _cached(self, cache_key: str, compute: Callable[[], Awaitable[Any]]) -> Any:
        if cache_key in self._cache:
            logger.debug("Slack cache hit", extra={"cache_key": cache_key})
        return await self._cache.get_or_compute(cache_key, compute)

    # -------------------------------------------------------------------------
    # Web API
    # -------------------------------------------------------------------------

    async def _api_call(self, method: str, params: dict[str, Any] | None = None) -> dict[str, Any]:
        """Call a Slack Web API method and unwrap its ``ok`` envelope.

        Raises:
            RateLimitError: On ``ratelimited``.
            ProviderPermissionError: On auth and scope errors.
            NotFoundError: On unknown channels or messages.
            ProviderError: On any other ``ok: false`` response.
        """
        data = await self._transport.get(f"/{method}", params=params)
        if not isinstance(data, dict):
            raise ParsingError(f"Slack {method} response is not an object", PROVIDER_SLACK)

        if data.get("ok"):
            return data

        error = str(data.get("error", "unknown_error"))
        details = {"method": method, "error": error}
        logger.warning("Slack API error", extra=details)

        if error == "ratelimited":
            retry_after = int(data.get("retry_after", DEFAULT_RETRY_AFTER_SECONDS))
            raise RateLimitError(
                "Slack rate limit reached", PROVIDER_SLACK, retry_after=retry_after, details=details
            )
        if error in _AUTH_ERRORS:
            raise ProviderPermissionError(f"Slack rejected the token: {error}", PROVIDER_SLACK, details)
        if error in _NOT_FOUND_ERRORS:
            raise NotFoundError(f"Slack resource not found: {error}", PROVIDER_SLACK, details)
        raise ProviderError(f"Slack API error: {error}", PROVIDER_SLACK, details)

    async def validate_config(self) -> bool:
        """Check the bot token with ``auth.test`` and remember the bot user."""
        if not self._config.token:
            logger.warning("Slack provider missing token")
            return False

        try:
            data = await self._api_call("auth.test")
        except ProviderError as e:
            logger.warning("Slack config validation failed", extra={"error": str(e)})
            return False

        self._current_user = {"id": data.get("user_id", ""), "name": data.get("user", "")}
        logger.info(
            "Slack config validation passed",
            extra={"user": self._current_user["name"], "team": data.get("team")},
        )
        return True

    async def _channel_info(self, channel_id: str) -> dict[str, Any]:
        for known in self._cache.get("task_channels") or []:
            if known.get("id") == channel_id:
                return dict(known)

        async def fetch() -> dict[str, Any]:
            data = await self._api_call("conversations.info", {"channel": channel_id})
            channel: dict[str, Any] = data.get("channel") or {"id": channel_id}
            return channel

        result: dict[str, Any] = await self._cached(f"channel:{channel_id}", fetch)
        return result

    async def _thread_replies(self, channel_id: str, thread_ts: str) -> list[dict[str, Any]]:
        data = await self._api_call(
            "conversations.replies",
            {"channel": channel_id, "ts": thread_ts, "limit": self._config.thread_replies_limit},
        )
        # First message is the parent
        replies: list[dict[str, Any]] = (data.get("messages") or [])[1:]
        return replies

    async def _with_thread(self, message: dict[str, Any], channel_id: str) -> dict[str, Any]:
        thread_ts = message.get("thread_ts")
        if not thread_ts or thread_ts != message.get("ts") or not message.get("reply_count"):
            return message
        if self._config.thread_replies_limit == 0:
            return message
        try:
            replies = await self._thread_replies(channel_id, thread_ts)
        except ProviderError as e:
            logger.warning(
                "Thread replies unavailable",
                extra={"channel": channel_id, "thread_ts": thread_ts, "error": str(e)},
            )
            return message
        return {**message, "thread_replies": replies}

    # -------------------------------------------------------------------------
    # Single ticket
    # -------------------------------------------------------------------------

    async def get_ticket(self, ticket_id: str) -> RecentTicket:
        """Fetch one message by ``CHANNEL_ID:ts``.

        Raises:
            ValidationError: If the id is not ``CHANNEL_ID:ts``.
            NotFoundError: If the channel or message does not exist.
        """
        match = TICKET_ID_PATTERN.match(ticket_id.strip())
        if not match:
            raise ValidationError(
                f'Invalid Slack ticket id "{ticket_id}". '
                'Format should be "CHANNEL_ID:ts" (e.g. "C0123ABC:1704067200.000100")',
                field="id",
                value=ticket_id,
            )

        channel_id, ts = match.groups()
        cache_key = ticket_cache_key(f"{channel_id}:{ts}")
        cached = self._cache.get(cache_key)
        if cached is not None:
            logger.debug("Slack cache hit", extra={"ticket_id": ticket_id})
            return cached

        start_time = time.monotonic()
        data = await self._api_call(
            "conversations.history",
            {"channel": channel_id, "latest": ts, "oldest": ts, "inclusive": "true", "limit": 1},
        )
        messages = [m for m in data.get("messages") or [] if m.get("ts") == ts]
        if not messages:
            raise NotFoundError(
                f"Slack message {ts} not found in {channel_id}",
                PROVIDER_SLACK,
                {"channel": channel_id, "ts": ts},
            )

        channel = await self._channel_info(channel_id)
        message = await self._with_thread(messages[0], channel_id)
        ticket = self.map_to_recent_ticket({**message, "channel": channel})

        duration_ms = int((time.monotonic() - start_time) * 1000)
        logger.info(
            "Fetched Slack message",
            extra={"ticket_id": ticket_id, "duration_ms": duration_ms},
        )

        self._cache.set(cache_key, ticket)
        return ticket

    # -------------------------------------------------------------------------
    # Batch mode
    # -------------------------------------------------------------------------

    async def get_task_channels(self) -> list[dict[str, Any]]:
        """List task-related channels, most relevant first."""

        async def fetch() -> list[dict[str, Any]]:
            data = await self._api_call(
                "conversations.list",
                {
                    "types": "public_channel,private_channel",
                    "exclude_archived": "true",
                    "limit": SLACK_CHANNEL_LIST_LIMIT,
                },
            )
            channels = sort_channels_by_relevance(
                filter_task_channels(data.get("channels") or [], self._patterns)
            )
            logger.info("Found task channels", extra={"count": len(channels)})
            return channels

        channels: list[dict[str, Any]] = await self._cached("task_channels", fetch)
        return list(channels)

    async def _tasks_from_channel(self, channel: dict[str, Any], limit: int) -> list[RecentTicket]:
        channel_id = channel["id"]
        channel_name = channel.get("name")

        data = await self._api_call(
            "conversations.history",
            {"channel": channel_id, "limit": self._config.batch_size},
        )

        tickets: list[RecentTicket] = []
        for message in (data.get("messages") or [])[:limit]:
            if message.get("subtype") in _SKIPPED_SUBTYPES:
                continue
            if not is_task_message(message.get("text"), channel_name, self._patterns):
                continue
            enriched = await self._with_thread(message, channel_id)
            tickets.append(self.map_to_recent_ticket({**enriched, "channel": channel}))

        return tickets

    async def get_recent_tickets(self, limit: int = 10) -> list[RecentTicket]:
        """Scan task channels concurrently and return the newest task messages.

        A channel that fails is logged and skipped. If every channel
        fails the first error is raised.
        """

        async def fetch() -> list[RecentTicket]:
            start_time = time.monotonic()
            channels = (await self.get_task_channels())[: self._config.max_channels]
            if not channels:
                return []

            per_channel = max(1, math.ceil(limit / len(channels)))
            semaphore = asyncio.Semaphore(self._config.max_concurrent_channels)

            async def scan(channel: dict[str, Any]) -> list[RecentTicket]:
                async with semaphore:
                    return await self._tasks_from_channel(channel, per_channel)

            results = await asyncio.gather(
                *(scan(channel) for channel in channels), return_exceptions=True
            )

            tickets: list[RecentTicket] = []
            errors: list[BaseException] = []
            for channel, result in zip(channels, results, strict=True):
                if isinstance(result, BaseException):
                    with LogContext(logger, channel=channel.get("id")):
                        logger.warning("Skipping channel", extra={"error": str(result)})
                    errors.append(result)
                else:
                    tickets.extend(result)

            if errors and len(errors) == len(channels):
                raise errors[0]

            tickets.sort(key=lambda t: t.updated, reverse=True)
            duration_ms = int((time.monotonic() - start_time) * 1000)
            logger.info(
                "Scanned Slack channels",
                extra={
                    "channels": len(channels),
                    "failed": len(errors),
                    "tickets": len(tickets),
                    "duration_ms": duration_ms,
                },
            )
            return tickets[:limit]

        tickets: list[RecentTicket] = await self._cached(f"recent:{limit}", fetch)
        return list(tickets)

    async def get_tasks_by_channel(self, channel_id: str, limit: int = 20) -> list[RecentTicket]:
        """Return task messages from one channel, newest first."""
        if not CHANNEL_ID_PATTERN.match(channel_id):
            raise ValidationError(f"Invalid channel ID: {channel_id}", field="channel_id", value=channel_id)

        async def fetch() -> list[RecentTicket]:
            channel = await self._channel_info(channel_id)
            tickets = await self._tasks_from_channel(channel, limit)
            return sorted(tickets, key=lambda t: t.updated, reverse=True)

        tickets: list[RecentTicket] = await self._cached(f"channel_tasks:{channel_id}:{limit}", fetch)
        return list(tickets)

    # -------------------------------------------------------------------------
    # Search
    # -------------------------------------------------------------------------

    async def _search(self, query: str, count: int) -> list[RecentTicket]:
        data = await self._api_call(
            "search.messages",
            {"query": query, "count": count, "sort": "timestamp", "sort_dir": "desc"},
        )
        matches = (data.get("messages") or {}).get("matches") or []

        tickets = []
        for match in matches:
            channel = match.get("channel") or {}
            if is_task_message(match.get("text"), channel.get("name"), self._patterns):
                tickets.append(self.map_to_recent_ticket(match))
        return sorted(tickets, key=lambda t: t.updated, reverse=True)

    async def search_tasks(self, query: str, limit: int = 20) -> list[RecentTicket]:
        """Search messages for ``query`` combined with task keywords."""
        sanitized = sanitize_search_query(query)
        tickets: list[RecentTicket] = await self._cached(
            f"search:{sanitized}:{limit}",
            lambda: self._search(f"{sanitized} {SEARCH_TASK_SUFFIX}", limit),
        )
        return list(tickets)

    async def get_high_priority_tasks(self, limit: int = 20) -> list[RecentTicket]:
        """Return task messages classified high or urgent."""

        async def fetch() -> list[RecentTicket]:
            found = await self._search(HIGH_PRIORITY_QUERY, limit * 2)
            urgent = [t for t in found if priority_rank(t.priority) >= priority_rank("high")]
            return urgent[:limit]

        tickets: list[RecentTicket] = await self._cached(f"high_priority:{limit}", fetch)
        return list(tickets)

    async def get_my_task_mentions(self, limit: int = 20) -> list[RecentTicket]:
        """Return task messages written by or mentioning the token's user.

        Raises:
            ProviderPermissionError: If the current user cannot be determined.
        """
        if self._current_user is None and not await self.validate_config():
            raise ProviderPermissionError("Unable to determine current Slack user", PROVIDER_SLACK)

        name = self._current_user["name"] if self._current_user else ""
        query = sanitize_search_query(f"from:@{name} OR mentions:@{name}")
        tickets: list[RecentTicket] = await self._cached(
            f"mentions:{name}:{limit}", lambda: self._search(query, limit)
        )
        return list(tickets)

    # -------------------------------------------------------------------------
    # Mapping
    # -------------------------------------------------------------------------

    def map_to_recent_ticket(self, raw: dict[str, Any]) -> RecentTicket:
        """Normalize a Slack message.

        ``raw`` is a message object, optionally carrying a ``channel``
        object (id, name) and ``thread_replies``. The last thread reply
        sets ``updated``; the message timestamp sets ``created``.
        """
        ts = str(raw.get("ts") or "0")
        compact_ts = ts.replace(".", "")
        text = raw.get("text") or ""
        channel = raw.get("channel") or {}
        if isinstance(channel, str):
            channel = {"id": channel}
        channel_id = channel.get("id") or "unknown"
        channel_name = channel.get("name")

        reactions = ordered_reaction_names(raw)
        replies = raw.get("thread_replies") or []
        last_activity = replies[-1].get("ts") if replies else ts

        assignee = extract_assignee(text, self._patterns)
        if assignee is None:
            mentions = extract_mentions(text, self._patterns)
            assignee = mentions[0] if mentions else None

        return RecentTicket(
            id=f"{channel_id}:{ts}",
            key=f"SLACK-{channel_name or 'DM'}-{compact_ts}",
            summary=extract_summary(text, SLACK_SUMMARY_MAX_LENGTH),
            description=clean_message_text(text),
            priority=classify_message_priority(text, reactions, self._patterns),
            status=classify_message_status(
                text, reactions, self._patterns, default=SLACK_DEFAULT_STATUS
            ),
            assignee=assignee,
            labels=extract_labels(text, reactions, channel_name, self._patterns),
            created=parse_slack_ts(ts),
            updated=parse_slack_ts(last_activity),
            provider="slack",
            url=raw.get("permalink") or f"slack://channel/{channel_id}/p{compact_ts}",
        )
