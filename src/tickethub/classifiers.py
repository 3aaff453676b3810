"""Heuristic priority/status classification and text extraction.

Every function here is pure: it takes its rule tables as an argument
(defaulting to `DEFAULT_PATTERNS`) and never performs I/O, so each rule
can be tested in isolation. Keyword matching is case-insensitive
substring matching throughout.

Priority:
    classify_jira_priority   - structured priority name (Jira)
    classify_label_priority  - label names (GitHub)
    classify_message_priority - free text + emoji reactions (Slack)
    classify_priority        - dispatch on a PrioritySignal

Status:
    is_in_progress / is_ready_to_start / is_blocked / classify_status
    status_from_reactions / status_from_text / classify_message_status

Text:
    extract_assignee / extract_mentions / extract_hashtags
    has_task_format / is_task_channel / is_task_message
    clean_message_text / extract_summary / extract_labels
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, Field

from tickethub.models import (
    DEFAULT_PRIORITY,
    Priority,
    ProviderName,
    StatusFlags,
    priority_rank,
)
from tickethub.patterns import DEFAULT_PATTERNS, PatternTables

# =============================================================================
# HELPERS
# =============================================================================


def contains_any(text: str | None, keywords: Iterable[str]) -> bool:
    """Return True if ``text`` contains any keyword, ignoring case."""
    if not text:
        return False
    lowered = text.lower()
    return any(keyword.lower() in lowered for keyword in keywords)


def max_priority(*levels: Priority) -> Priority:
    """Return the most urgent of the given tiers (``medium`` if none given)."""
    if not levels:
        return DEFAULT_PRIORITY
    return max(levels, key=priority_rank)


# =============================================================================
# PRIORITY
# =============================================================================


class PrioritySignal(BaseModel):
    """Whatever priority evidence a provider record carries.

    Jira records carry ``priority_name``, GitHub records carry ``labels``,
    Slack messages carry ``text`` and ``reactions``.
    """

    source: ProviderName = Field(..., description="Provider the evidence came from")
    priority_name: str | None = Field(default=None, description="Structured priority name")
    labels: list[str] = Field(default_factory=list, description="Label names")
    text: str = Field(default="", description="Free text")
    reactions: list[str] = Field(default_factory=list, description="Emoji reaction names")


def classify_jira_priority(
    name: str | None,
    tables: PatternTables = DEFAULT_PATTERNS,
) -> Priority:
    """Map a structured priority name to a tier by exact, case-insensitive match.

    >>> classify_jira_priority("Highest")
    'urgent'
    >>> classify_jira_priority("Blocker")
    'medium'
    """
    if not name:
        return DEFAULT_PRIORITY
    return tables.jira_priority_map.get(name.strip().lower(), DEFAULT_PRIORITY)


def classify_label_priority(
    labels: Iterable[str],
    tables: PatternTables = DEFAULT_PATTERNS,
) -> Priority:
    """Scan label names tier by tier; the first tier with a matching label wins.

    A label matches a tier when it contains one of the tier's keywords,
    so ``high-priority`` counts as ``high``. Labels that match nothing,
    such as ``enhancement``, leave the default ``medium``.
    """
    names = [label.lower() for label in labels if label]
    for tier, keywords in tables.label_priority_keywords.items():
        if any(contains_any(name, keywords) for name in names):
            return tier
    return DEFAULT_PRIORITY


def _text_priority(text: str, tables: PatternTables) -> Priority | None:
    for tier, keywords in tables.text_priority_keywords.items():
        if contains_any(text, keywords):
            return tier
    return None


def _reaction_priority(reactions: Sequence[str], tables: PatternTables) -> Priority | None:
    present = set(reactions)
    for tier, names in tables.reaction_priority.items():
        if present.intersection(names):
            return tier
    return None


def classify_message_priority(
    text: str | None,
    reactions: Sequence[str] = (),
    tables: PatternTables = DEFAULT_PATTERNS,
) -> Priority:
    """Combine text keywords and emoji reactions; the higher tier wins.

    >>> classify_message_priority("low priority cleanup", ["fire"])
    'urgent'
    """
    signals = [
        tier
        for tier in (_text_priority(text or "", tables), _reaction_priority(reactions, tables))
        if tier is not None
    ]
    return max_priority(*signals)


def classify_priority(
    signal: PrioritySignal,
    tables: PatternTables = DEFAULT_PATTERNS,
) -> Priority:
    """Classify a priority signal with the rule that fits its provider."""
    if signal.source == "jira":
        return classify_jira_priority(signal.priority_name, tables)
    if signal.source == "github":
        return classify_label_priority(signal.labels, tables)
    return classify_message_priority(signal.text, signal.reactions, tables)


# =============================================================================
# STATUS
# =============================================================================


def is_in_progress(status: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> bool:
    """Return True if the status names active work (e.g. 'In Progress', 'Development')."""
    return contains_any(status, tables.in_progress_keywords)


def is_ready_to_start(status: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> bool:
    """Return True if the status names unstarted work (e.g. 'To Do', 'Open')."""
    return contains_any(status, tables.ready_keywords)


def is_blocked(status: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> bool:
    """Return True if the status names stalled work (e.g. 'Blocked', 'Waiting')."""
    return contains_any(status, tables.blocked_keywords)


def classify_status(status: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> StatusFlags:
    """Evaluate all three status predicates at once."""
    return StatusFlags(
        in_progress=is_in_progress(status, tables),
        ready_to_start=is_ready_to_start(status, tables),
        blocked=is_blocked(status, tables),
    )


def status_from_reactions(
    reactions: Sequence[str],
    tables: PatternTables = DEFAULT_PATTERNS,
) -> str | None:
    """Return the status signalled by emoji reactions, if any.

    ``reactions`` must be ordered oldest first. When several status
    reactions are present the last one (the most recently added) wins.
    Reaction names missing from the table are ignored.
    """
    status: str | None = None
    for name in reactions:
        mapped = tables.reaction_status_map.get(name)
        if mapped is not None:
            status = mapped
    return status


def status_from_text(text: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> str | None:
    """Return the first status whose keywords occur in ``text``."""
    for status, keywords in tables.text_status_keywords.items():
        if contains_any(text, keywords):
            return status
    return None


def classify_message_status(
    text: str | None,
    reactions: Sequence[str] = (),
    tables: PatternTables = DEFAULT_PATTERNS,
    default: str = "open",
) -> str:
    """Resolve a chat message's status: reactions, then text, then ``default``."""
    return (
        status_from_reactions(reactions, tables)
        or status_from_text(text, tables)
        or default
    )


# =============================================================================
# TEXT EXTRACTION
# =============================================================================


def extract_assignee(text: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> str | None:
    """Try each assignee pattern in order; return the first handle without '@'.

    >>> extract_assignee("assigned to @alice")
    'alice'
    >>> extract_assignee("@bob can you take a look?")
    'bob'
    """
    if not text:
        return None
    for pattern in tables.assignee_regexes:
        match = pattern.search(text)
        if match:
            return match.group(1).lstrip("@")
    return None


def extract_mentions(text: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> list[str]:
    """Return mentioned user ids (``<@U123>`` -> ``U123``) in order, duplicates kept."""
    if not text:
        return []
    return tables.mention_regex.findall(text)


def extract_hashtags(text: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> list[str]:
    """Return ``#word`` tokens (without '#') in order of appearance."""
    if not text:
        return []
    return tables.hashtag_regex.findall(text)


def has_task_format(text: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> bool:
    """Return True for bullets, numbered items, checkboxes or TODO:/FIXME: style prefixes."""
    if not text:
        return False
    return any(pattern.search(text) for pattern in tables.task_format_regexes)


def is_task_channel(name: str | None, tables: PatternTables = DEFAULT_PATTERNS) -> bool:
    """Return True if a channel name looks like it hosts task discussion."""
    return contains_any(name, tables.task_channel_patterns)


def is_task_message(
    text: str | None,
    channel_name: str | None = None,
    tables: PatternTables = DEFAULT_PATTERNS,
) -> bool:
    """Decide whether a chat message should become a ticket.

    Any single signal qualifies: a task keyword, a task-style format,
    or a task-named channel.
    """
    return (
        contains_any(text, tables.task_keywords)
        or has_task_format(text, tables)
        or is_task_channel(channel_name, tables)
    )


_USER_MENTION = re.compile(r"<@[UW][A-Z0-9]+>")
_CHANNEL_MENTION = re.compile(r"<#C[A-Z0-9]+\|([^>]+)>")
_LABELLED_LINK = re.compile(r"<([^|>]+)\|([^>]+)>")
_BARE_MARKUP = re.compile(r"<([^>]+)>")
_BLANK_LINES = re.compile(r"\n\s*\n")


def clean_message_text(text: str | None) -> str:
    """Strip Slack markup: mentions, channel links and ``<url|label>`` links."""
    if not text:
        return ""
    cleaned = _USER_MENTION.sub("@user", text)
    cleaned = _CHANNEL_MENTION.sub(r"#\1", cleaned)
    cleaned = _LABELLED_LINK.sub(r"\2", cleaned)
    cleaned = _BARE_MARKUP.sub(r"\1", cleaned)
    cleaned = _BLANK_LINES.sub("\n\n", cleaned)
    return cleaned.strip()


def extract_summary(text: str | None, max_length: int = 100) -> str:
    """Return the shorter of the first line and first sentence, truncated with '...'."""
    fallback = "No summary available"
    cleaned = clean_message_text(text)
    if not cleaned:
        return fallback

    first_line = cleaned.split("\n")[0]
    first_sentence = cleaned.split(".")[0]
    summary = first_line if len(first_line) <= len(first_sentence) else first_sentence
    summary = summary.strip()

    if len(summary) > max_length:
        return summary[: max_length - 3] + "..."

    return summary or fallback


def extract_labels(
    text: str | None,
    reactions: Sequence[str] = (),
    channel_name: str | None = None,
    tables: PatternTables = DEFAULT_PATTERNS,
) -> list[str]:
    """Collect labels from the channel name, hashtags and label reactions.

    Order is channel, hashtags, reactions; duplicates are dropped keeping
    the first occurrence.
    """
    labels: list[str] = []
    if channel_name:
        labels.append(f"#{channel_name}")
    labels.extend(extract_hashtags(text, tables))
    labels.extend(name for name in reactions if name in tables.label_reactions)
    return list(dict.fromkeys(labels))
