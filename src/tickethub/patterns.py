"""Keyword, regex and emoji tables used by the classifiers.

This module is data only. `PatternTables` bundles every table the
classifiers consult so that a caller can tune them (from YAML config or
in tests) without touching control flow. `DEFAULT_PATTERNS` holds the
stock tables.

Ordering matters in several tables:
    - label_priority_keywords / text_priority_keywords: dict order is the
      precedence order (first tier that matches wins).
    - reaction_priority: dict order decides precedence between reaction tiers.
    - assignee_patterns: first pattern that matches wins.
    - reaction_status_map: table order is the fallback tie-break order.
"""

from __future__ import annotations

import re
from functools import cached_property
from typing import Final

from pydantic import BaseModel, ConfigDict, Field

from tickethub.models import Priority  # noqa: TC001 - Required at runtime for Pydantic


def _jira_priorities() -> dict[str, Priority]:
    return {
        "lowest": "low",
        "low": "low",
        "medium": "medium",
        "high": "high",
        "highest": "urgent",
        "critical": "urgent",
    }


def _label_priorities() -> dict[Priority, list[str]]:
    return {
        "urgent": ["critical", "urgent"],
        "high": ["high"],
        "low": ["low"],
    }


def _text_priorities() -> dict[Priority, list[str]]:
    return {
        "urgent": ["🔥", "urgent", "critical", "emergency"],
        "high": ["⚡", "high priority", "important", "asap"],
        "low": ["low priority", "nice to have", "when time permits"],
    }


def _reaction_priorities() -> dict[Priority, list[str]]:
    return {
        "urgent": ["fire", "rotating_light", "warning"],
        "high": ["zap", "exclamation"],
    }


def _reaction_statuses() -> dict[str, str]:
    return {
        "white_check_mark": "completed",
        "heavy_check_mark": "completed",
        "x": "cancelled",
        "hourglass_flowing_sand": "in_progress",
        "red_circle": "blocked",
        "yellow_circle": "waiting",
        "green_circle": "ready",
        "eyes": "in_review",
        "raising_hand": "assigned",
    }


def _text_statuses() -> dict[str, list[str]]:
    return {
        "completed": ["completed", "done", "finished"],
        "in_progress": ["in progress", "working on", "started"],
        "blocked": ["blocked", "stuck", "waiting for"],
    }


class PatternTables(BaseModel):
    """Every table the priority/status/text classifiers read.

    Regex fields hold pattern source strings; the compiled forms are
    exposed as cached properties.
    """

    model_config = ConfigDict(frozen=True)

    # -- priority -----------------------------------------------------------
    jira_priority_map: dict[str, Priority] = Field(
        default_factory=_jira_priorities,
        description="Lower-cased Jira priority name -> tier (exact match)",
    )
    label_priority_keywords: dict[Priority, list[str]] = Field(
        default_factory=_label_priorities,
        description="Tier -> label substrings, in precedence order",
    )
    text_priority_keywords: dict[Priority, list[str]] = Field(
        default_factory=_text_priorities,
        description="Tier -> message text substrings, in precedence order",
    )
    reaction_priority: dict[Priority, list[str]] = Field(
        default_factory=_reaction_priorities,
        description="Tier -> reaction names, in precedence order",
    )

    # -- status -------------------------------------------------------------
    in_progress_keywords: list[str] = Field(
        default_factory=lambda: [
            "in progress",
            "working on",
            "started",
            "development",
            "doing",
            "in review",
        ],
    )
    ready_keywords: list[str] = Field(
        default_factory=lambda: ["to do", "todo", "open", "ready", "backlog"],
    )
    blocked_keywords: list[str] = Field(
        default_factory=lambda: ["blocked", "stuck", "waiting", "on hold"],
    )
    reaction_status_map: dict[str, str] = Field(
        default_factory=_reaction_statuses,
        description="Slack reaction name -> status label",
    )
    text_status_keywords: dict[str, list[str]] = Field(
        default_factory=_text_statuses,
        description="Status label -> message text substrings, in precedence order",
    )

    # -- task detection -----------------------------------------------------
    task_keywords: list[str] = Field(
        default_factory=lambda: [
            "todo",
            "task",
            "bug",
            "feature",
            "issue",
            "fix",
            "implement",
            "urgent",
            "priority",
            "deadline",
            "assigned",
            "complete",
            "done",
            "need to",
            "should",
            "must",
            "requirement",
            "story",
            "epic",
        ],
    )
    task_channel_patterns: list[str] = Field(
        default_factory=lambda: [
            "task",
            "todo",
            "project",
            "sprint",
            "bug",
            "feature",
            "dev",
            "engineering",
        ],
    )
    task_format_patterns: list[str] = Field(
        default_factory=lambda: [
            r"^[-*+]\s",  # bullet point
            r"^\d+\.\s",  # numbered list
            r"\[[\sxX]\]",  # checkbox
            r"^(?:TODO|FIXME|NOTE|HACK):",  # code-comment prefix
        ],
    )
    label_reactions: list[str] = Field(
        default_factory=lambda: ["bug", "enhancement", "question", "documentation"],
    )

    # -- extraction ---------------------------------------------------------
    assignee_patterns: list[str] = Field(
        default_factory=lambda: [
            r"assigned to (@?\w+)",
            r"assignee:?\s*(@?\w+)",
            r"@(\w+)\s+(?:please|can you|could you)",
        ],
    )
    mention_pattern: str = Field(default=r"<@([UW][A-Z0-9]+)>")
    hashtag_pattern: str = Field(default=r"#(\w+)")

    @cached_property
    def assignee_regexes(self) -> list[re.Pattern[str]]:
        return [re.compile(p, re.IGNORECASE) for p in self.assignee_patterns]

    @cached_property
    def mention_regex(self) -> re.Pattern[str]:
        return re.compile(self.mention_pattern)

    @cached_property
    def hashtag_regex(self) -> re.Pattern[str]:
        return re.compile(self.hashtag_pattern)

    @cached_property
    def task_format_regexes(self) -> list[re.Pattern[str]]:
        # Line-anchored so a bullet on any line of a multi-line message counts
        return [re.compile(p, re.IGNORECASE | re.MULTILINE) for p in self.task_format_patterns]

    @property
    def task_reactions(self) -> list[str]:
        """Reactions that mark a message as tracked work."""
        return list(self.reaction_status_map)


DEFAULT_PATTERNS: Final[PatternTables] = PatternTables()
