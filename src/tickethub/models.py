"""Pydantic models for tickethub.

This module contains the canonical data model shared by every provider.
All models use Pydantic BaseModel with Field() descriptions for
documentation and validation.

Models are organized by domain:
- Scalar vocabularies (Priority, ProviderName)
- Canonical ticket (RecentTicket, StatusFlags)
- Grouping models (TaskGroup, ProjectGroup)

All datetime fields use timezone-aware UTC datetimes.
"""

from __future__ import annotations

from datetime import datetime  # noqa: TC003 - Required at runtime for Pydantic
from typing import TYPE_CHECKING, Final, Literal

from pydantic import BaseModel, ConfigDict, Field

if TYPE_CHECKING:
    from tickethub.patterns import PatternTables

# =============================================================================
# VOCABULARIES
# =============================================================================

Priority = Literal["low", "medium", "high", "urgent"]
ProviderName = Literal["jira", "github", "slack"]

# Lowest tier first; index doubles as rank
PRIORITY_ORDER: Final[tuple[Priority, ...]] = ("low", "medium", "high", "urgent")
DEFAULT_PRIORITY: Final[Priority] = "medium"


def priority_rank(priority: Priority) -> int:
    """Return the rank of a priority tier, higher is more urgent."""
    return PRIORITY_ORDER.index(priority)


# =============================================================================
# CANONICAL TICKET
# =============================================================================


class StatusFlags(BaseModel):
    """Boolean classifications derived from a status label."""

    model_config = ConfigDict(frozen=True)

    in_progress: bool = Field(default=False, description="Work has started")
    ready_to_start: bool = Field(default=False, description="Open and waiting to be picked up")
    blocked: bool = Field(default=False, description="Waiting on something external")


class RecentTicket(BaseModel):
    """A task-like item normalized from any provider.

    Instances are immutable once produced by a provider's mapping call.
    The status properties classify ``status`` with the built-in tables;
    use `status_flags_for` (or the provider's own predicates) when
    ``patterns:`` is overridden in configuration.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., description="Unique id within the aggregator (e.g. 'owner/repo#123')")
    key: str = Field(..., description="Short human-facing identifier (e.g. 'TEST-123', '#123')")
    summary: str = Field(..., description="One-line title")
    description: str = Field(default="", description="Plain-text body, empty when absent")
    priority: Priority = Field(default=DEFAULT_PRIORITY, description="Resolved priority tier")
    status: str = Field(..., description="Provider-native status label")
    assignee: str | None = Field(default=None, description="Assignee handle or display name")
    labels: list[str] = Field(default_factory=list, description="Labels in source order")
    created: datetime = Field(..., description="When the item was created (UTC)")
    updated: datetime = Field(..., description="When the item last changed (UTC)")
    provider: ProviderName = Field(..., description="Source system")
    url: str | None = Field(default=None, description="Link back to the source item")

    def status_flags_for(self, tables: PatternTables) -> StatusFlags:
        """Classify ``status`` with the given pattern tables."""
        from tickethub.classifiers import classify_status

        return classify_status(self.status, tables)

    @property
    def status_flags(self) -> StatusFlags:
        """Classify ``status`` with the default pattern tables."""
        from tickethub.patterns import DEFAULT_PATTERNS

        return self.status_flags_for(DEFAULT_PATTERNS)

    @property
    def is_in_progress(self) -> bool:
        """Return True if the status reads as work in progress."""
        return self.status_flags.in_progress

    @property
    def is_ready_to_start(self) -> bool:
        """Return True if the status reads as ready to be picked up."""
        return self.status_flags.ready_to_start

    @property
    def is_blocked(self) -> bool:
        """Return True if the status reads as blocked or waiting."""
        return self.status_flags.blocked


# =============================================================================
# GROUPING MODELS
# =============================================================================


class TaskGroup(BaseModel):
    """Tickets bucketed under a heading, e.g. 'Bugs' or 'High Priority Issues'."""

    title: str = Field(..., description="Group heading")
    icon: str = Field(default="", description="Emoji shown next to the heading")
    priority: Priority = Field(default=DEFAULT_PRIORITY, description="Sort tier of the group")
    tasks: list[RecentTicket] = Field(default_factory=list, description="Tickets in the group")

    @property
    def count(self) -> int:
        """Return the number of tickets in the group."""
        return len(self.tasks)


class ProjectGroup(BaseModel):
    """Tickets grouped by the project or repository they belong to."""

    id: str = Field(..., description="Project identifier (e.g. 'owner/repo')")
    name: str = Field(..., description="Short project name")
    key: str = Field(..., description="Project key")
    description: str = Field(default="", description="One-line summary of the group")
    tasks: list[RecentTicket] = Field(default_factory=list, description="Tickets in the project")

    @property
    def count(self) -> int:
        """Return the number of tickets in the project."""
        return len(self.tasks)
