"""CLI entry point for tickethub.

Commands:
    check: Validate every enabled provider against its service
    get: Fetch and print one ticket
    recent: Show recent tickets across providers
    classify: Run the chat-message heuristics offline

Example:
    tickethub check
    tickethub get jira PROJ-123
    tickethub get github octocat/hello-world#42
    tickethub recent --provider slack --limit 5
    tickethub classify "🔥 urgent: fix the login bug" --reaction eyes
"""

from __future__ import annotations

import asyncio
import logging
import sys
import time
from typing import TYPE_CHECKING

import click

from tickethub import __version__
from tickethub.aggregator import TicketAggregator
from tickethub.classifiers import (
    classify_message_priority,
    classify_message_status,
    extract_assignee,
    extract_labels,
    extract_summary,
    is_task_message,
)
from tickethub.config import load_config
from tickethub.exceptions import TicketHubError
from tickethub.logging import setup_logging
from tickethub.messages import describe_exception
from tickethub.providers import PROVIDER_NAMES, create_providers

if TYPE_CHECKING:
    from tickethub.config import TicketHubConfig
    from tickethub.models import RecentTicket


_MARKS = {"ok": ("✓", "green"), "fail": ("✗", "red"), "hint": ("→", "blue")}
_PRIORITY_COLORS = {"urgent": "red", "high": "yellow", "medium": "white", "low": "bright_black"}


def _mark(kind: str, msg: str) -> str:
    symbol, color = _MARKS[kind]
    return f"{click.style(symbol, fg=color)} {msg}"


def _format_ticket(ticket: RecentTicket) -> str:
    priority = click.style(f"[{ticket.priority}]", fg=_PRIORITY_COLORS[ticket.priority])
    return f"{priority} {ticket.key}  {ticket.summary}  ({ticket.status}, {ticket.provider})"


def _load(ctx: click.Context) -> TicketHubConfig:
    try:
        return load_config()
    except TicketHubError as e:
        click.echo(_mark("fail", describe_exception(e, "settings_save")), err=True)
        if ctx.obj.get("verbose"):
            click.echo(str(e), err=True)
        sys.exit(1)


def _aggregator(ctx: click.Context) -> TicketAggregator:
    providers = create_providers(_load(ctx))
    if not providers:
        click.echo(_mark("fail", "No providers configured."), err=True)
        click.echo(_mark("hint", "Set JIRA_TOKEN, GITHUB_TOKEN or SLACK_BOT_TOKEN, or add .tickethub.yaml"))
        sys.exit(1)
    return TicketAggregator(providers)


@click.group(invoke_without_command=True)
@click.version_option(version=__version__, prog_name="tickethub")
@click.option("--verbose", "-v", is_flag=True, help="Show detailed output")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """tickethub - recent work items from Jira, GitHub and Slack in one list."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(logging.DEBUG if verbose else logging.WARNING)

    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


@cli.command()
@click.pass_context
def check(ctx: click.Context) -> None:
    """Validate every enabled provider."""
    aggregator = _aggregator(ctx)

    async def run_checks() -> dict[str, bool]:
        try:
            return await aggregator.validate_all()
        finally:
            await aggregator.close()

    results = asyncio.run(run_checks())

    click.echo()
    click.echo(click.style("Connection Status", bold=True))
    click.echo()
    for name, healthy in results.items():
        if healthy:
            click.echo("  " + _mark("ok", name))
        else:
            click.echo("  " + _mark("fail", f"{name} (check credentials)"))
    click.echo()

    if not all(results.values()):
        sys.exit(1)


@cli.command()
@click.argument("provider", type=click.Choice(PROVIDER_NAMES))
@click.argument("ticket_id")
@click.pass_context
def get(ctx: click.Context, provider: str, ticket_id: str) -> None:
    """Fetch one ticket, e.g. `get jira PROJ-123`."""
    aggregator = _aggregator(ctx)
    start_time = time.monotonic()

    async def fetch() -> RecentTicket:
        try:
            return await aggregator.get_ticket(provider, ticket_id)
        finally:
            await aggregator.close()

    try:
        ticket = asyncio.run(fetch())
    except TicketHubError as e:
        click.echo(_mark("fail", describe_exception(e, "ticket_fetch")), err=True)
        if ctx.obj.get("verbose"):
            click.echo(str(e), err=True)
        sys.exit(1)

    click.echo(_format_ticket(ticket))
    if ticket.assignee:
        click.echo(f"  Assignee: {ticket.assignee}")
    if ticket.labels:
        click.echo(f"  Labels:   {', '.join(ticket.labels)}")
    if ticket.url:
        click.echo(f"  URL:      {ticket.url}")
    if ticket.description:
        click.echo()
        click.echo(ticket.description)

    duration = time.monotonic() - start_time
    click.echo()
    click.echo(click.style(f"Fetched in {duration:.1f}s", fg="cyan"))


@cli.command()
@click.option(
    "--provider",
    "-p",
    "provider_names",
    multiple=True,
    type=click.Choice(PROVIDER_NAMES),
    help="Only query this provider (repeatable)",
)
@click.option("--limit", "-n", default=20, show_default=True, type=click.IntRange(min=1))
@click.pass_context
def recent(ctx: click.Context, provider_names: tuple[str, ...], limit: int) -> None:
    """Show recent tickets across providers, newest first."""
    aggregator = _aggregator(ctx)

    async def fetch() -> tuple[list[RecentTicket], dict[str, str]]:
        try:
            result = await aggregator.get_recent_tickets(limit, list(provider_names) or None)
            return result.tickets, result.errors
        finally:
            await aggregator.close()

    try:
        tickets, errors = asyncio.run(fetch())
    except TicketHubError as e:
        click.echo(_mark("fail", describe_exception(e, "ticket_fetch")), err=True)
        sys.exit(1)

    for provider, message in errors.items():
        click.echo(_mark("fail", f"{provider}: {message}"), err=True)

    if not tickets:
        click.echo(_mark("hint", "No recent tickets."))
        return

    for ticket in tickets:
        click.echo(_format_ticket(ticket))


@cli.command()
@click.argument("text")
@click.option("--reaction", "-r", "reactions", multiple=True, help="Emoji reaction name (repeatable)")
@click.option("--channel", "-c", default=None, help="Channel name the message was posted in")
@click.pass_context
def classify(ctx: click.Context, text: str, reactions: tuple[str, ...], channel: str | None) -> None:
    """Classify a chat message as Slack tickets are classified."""
    tables = _load(ctx).patterns
    names = list(reactions)

    click.echo(f"Task:     {'yes' if is_task_message(text, channel, tables) else 'no'}")
    click.echo(f"Summary:  {extract_summary(text)}")
    click.echo(f"Priority: {classify_message_priority(text, names, tables)}")
    click.echo(f"Status:   {classify_message_status(text, names, tables)}")
    click.echo(f"Assignee: {extract_assignee(text, tables) or '-'}")
    labels = extract_labels(text, names, channel, tables)
    click.echo(f"Labels:   {', '.join(labels) if labels else '-'}")


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
