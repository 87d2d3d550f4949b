"""Outbox inspection commands.

Example:bash
    notify-service outbox stats
    notify-service outbox failed --limit 20
"""

import json

import click

from notify_service.cli.utils import coro, header, info, table_row
from notify_service.features.notifications.repository import get_outbox_repository
from notify_service.features.notifications.schemas import OutboxEntryRead
from notify_service.infra.database import close_database, get_async_session


@click.group(name="outbox")
def outbox() -> None:
    """Notification outbox operations."""


@outbox.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def stats(output_format: str) -> None:
    """Show entry counts per status."""
    try:
        async with get_async_session() as session:
            result = await get_outbox_repository().stats(session)
    finally:
        await close_database()

    if output_format == "json":
        click.echo(json.dumps({**result.model_dump(), "total": result.total}, indent=2))
        return

    header("Outbox Statistics")
    table_row("Pending", result.pending)
    table_row("Processing", result.processing)
    table_row("Delivered", result.delivered)
    table_row("Failed", result.failed)
    table_row("Exhausted", result.exhausted)
    table_row("Total", result.total)


@outbox.command()
@click.option("--limit", type=int, default=20, show_default=True, help="Entries to show")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@coro
async def failed(limit: int, output_format: str) -> None:
    """List entries that used every delivery attempt."""
    try:
        async with get_async_session() as session:
            rows = await get_outbox_repository().list_exhausted(session, limit=limit)
            entries = [OutboxEntryRead.model_validate(row) for row in rows]
    finally:
        await close_database()

    if output_format == "json":
        click.echo(json.dumps([e.model_dump(mode="json") for e in entries], indent=2))
        return

    header(f"Exhausted Outbox Entries ({len(entries)})")
    if not entries:
        info("No exhausted entries")
        return

    for entry in entries:
        click.secho(f"\n{entry.id}", bold=True)
        table_row("Event", f"{entry.event_type} {entry.entity_id} v{entry.entity_version}")
        table_row("Recipient", f"{entry.recipient_id} via {entry.channel}")
        table_row("Attempts", f"{entry.attempts}/{entry.max_attempts}")
        table_row("Last error", entry.last_error or "-")
