"""Main CLI entry point for notify-service management commands."""

import click

from notify_service.cli.commands import database, outbox, routes, worker
from notify_service.infra.logging import setup_logging


@click.group()
@click.version_option(version="0.1.0", prog_name="notify-service")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Notify Service CLI - notification routing and outbox delivery.

    \b
    Command Groups:
      worker     Run or drain the outbox delivery worker
      outbox     Inspect outbox state and exhausted entries
      routes     Inspect the event routing table
      db         Database setup

    \b
    Quick Start:
      notify-service db init            # Create tables locally
      notify-service routes list        # Show routing table
      notify-service worker run         # Start delivering
      notify-service outbox stats       # Check delivery backlog
    """
    ctx.ensure_object(dict)
    setup_logging()


cli.add_command(worker.worker)
cli.add_command(outbox.outbox)
cli.add_command(routes.routes)
cli.add_command(database.db)


def main() -> None:
    """Entry point for CLI."""
    cli(obj={})


if __name__ == "__main__":
    main()
