"""CLI command modules."""

from notify_service.cli.commands import database, outbox, routes, worker

__all__ = ["database", "outbox", "routes", "worker"]
