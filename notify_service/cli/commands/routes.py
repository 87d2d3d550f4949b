"""Routing table inspection commands.

Example:bash
    notify-service routes list
    notify-service routes show ticket.created
"""

import sys

import click

from notify_service.cli.utils import error, header, table_row
from notify_service.features.notifications.exceptions import RoutingConfigError
from notify_service.features.notifications.routing import RoutingRule, get_routing_table


def _load_table():
    try:
        return get_routing_table()
    except RoutingConfigError as e:
        error(f"Invalid routing configuration: {e}")
        sys.exit(1)


def _roles(rule: RoutingRule) -> str:
    return ", ".join(sorted(rule.allowed_roles))


def _channels(rule: RoutingRule) -> str:
    return ", ".join(rule.ordered_channels)


@click.group(name="routes")
def routes() -> None:
    """Event routing table."""


@routes.command(name="list")
def list_routes() -> None:
    """List every event type with notification behavior."""
    table = _load_table()
    header(f"Routing Table ({len(table)} event types)")
    for event_type in sorted(table):
        rule = table[event_type]
        click.echo(f"  {event_type:<24} roles=[{_roles(rule)}] channels=[{_channels(rule)}]")


@routes.command()
@click.argument("event_type")
def show(event_type: str) -> None:
    """Show the rule for EVENT_TYPE."""
    rule = _load_table().lookup(event_type)
    if rule is None:
        error(f"No routing rule for event type {event_type!r}")
        sys.exit(1)

    header(str(rule.event_type))
    table_row("Roles", _roles(rule))
    table_row("Channels", _channels(rule))
