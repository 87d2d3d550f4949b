"""Event routing: resolver -> selector -> outbox writer.

Business code calls ``route_event`` inside its own transaction once the
state change that produced the event has been made:

    async with get_async_session() as session:
        ticket = await tickets.create(session, data)
        await route_event(
            session,
            NotificationEvent(
                type="ticket.created",
                entity_id=str(ticket.id),
                landlord_id=ticket.landlord_id,
                payload=TicketPayload(title=ticket.title),
            ),
        )

Routing only records intent. Delivery happens later in the worker.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from notify_service.core.settings import get_notification_settings
from notify_service.features.notifications.metrics import routing_unrouted_total
from notify_service.features.notifications.preferences import SqlPreferenceStore
from notify_service.features.notifications.recipients import (
    RecipientResolver,
    SqlMembershipDirectory,
)
from notify_service.features.notifications.routing import get_routing_table
from notify_service.features.notifications.selector import ChannelSelector
from notify_service.features.notifications.writer import OutboxWriter
from notify_service.infra.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.core.settings import NotificationSettings
    from notify_service.features.notifications.enums import Channel
    from notify_service.features.notifications.events import NotificationEvent
    from notify_service.features.notifications.routing import RoutingTable

logger = get_logger(__name__)


class NotificationRoutingService:
    """Turn one event into outbox entries.

    Collaborators default to the SQL-backed implementations bound to
    ``session``; tests may pass their own.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        routing_table: RoutingTable | None = None,
        resolver: RecipientResolver | None = None,
        selector: ChannelSelector | None = None,
        writer: OutboxWriter | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        settings = settings or get_notification_settings()
        self._table = routing_table if routing_table is not None else get_routing_table()
        self._resolver = resolver or RecipientResolver(
            SqlMembershipDirectory(session), ops_scope=settings.ops_scope
        )
        self._selector = selector or ChannelSelector(SqlPreferenceStore(session))
        self._writer = writer or OutboxWriter(session, max_attempts=settings.max_attempts)

    async def route_event(self, event: NotificationEvent) -> int:
        """Record notification intent for ``event``.

        Returns the number of outbox entries created; 0 for unknown event
        types, events nobody should hear about, and repeats of an event that
        was already routed.

        Raises:
            OutboxWriteError: If the entries could not be written.
        """
        rule = self._table.lookup(event.type)
        if rule is None:
            routing_unrouted_total.labels(event_type=event.type).inc()
            logger.info(
                "No routing rule for event type",
                extra={
                    "event_type": event.type,
                    "entity_id": event.entity_id,
                    "operation": "routing.route_event",
                },
            )
            return 0

        recipients = await self._resolver.resolve_recipients(event, rule)
        if not recipients:
            logger.info(
                "No recipients resolved for event",
                extra={
                    "event_type": event.type,
                    "entity_id": event.entity_id,
                    "operation": "routing.route_event",
                },
            )
            return 0

        pairs: list[tuple[str, Channel]] = []
        for recipient_id in sorted(recipients):
            channels = await self._selector.select_channels(recipient_id, rule)
            pairs.extend((recipient_id, channel) for channel in channels)

        created = await self._writer.create_entries(event, pairs)
        logger.info(
            "Event routed",
            extra={
                "event_type": event.type,
                "entity_id": event.entity_id,
                "entity_version": event.entity_version,
                "recipients": len(recipients),
                "pairs": len(pairs),
                "created": created,
                "operation": "routing.route_event",
            },
        )
        return created


async def route_event(session: AsyncSession, event: NotificationEvent) -> int:
    """Route ``event`` with the default collaborators bound to ``session``."""
    return await NotificationRoutingService(session).route_event(event)


__all__ = ["NotificationRoutingService", "route_event"]
