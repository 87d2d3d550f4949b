"""Event routing and outbox delivery for notifications.

Business modules call ``route_event`` inside their transaction; it decides
who should hear about the event and on which channels, and records one
outbox entry per (recipient, channel). The ``DeliveryWorker`` later claims
due entries, hands them to the in-app, email or webhook adapter, and retries
failures with exponential backoff up to ``max_attempts``.

Architecture:
    - Routing: immutable event type -> roles + default channels table
    - Recipients: role -> user ids via organisation memberships
    - Selector: routing defaults folded with recipient preferences
    - Writer: deduplicated outbox inserts keyed by an idempotency key
    - Worker: atomic claim, per-channel dispatch, backoff, lease expiry

Example:
    ```python
    async with get_async_session() as session:
        await route_event(
            session,
            NotificationEvent(type="ticket.created", entity_id="t1", landlord_id="orgA"),
        )
        await session.commit()
    ```
"""

from notify_service.features.notifications.enums import (
    Channel,
    EventType,
    MemberRole,
    OutboxStatus,
    ResourceType,
    Role,
)
from notify_service.features.notifications.events import (
    AppointmentPayload,
    GenericPayload,
    NotificationEvent,
    QuotePayload,
    TicketPayload,
    decode_payload,
)
from notify_service.features.notifications.exceptions import (
    DeliveryContractError,
    NotificationError,
    OutboxWriteError,
    RoutingConfigError,
)
from notify_service.features.notifications.models import (
    Notification,
    NotificationOutbox,
    NotificationPreference,
    OrgMember,
    UserContact,
)
from notify_service.features.notifications.preferences import (
    PreferenceStore,
    RecipientPreference,
    SqlPreferenceStore,
)
from notify_service.features.notifications.recipients import (
    MembershipDirectory,
    RecipientResolver,
    SqlMembershipDirectory,
)
from notify_service.features.notifications.repository import (
    NotificationRepository,
    OutboxRepository,
    compute_backoff_seconds,
    get_notification_repository,
    get_outbox_repository,
)
from notify_service.features.notifications.routing import (
    RoutingRule,
    RoutingTable,
    get_routing_table,
    load_routing_table,
)
from notify_service.features.notifications.schemas import (
    OutboxEntryRead,
    OutboxStats,
    PreferenceUpdate,
)
from notify_service.features.notifications.selector import ChannelSelector, select_channels
from notify_service.features.notifications.service import NotificationRoutingService, route_event
from notify_service.features.notifications.worker import DeliveryWorker
from notify_service.features.notifications.writer import OutboxWriter, build_idempotency_key

__all__ = [
    "AppointmentPayload",
    "Channel",
    "ChannelSelector",
    "DeliveryContractError",
    "DeliveryWorker",
    "EventType",
    "GenericPayload",
    "MemberRole",
    "MembershipDirectory",
    "Notification",
    "NotificationError",
    "NotificationEvent",
    "NotificationOutbox",
    "NotificationPreference",
    "NotificationRepository",
    "NotificationRoutingService",
    "OrgMember",
    "OutboxEntryRead",
    "OutboxRepository",
    "OutboxStats",
    "OutboxStatus",
    "OutboxWriteError",
    "OutboxWriter",
    "PreferenceStore",
    "PreferenceUpdate",
    "QuotePayload",
    "RecipientPreference",
    "RecipientResolver",
    "ResourceType",
    "Role",
    "RoutingConfigError",
    "RoutingRule",
    "RoutingTable",
    "SqlMembershipDirectory",
    "SqlPreferenceStore",
    "TicketPayload",
    "UserContact",
    "build_idempotency_key",
    "compute_backoff_seconds",
    "decode_payload",
    "get_notification_repository",
    "get_outbox_repository",
    "get_routing_table",
    "load_routing_table",
    "route_event",
    "select_channels",
]
