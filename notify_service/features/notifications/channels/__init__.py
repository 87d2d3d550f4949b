"""Channel adapters for notification delivery.

Each adapter implements one of the ``InAppDelivery``, ``EmailDelivery`` or
``WebhookDelivery`` protocols. ``ChannelDispatcher`` decodes a claimed
outbox entry and routes it to the adapter for its channel.
"""

from .base import DeliveryResult, EmailDelivery, InAppDelivery, WebhookDelivery
from .dispatcher import ChannelDispatcher, build_dispatcher
from .email import Contact, ContactDirectory, EmailChannel, SqlContactDirectory
from .in_app import InAppChannel
from .webhook import SignedPayload, WebhookChannel, sign_payload, verify_signature

__all__ = [
    "ChannelDispatcher",
    "Contact",
    "ContactDirectory",
    "DeliveryResult",
    "EmailChannel",
    "EmailDelivery",
    "InAppChannel",
    "InAppDelivery",
    "SignedPayload",
    "SqlContactDirectory",
    "WebhookChannel",
    "WebhookDelivery",
    "build_dispatcher",
    "sign_payload",
    "verify_signature",
]
