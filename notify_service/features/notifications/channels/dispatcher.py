"""Route a claimed outbox entry to its channel adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from pydantic import ValidationError

from notify_service.features.notifications.channels.base import DeliveryResult
from notify_service.features.notifications.channels.email import EmailChannel, SqlContactDirectory
from notify_service.features.notifications.channels.in_app import InAppChannel
from notify_service.features.notifications.channels.webhook import WebhookChannel, sign_payload
from notify_service.features.notifications.enums import Channel, ResourceType
from notify_service.features.notifications.events import decode_payload
from notify_service.features.notifications.preferences import SqlPreferenceStore
from notify_service.features.notifications.templates import (
    TemplateRenderError,
    TemplateRenderer,
    get_template_renderer,
)
from notify_service.infra.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.channels.base import (
        EmailDelivery,
        InAppDelivery,
        WebhookDelivery,
    )
    from notify_service.features.notifications.channels.email import ContactDirectory
    from notify_service.features.notifications.events import EventPayload
    from notify_service.features.notifications.models import NotificationOutbox
    from notify_service.features.notifications.preferences import PreferenceStore
    from notify_service.infra.email import EmailTransport

logger = get_logger(__name__)


class ChannelDispatcher:
    """Decode, render and hand one outbox entry to the matching adapter.

    Returns a ``DeliveryResult`` for every expected outcome, including
    undecodable payloads, template failures, unknown channels and a missing
    webhook endpoint. ``DeliveryContractError`` from the in-app adapter is
    not caught.
    """

    def __init__(
        self,
        *,
        in_app: InAppDelivery,
        email: EmailDelivery,
        webhook: WebhookDelivery,
        preferences: PreferenceStore,
        contacts: ContactDirectory,
        renderer: TemplateRenderer | None = None,
        default_webhook_secret: str | None = None,
    ) -> None:
        self._in_app = in_app
        self._email = email
        self._webhook = webhook
        self._preferences = preferences
        self._contacts = contacts
        self._renderer = renderer or get_template_renderer()
        self._default_webhook_secret = default_webhook_secret

    async def dispatch(self, entry: NotificationOutbox) -> DeliveryResult:
        try:
            payload = decode_payload(entry.payload)
        except ValidationError as e:
            logger.error(
                "Outbox payload could not be decoded",
                extra={"outbox_id": str(entry.id), "operation": "dispatch.decode"},
            )
            return DeliveryResult.failed(f"Invalid payload: {e.error_count()} errors", "payload")

        try:
            match entry.channel:
                case Channel.IN_APP:
                    return await self._dispatch_in_app(entry, payload)
                case Channel.EMAIL:
                    return await self._dispatch_email(entry, payload)
                case Channel.WEBHOOK:
                    return await self._dispatch_webhook(entry, payload)
                case _:
                    return DeliveryResult.failed(f"Unknown channel {entry.channel!r}", "config")
        except TemplateRenderError as e:
            logger.error(
                "Notification template failed to render",
                extra={"outbox_id": str(entry.id), "error": str(e), "operation": "dispatch.render"},
            )
            return DeliveryResult.failed(str(e), "template")

    async def _dispatch_in_app(
        self, entry: NotificationOutbox, payload: EventPayload
    ) -> DeliveryResult:
        rendered = self._renderer.render_notification(entry.event_type, entry.entity_id, payload)
        return await self._in_app.deliver_in_app(
            entry.recipient_id,
            rendered.title,
            rendered.message,
            str(ResourceType.from_event_type(entry.event_type)),
            entry.entity_id,
            source_key=entry.idempotency_key,
            event_type=entry.event_type,
        )

    async def _dispatch_email(
        self, entry: NotificationOutbox, payload: EventPayload
    ) -> DeliveryResult:
        contact = await self._contacts.get_contact(entry.recipient_id)
        name = contact.greeting_name if contact else "there"
        rendered = self._renderer.render_email(
            entry.event_type, entry.entity_id, payload, name=name
        )
        return await self._email.deliver_email(
            entry.recipient_id,
            rendered.subject,
            rendered.html_body,
            rendered.text_body,
        )

    async def _dispatch_webhook(
        self, entry: NotificationOutbox, payload: EventPayload
    ) -> DeliveryResult:
        preference = await self._preferences.get_preferences(entry.recipient_id)
        if not preference.webhook_endpoint:
            return DeliveryResult.failed("No webhook URL configured", "config")

        rendered = self._renderer.render_notification(entry.event_type, entry.entity_id, payload)
        signed = sign_payload(
            {
                "id": entry.idempotency_key,
                "event_type": entry.event_type,
                "entity_id": entry.entity_id,
                "entity_version": entry.entity_version,
                "recipient_id": entry.recipient_id,
                "title": rendered.title,
                "message": rendered.message,
                "resource_type": str(ResourceType.from_event_type(entry.event_type)),
                "payload": payload.model_dump(mode="json"),
            },
            secret=preference.webhook_secret or self._default_webhook_secret,
            event_type=entry.event_type,
            event_id=entry.idempotency_key,
        )
        return await self._webhook.deliver_webhook(preference.webhook_endpoint, signed)


def build_dispatcher(
    session: AsyncSession,
    *,
    email_transport: EmailTransport | None = None,
    webhook_channel: WebhookChannel | None = None,
) -> ChannelDispatcher:
    """Dispatcher with the SQL-backed collaborators bound to ``session``."""
    contacts = SqlContactDirectory(session)
    webhook = webhook_channel or WebhookChannel()
    return ChannelDispatcher(
        in_app=InAppChannel(session),
        email=EmailChannel(contacts, email_transport),
        webhook=webhook,
        preferences=SqlPreferenceStore(session),
        contacts=contacts,
        default_webhook_secret=webhook.default_secret,
    )


__all__ = ["ChannelDispatcher", "build_dispatcher"]
