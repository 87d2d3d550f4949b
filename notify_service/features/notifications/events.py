"""Notification events and their payload variants.

Business modules build a ``NotificationEvent`` with one of the payload
variants below. The payload is serialized into the outbox as JSON text and
only decoded back into its variant by the channel adapters via
``decode_payload``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class _PayloadBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class TicketPayload(_PayloadBase):
    """Maintenance ticket details."""

    kind: Literal["ticket"] = "ticket"
    title: str | None = None
    description: str | None = None
    priority: str | None = None
    status: str | None = None
    property_address: str | None = None


class QuotePayload(_PayloadBase):
    """Contractor quote details."""

    kind: Literal["quote"] = "quote"
    ticket_id: str | None = None
    amount_minor: int | None = Field(default=None, description="Quote amount in minor units")
    currency: str | None = None
    contractor_name: str | None = None
    reason: str | None = None


class AppointmentPayload(_PayloadBase):
    """Appointment scheduling details."""

    kind: Literal["appointment"] = "appointment"
    ticket_id: str | None = None
    start_at: datetime | None = None
    end_at: datetime | None = None
    notes: str | None = None


class GenericPayload(_PayloadBase):
    """Free-form data for event types without a dedicated variant."""

    kind: Literal["generic"] = "generic"
    data: dict[str, Any] = Field(default_factory=dict)


EventPayload = Annotated[
    TicketPayload | QuotePayload | AppointmentPayload | GenericPayload,
    Field(discriminator="kind"),
]

_payload_adapter: TypeAdapter[EventPayload] = TypeAdapter(EventPayload)


class NotificationEvent(BaseModel):
    """A domain occurrence that may produce notifications.

    Attributes:
        type: Event type tag, e.g. ``"ticket.created"``
        entity_id: Id of the entity the event is about
        entity_version: Monotonic version of that entity, defaults to 1
        actor_id: User who caused the event, if any
        landlord_id: Landlord organisation (LANDLORD and OPS resolution)
        tenant_id: Tenant organisation (TENANT resolution)
        contractor_id: Contractor user (CONTRACTOR resolution)
        payload: Event-specific data forwarded to the channel adapters
    """

    model_config = ConfigDict(frozen=True)

    type: str = Field(min_length=1, max_length=100)
    entity_id: str = Field(min_length=1, max_length=100)
    entity_version: int = Field(default=1, ge=1)
    actor_id: str | None = None
    landlord_id: str | None = None
    tenant_id: str | None = None
    contractor_id: str | None = None
    payload: EventPayload = Field(default_factory=GenericPayload)

    def serialize_payload(self) -> str:
        """JSON text stored on each outbox entry."""
        return _payload_adapter.dump_json(self.payload).decode()


def decode_payload(raw: str | None) -> TicketPayload | QuotePayload | AppointmentPayload | GenericPayload:
    """Decode an outbox payload blob back into its variant.

    Empty blobs decode to an empty ``GenericPayload``.
    """
    if not raw:
        return GenericPayload()
    return _payload_adapter.validate_json(raw)


__all__ = [
    "AppointmentPayload",
    "EventPayload",
    "GenericPayload",
    "NotificationEvent",
    "QuotePayload",
    "TicketPayload",
    "decode_payload",
]
