"""Enumerations for the notifications feature."""

from __future__ import annotations

from enum import StrEnum


class Channel(StrEnum):
    """Delivery channels.

    Declaration order is the canonical channel order used when a selection
    is turned into a list.
    """

    IN_APP = "in-app"
    EMAIL = "email"
    WEBHOOK = "webhook"


class Role(StrEnum):
    """Recipient roles a routing rule may target."""

    LANDLORD = "LANDLORD"
    TENANT = "TENANT"
    CONTRACTOR = "CONTRACTOR"
    OPS = "OPS"


class MemberRole(StrEnum):
    """Roles stored on organisation memberships."""

    ADMIN = "ADMIN"
    LANDLORD = "LANDLORD"
    TENANT = "TENANT"
    CONTRACTOR = "CONTRACTOR"
    OPS = "OPS"


class OutboxStatus(StrEnum):
    """Outbox entry lifecycle states."""

    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


class EventType(StrEnum):
    """Event types with built-in notification behavior.

    Events may carry any type string; only these can appear as keys in the
    routing table and in per-recipient overrides.
    """

    TICKET_CREATED = "ticket.created"
    TICKET_ASSIGNED = "ticket.assigned"
    TICKET_IN_PROGRESS = "ticket.in_progress"
    TICKET_COMPLETED = "ticket.completed"
    TICKET_CLOSED = "ticket.closed"
    TICKET_CANCELLED = "ticket.cancelled"
    QUOTE_SUBMITTED = "quote.submitted"
    QUOTE_APPROVED = "quote.approved"
    QUOTE_REJECTED = "quote.rejected"
    APPOINTMENT_PROPOSED = "appointment.proposed"
    APPOINTMENT_CONFIRMED = "appointment.confirmed"

    @classmethod
    def parse(cls, value: str) -> EventType | None:
        """Return the member for ``value`` or None when the type is unknown."""
        try:
            return cls(value)
        except ValueError:
            return None


class ResourceType(StrEnum):
    """Resource an in-app notification links to."""

    TICKET = "ticket"
    QUOTE = "quote"
    APPOINTMENT = "appointment"
    UNKNOWN = "unknown"

    @classmethod
    def from_event_type(cls, event_type: str) -> ResourceType:
        prefix = event_type.split(".", 1)[0]
        try:
            return cls(prefix)
        except ValueError:
            return cls.UNKNOWN


CHANNEL_ORDER: tuple[Channel, ...] = tuple(Channel)

__all__ = [
    "CHANNEL_ORDER",
    "Channel",
    "EventType",
    "MemberRole",
    "OutboxStatus",
    "ResourceType",
    "Role",
]
