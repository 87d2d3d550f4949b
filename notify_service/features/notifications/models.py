"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import Boolean, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from notify_service.core.database import (
    Base,
    JSONType,
    TimestampMixin,
    UTCDateTime,
    UUIDv7PKMixin,
    utcnow,
)
from notify_service.features.notifications.enums import OutboxStatus


class NotificationOutbox(Base, UUIDv7PKMixin, TimestampMixin):
    """Durable notification work item: one (recipient, channel) delivery.

    Rows are created by the outbox writer inside the producing transaction
    and mutated only by the delivery worker. ``idempotency_key`` is unique,
    so routing the same event twice never creates a second row.

    Attributes:
        event_type: Event type tag (e.g. "ticket.created")
        entity_id: Entity the event is about
        entity_version: Entity version the notification was decided for
        idempotency_key: Deterministic key over event, entity, version, recipient, channel
        channel: Delivery channel (in-app, email, webhook)
        recipient_id: User to notify
        payload: JSON text of the event payload variant
        status: PENDING, PROCESSING, DELIVERED or FAILED
        attempts: Delivery attempts so far
        max_attempts: Attempts allowed before the entry is left FAILED
        next_attempt_at: Earliest time the entry may be claimed again
        last_attempt_at: When the latest claim happened (lease start)
        claimed_by: Worker id of the latest claim
        last_error: Error of the latest failed attempt
        delivered_at: When delivery succeeded
    """

    __tablename__ = "notification_outbox"

    event_type: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Event type identifier",
    )
    entity_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Entity the event is about",
    )
    entity_version: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=1,
        comment="Entity version",
    )
    idempotency_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Deduplication key, unique per logical notification",
    )
    channel: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        comment="Delivery channel",
    )
    recipient_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        index=True,
        comment="Recipient user id",
    )
    payload: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="{}",
        comment="JSON-serialized event payload",
    )

    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=OutboxStatus.PENDING,
        comment="PENDING, PROCESSING, DELIVERED, FAILED",
    )
    attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        comment="Delivery attempts so far",
    )
    max_attempts: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=3,
        comment="Attempts allowed before the entry is terminal",
    )
    next_attempt_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        default=utcnow,
        comment="Earliest time of the next attempt",
    )
    last_attempt_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="Start of the latest attempt",
    )
    claimed_by: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Worker that made the latest claim",
    )
    last_error: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
        comment="Error of the latest failed attempt",
    )
    delivered_at: Mapped[datetime | None] = mapped_column(
        UTCDateTime(),
        nullable=True,
        comment="When delivery succeeded",
    )

    __table_args__ = (
        UniqueConstraint("idempotency_key", name="uq_notification_outbox_idempotency_key"),
        # Worker selection: due entries by status, oldest first
        Index("ix_notification_outbox_due", "status", "next_attempt_at"),
        Index("ix_notification_outbox_entity", "event_type", "entity_id"),
    )

    @property
    def is_exhausted(self) -> bool:
        return self.status == OutboxStatus.FAILED and self.attempts >= self.max_attempts

    def __repr__(self) -> str:
        return (
            f"NotificationOutbox(id={self.id}, event_type={self.event_type!r}, "
            f"channel={self.channel!r}, recipient_id={self.recipient_id!r}, "
            f"status={self.status}, attempts={self.attempts}/{self.max_attempts})"
        )


class NotificationPreference(Base, UUIDv7PKMixin, TimestampMixin):
    """Per-recipient channel preferences.

    ``event_overrides`` maps an event type to the explicit channel list that
    replaces the routing default for that event type.
    """

    __tablename__ = "notification_preferences"

    recipient_id: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        comment="Recipient user id",
    )
    email_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    in_app_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    webhook_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    webhook_url: Mapped[str | None] = mapped_column(
        String(2048),
        nullable=True,
        comment="Recipient webhook endpoint",
    )
    webhook_secret: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="HMAC secret for this recipient's webhook",
    )
    event_overrides: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Event type -> explicit channel list",
    )

    __table_args__ = (
        UniqueConstraint("recipient_id", name="uq_notification_preferences_recipient_id"),
    )

    def __repr__(self) -> str:
        return f"NotificationPreference(recipient_id={self.recipient_id!r})"


class Notification(Base, UUIDv7PKMixin, TimestampMixin):
    """In-app inbox row created by the in-app channel adapter.

    ``source_key`` carries the outbox idempotency key so a redelivered
    outbox entry finds its existing row instead of creating another.
    """

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(String(100), nullable=False, comment="Inbox owner")
    type: Mapped[str] = mapped_column(String(100), nullable=False, comment="Event type")
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    resource_type: Mapped[str | None] = mapped_column(String(50), nullable=True)
    resource_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    source_key: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Outbox idempotency key that produced this row",
    )
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    __table_args__ = (
        UniqueConstraint("source_key", name="uq_notifications_source_key"),
        Index("ix_notifications_user_unread", "user_id", "is_read", "created_at"),
    )

    def __repr__(self) -> str:
        return f"Notification(id={self.id}, user_id={self.user_id!r}, type={self.type!r})"


class OrgMember(Base, UUIDv7PKMixin, TimestampMixin):
    """Membership of a user in an organisation with a role."""

    __tablename__ = "org_members"

    org_id: Mapped[str] = mapped_column(String(100), nullable=False)
    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    role: Mapped[str] = mapped_column(String(20), nullable=False)

    __table_args__ = (
        UniqueConstraint("org_id", "user_id", name="uq_org_members_org_id_user_id"),
        Index("ix_org_members_org_role", "org_id", "role"),
        Index("ix_org_members_role", "role"),
    )


class UserContact(Base, UUIDv7PKMixin, TimestampMixin):
    """Contact details used by the email channel."""

    __tablename__ = "user_contacts"

    user_id: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)

    __table_args__ = (UniqueConstraint("user_id", name="uq_user_contacts_user_id"),)


__all__ = [
    "Notification",
    "NotificationOutbox",
    "NotificationPreference",
    "OrgMember",
    "UserContact",
]
