"""Pydantic schemas for preference updates and outbox read models."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, HttpUrl

from notify_service.features.notifications.enums import Channel, EventType, OutboxStatus


class PreferenceUpdate(BaseModel):
    """Partial update of a recipient's preferences.

    Only fields that were explicitly set are applied. In ``event_overrides``
    a ``None`` value removes the override for that event type.
    """

    model_config = ConfigDict(extra="forbid")

    email_enabled: bool | None = None
    in_app_enabled: bool | None = None
    webhook_enabled: bool | None = None
    webhook_url: HttpUrl | None = None
    webhook_secret: str | None = Field(default=None, max_length=255)
    event_overrides: dict[EventType, list[Channel] | None] | None = None


class OutboxEntryRead(BaseModel):
    """Outbox entry as shown to operators."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    event_type: str
    entity_id: str
    entity_version: int
    channel: str
    recipient_id: str
    status: OutboxStatus
    attempts: int
    max_attempts: int
    next_attempt_at: datetime
    last_attempt_at: datetime | None = None
    claimed_by: str | None = None
    last_error: str | None = None
    delivered_at: datetime | None = None
    created_at: datetime


class OutboxStats(BaseModel):
    """Entry counts per status plus exhausted FAILED entries."""

    pending: int = 0
    processing: int = 0
    delivered: int = 0
    failed: int = 0
    exhausted: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.processing + self.delivered + self.failed


__all__ = ["OutboxEntryRead", "OutboxStats", "PreferenceUpdate"]
