"""Recipient preferences: value object, store contract and SQL store."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from notify_service.core.database import BaseRepository
from notify_service.features.notifications.enums import CHANNEL_ORDER, Channel, EventType
from notify_service.features.notifications.models import NotificationPreference
from notify_service.infra.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.schemas import PreferenceUpdate

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RecipientPreference:
    """Channel preferences of one recipient.

    A default-constructed value means "all defaults": email and in-app on,
    webhook off, no overrides.
    """

    recipient_id: str
    email_enabled: bool = True
    in_app_enabled: bool = True
    webhook_enabled: bool = False
    webhook_endpoint: str | None = None
    webhook_secret: str | None = None
    overrides: Mapping[EventType, tuple[Channel, ...]] = field(
        default_factory=lambda: MappingProxyType({})
    )

    @property
    def has_webhook(self) -> bool:
        """Webhook delivery is both enabled and addressable."""
        return self.webhook_enabled and bool(self.webhook_endpoint)

    def override_for(self, event_type: EventType) -> tuple[Channel, ...] | None:
        return self.overrides.get(event_type)


@runtime_checkable
class PreferenceStore(Protocol):
    """Preference query/update contract."""

    async def get_preferences(self, recipient_id: str) -> RecipientPreference:
        """Never returns None; absent recipients get a default value."""
        ...

    async def update_preferences(
        self, recipient_id: str, partial: PreferenceUpdate
    ) -> RecipientPreference: ...


def _decode_overrides(raw: Mapping[str, Any] | None) -> Mapping[EventType, tuple[Channel, ...]]:
    overrides: dict[EventType, tuple[Channel, ...]] = {}
    for key, channels in (raw or {}).items():
        event_type = EventType.parse(key)
        if event_type is None:
            logger.warning(
                "Ignoring preference override for unknown event type",
                extra={"event_type": key, "operation": "preferences.decode"},
            )
            continue
        valid: set[Channel] = set()
        for value in channels or []:
            try:
                valid.add(Channel(value))
            except ValueError:
                logger.warning(
                    "Ignoring unknown channel in preference override",
                    extra={"event_type": key, "channel": value, "operation": "preferences.decode"},
                )
        overrides[event_type] = tuple(c for c in CHANNEL_ORDER if c in valid)
    return MappingProxyType(overrides)


def to_preference(row: NotificationPreference) -> RecipientPreference:
    """Convert a stored row into the immutable value object."""
    return RecipientPreference(
        recipient_id=row.recipient_id,
        email_enabled=row.email_enabled,
        in_app_enabled=row.in_app_enabled,
        webhook_enabled=row.webhook_enabled,
        webhook_endpoint=row.webhook_url,
        webhook_secret=row.webhook_secret,
        overrides=_decode_overrides(row.event_overrides),
    )


class SqlPreferenceStore(BaseRepository[NotificationPreference]):
    """PreferenceStore backed by the ``notification_preferences`` table.

    Reads never insert; the row is created by the first update.
    """

    def __init__(self, session: AsyncSession) -> None:
        super().__init__(NotificationPreference)
        self._session = session

    async def _row(self, recipient_id: str) -> NotificationPreference | None:
        return await self.get_by(self._session, NotificationPreference.recipient_id, recipient_id)

    async def get_preferences(self, recipient_id: str) -> RecipientPreference:
        row = await self._row(recipient_id)
        if row is None:
            return RecipientPreference(recipient_id=recipient_id)
        return to_preference(row)

    async def update_preferences(
        self, recipient_id: str, partial: PreferenceUpdate
    ) -> RecipientPreference:
        row = await self._row(recipient_id)
        if row is None:
            row = NotificationPreference(
                recipient_id=recipient_id,
                email_enabled=True,
                in_app_enabled=True,
                webhook_enabled=False,
                event_overrides={},
            )
            self._session.add(row)

        changes = partial.model_dump(exclude_unset=True, mode="json")
        overrides = changes.pop("event_overrides", None)
        for name, value in changes.items():
            setattr(row, name, value)

        if overrides is not None:
            merged = dict(row.event_overrides or {})
            for event_type, channels in overrides.items():
                if channels is None:
                    merged.pop(event_type, None)
                else:
                    merged[event_type] = channels
            row.event_overrides = merged

        await self._session.flush()
        logger.info(
            "Recipient preferences updated",
            extra={
                "recipient_id": recipient_id,
                "fields": sorted(partial.model_fields_set),
                "operation": "preferences.update",
            },
        )
        return to_preference(row)


__all__ = [
    "PreferenceStore",
    "RecipientPreference",
    "SqlPreferenceStore",
    "to_preference",
]
