"""Outbox writer: persist (recipient, channel) decisions as deduplicated entries."""

from __future__ import annotations

import hashlib
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError

from notify_service.core.database import generate_uuid7, utcnow
from notify_service.features.notifications.enums import OutboxStatus
from notify_service.features.notifications.exceptions import OutboxWriteError
from notify_service.features.notifications.metrics import (
    outbox_duplicates_skipped_total,
    outbox_entries_created_total,
)
from notify_service.features.notifications.repository import (
    OutboxRepository,
    get_outbox_repository,
)
from notify_service.infra.logging import get_lazy_logger, get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.enums import Channel
    from notify_service.features.notifications.events import NotificationEvent

logger = get_logger(__name__)
_lazy = get_lazy_logger(__name__)


def build_idempotency_key(
    event_type: str,
    entity_id: str,
    entity_version: int,
    recipient_id: str,
    channel: str,
) -> str:
    """Deterministic key for one logical notification.

    SHA-256 over the length-prefixed parts, so ids containing separators
    cannot collide with each other.

    Example:
        >>> len(build_idempotency_key("ticket.created", "t1", 1, "u1", "email"))
        64
    """
    parts = (str(event_type), entity_id, str(entity_version), recipient_id, str(channel))
    material = "".join(f"{len(part)}:{part}" for part in parts)
    return hashlib.sha256(material.encode("utf-8")).hexdigest()


class OutboxWriter:
    """Create outbox entries for an event inside the caller's transaction.

    Duplicates are skipped, never raised: within the call, against keys
    already stored, and at insert time through ``ON CONFLICT DO NOTHING`` for
    a concurrent writer racing on the same key. The writer flushes but does
    not commit.
    """

    def __init__(
        self,
        session: AsyncSession,
        *,
        max_attempts: int = 3,
        repository: OutboxRepository | None = None,
    ) -> None:
        self._session = session
        self._max_attempts = max_attempts
        self._repository = repository or get_outbox_repository()

    async def create_entries(
        self,
        event: NotificationEvent,
        pairs: Iterable[tuple[str, Channel]],
    ) -> int:
        """Persist one PENDING entry per new (recipient, channel) pair.

        Returns:
            Number of entries actually created.

        Raises:
            OutboxWriteError: If the store rejected the write.
        """
        keyed: dict[str, tuple[str, Channel]] = {}
        for recipient_id, channel in pairs:
            key = build_idempotency_key(
                event.type, event.entity_id, event.entity_version, recipient_id, channel
            )
            keyed.setdefault(key, (recipient_id, channel))

        if not keyed:
            return 0

        try:
            existing = await self._repository.existing_keys(self._session, keyed)
            for key in existing:
                _lazy.debug(lambda k=key: f"outbox.write: duplicate key skipped {k}")

            now = utcnow()
            payload = event.serialize_payload()
            rows: list[dict[str, Any]] = [
                {
                    "id": generate_uuid7(),
                    "event_type": event.type,
                    "entity_id": event.entity_id,
                    "entity_version": event.entity_version,
                    "idempotency_key": key,
                    "channel": str(channel),
                    "recipient_id": recipient_id,
                    "payload": payload,
                    "status": str(OutboxStatus.PENDING),
                    "attempts": 0,
                    "max_attempts": self._max_attempts,
                    "next_attempt_at": now,
                    "created_at": now,
                    "updated_at": now,
                }
                for key, (recipient_id, channel) in keyed.items()
                if key not in existing
            ]
            inserted = set(await self._repository.insert_entries(self._session, rows))
            await self._session.flush()
        except SQLAlchemyError as e:
            logger.exception(
                "Failed to write outbox entries",
                extra={
                    "event_type": event.type,
                    "entity_id": event.entity_id,
                    "operation": "outbox.write",
                },
            )
            msg = "Could not record notification intent"
            raise OutboxWriteError(
                msg, {"event_type": event.type, "entity_id": event.entity_id, "error": str(e)}
            ) from e

        for row in rows:
            if row["idempotency_key"] in inserted:
                outbox_entries_created_total.labels(
                    event_type=event.type, channel=row["channel"]
                ).inc()

        skipped = len(keyed) - len(inserted)
        if skipped:
            outbox_duplicates_skipped_total.labels(event_type=event.type).inc(skipped)

        logger.debug(
            "Outbox entries written",
            extra={
                "event_type": event.type,
                "entity_id": event.entity_id,
                "entity_version": event.entity_version,
                "created": len(inserted),
                "skipped": skipped,
                "operation": "outbox.write",
            },
        )
        return len(inserted)


__all__ = ["OutboxWriter", "build_idempotency_key"]
