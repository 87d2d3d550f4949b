"""In-app channel: the inbox row itself is the delivery."""

from __future__ import annotations

import time
from typing import TYPE_CHECKING

from notify_service.features.notifications.channels.base import DeliveryResult
from notify_service.features.notifications.exceptions import DeliveryContractError
from notify_service.features.notifications.repository import (
    NotificationRepository,
    get_notification_repository,
)
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

_lazy = get_lazy_logger(__name__)


class InAppChannel:
    """Create ``notifications`` rows in the worker's session.

    Infrastructure errors propagate; a call without the required fields is a
    programming error and raises ``DeliveryContractError``.
    """

    def __init__(
        self,
        session: AsyncSession,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._session = session
        self._repository = repository or get_notification_repository()

    async def deliver_in_app(
        self,
        recipient_id: str,
        title: str,
        message: str,
        resource_type: str | None,
        resource_id: str | None,
        *,
        source_key: str | None = None,
        event_type: str | None = None,
    ) -> DeliveryResult:
        missing = [
            name
            for name, value in (
                ("recipient_id", recipient_id),
                ("title", title),
                ("message", message),
            )
            if not value
        ]
        if missing:
            msg = "In-app delivery invoked without required fields"
            raise DeliveryContractError(msg, {"missing": missing, "source_key": source_key})

        start_time = time.time()
        notification = await self._repository.create_once(
            self._session,
            user_id=recipient_id,
            type=event_type or resource_type or "notification",
            title=title,
            message=message,
            resource_type=resource_type,
            resource_id=resource_id,
            source_key=source_key,
        )
        elapsed_ms = int((time.time() - start_time) * 1000)

        _lazy.debug(lambda: f"in_app.deliver: notification {notification.id} for {recipient_id}")
        return DeliveryResult.ok(
            response_time_ms=elapsed_ms,
            metadata={"notification_id": str(notification.id)},
        )


__all__ = ["InAppChannel"]
