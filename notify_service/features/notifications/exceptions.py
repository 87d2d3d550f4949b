"""Exceptions raised by the notifications feature.

Expected conditions (unknown event type, nobody to notify, duplicate outbox
key, transport failures) are not exceptions; these cover configuration
mistakes, failures of the durable write itself and programming errors.
"""

from __future__ import annotations

from typing import Any


class NotificationError(Exception):
    """Base exception for the notifications feature."""

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class RoutingConfigError(NotificationError):
    """The routing table file could not be loaded or validated."""


class OutboxWriteError(NotificationError):
    """Notification intent could not be recorded in the outbox."""


class DeliveryContractError(NotificationError):
    """A channel adapter was invoked with arguments that violate its contract.

    Indicates a bug rather than an environment condition, so it is never
    converted into an ordinary delivery failure result.
    """


__all__ = [
    "DeliveryContractError",
    "NotificationError",
    "OutboxWriteError",
    "RoutingConfigError",
]
