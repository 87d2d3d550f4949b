"""Channel adapter contracts and delivery result type."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from notify_service.features.notifications.channels.webhook import SignedPayload


@dataclass
class DeliveryResult:
    """Result of a channel delivery attempt.

    Attributes:
        success: Whether delivery succeeded
        status_code: HTTP status code (webhook) or None
        response_body: Response body/message
        response_time_ms: Time taken for delivery in milliseconds
        error_message: Error description if failed
        error_category: Error classification (network, timeout, http, config, ...)
        metadata: Channel-specific metadata
    """

    success: bool
    status_code: int | None = None
    response_body: str | None = None
    response_time_ms: int | None = None
    error_message: str | None = None
    error_category: str | None = None
    metadata: dict[str, str | int | bool] | None = None

    @classmethod
    def ok(cls, **kwargs: object) -> DeliveryResult:
        return cls(success=True, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def failed(cls, error_message: str, error_category: str, **kwargs: object) -> DeliveryResult:
        return cls(
            success=False,
            error_message=error_message,
            error_category=error_category,
            **kwargs,  # type: ignore[arg-type]
        )


@runtime_checkable
class InAppDelivery(Protocol):
    """Creates in-app inbox rows."""

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
        """Create the inbox row.

        Raises:
            DeliveryContractError: If a required field is missing
        """
        ...


@runtime_checkable
class EmailDelivery(Protocol):
    """Sends rendered emails to a recipient."""

    async def deliver_email(
        self,
        recipient_id: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> DeliveryResult: ...


@runtime_checkable
class WebhookDelivery(Protocol):
    """Posts signed payloads to recipient endpoints."""

    async def deliver_webhook(self, endpoint: str, signed_payload: SignedPayload) -> DeliveryResult: ...


__all__ = ["DeliveryResult", "EmailDelivery", "InAppDelivery", "WebhookDelivery"]
