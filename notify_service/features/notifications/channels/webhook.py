"""Webhook channel: HMAC-signed JSON POSTs to recipient endpoints."""

from __future__ import annotations

import hashlib
import hmac
import json
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from notify_service.features.notifications.channels.base import DeliveryResult
from notify_service.infra.logging import get_lazy_logger, get_logger

if TYPE_CHECKING:
    from notify_service.core.settings import WebhookSettings

logger = get_logger(__name__)
lazy_logger = get_lazy_logger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
EVENT_TYPE_HEADER = "X-Webhook-Event-Type"
EVENT_ID_HEADER = "X-Webhook-Event-ID"


@dataclass(frozen=True, slots=True)
class SignedPayload:
    """A serialized webhook body and its signature headers.

    Attributes:
        body: JSON text posted as the request body
        timestamp: UTC timestamp included in the signed message
        signature: ``sha256=<hex>`` over ``"{timestamp}.{body}"``, None when unsigned
        event_type: Event type tag
        event_id: Outbox idempotency key, stable across retries
    """

    body: str
    timestamp: str
    signature: str | None
    event_type: str
    event_id: str

    def headers(self, user_agent: str) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": user_agent,
            TIMESTAMP_HEADER: self.timestamp,
            EVENT_TYPE_HEADER: self.event_type,
            EVENT_ID_HEADER: self.event_id,
        }
        if self.signature:
            headers[SIGNATURE_HEADER] = self.signature
        return headers


def compute_signature(secret: str, timestamp: str, body: str) -> str:
    """Hex HMAC-SHA256 of ``"{timestamp}.{body}"``."""
    message = f"{timestamp}.{body}"
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


def verify_signature(secret: str, timestamp: str, body: str, header_value: str) -> bool:
    """Check an ``X-Webhook-Signature`` value the way a receiver would."""
    expected = f"sha256={compute_signature(secret, timestamp, body)}"
    return hmac.compare_digest(expected, header_value)


def sign_payload(
    data: dict[str, Any],
    *,
    secret: str | None,
    event_type: str,
    event_id: str,
    timestamp: str | None = None,
) -> SignedPayload:
    """Serialize ``data`` compactly and sign it when a secret is available."""
    body = json.dumps(data, separators=(",", ":"), sort_keys=True, default=str)
    ts = timestamp or time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    signature = f"sha256={compute_signature(secret, ts, body)}" if secret else None
    return SignedPayload(
        body=body,
        timestamp=ts,
        signature=signature,
        event_type=event_type,
        event_id=event_id,
    )


class WebhookChannel:
    """Deliver signed payloads with httpx.

    Any 2xx response is success. Timeouts, connection errors and non-2xx
    responses become failed results.
    """

    def __init__(
        self,
        settings: WebhookSettings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if settings is None:
            from notify_service.core.settings import get_webhook_settings

            settings = get_webhook_settings()
        self._settings = settings
        self._transport = transport

    @property
    def default_secret(self) -> str | None:
        return self._settings.signing_secret.get_secret_value() or None

    def _client(self) -> httpx.AsyncClient:
        timeout = httpx.Timeout(
            self._settings.timeout_seconds,
            connect=self._settings.connect_timeout_seconds,
        )
        return httpx.AsyncClient(timeout=timeout, transport=self._transport)

    async def deliver_webhook(self, endpoint: str, signed_payload: SignedPayload) -> DeliveryResult:
        if not endpoint:
            return DeliveryResult.failed("No webhook URL configured", "config")

        start_time = time.time()
        lazy_logger.debug(
            lambda: f"webhook.deliver: event_id={signed_payload.event_id}, url={endpoint}"
        )
        log_extra = {
            "event_type": signed_payload.event_type,
            "event_id": signed_payload.event_id,
            "operation": "webhook.deliver",
        }

        try:
            async with self._client() as client:
                response = await client.post(
                    endpoint,
                    content=signed_payload.body,
                    headers=signed_payload.headers(self._settings.user_agent),
                )
        except (httpx.InvalidURL, httpx.UnsupportedProtocol) as e:
            logger.warning(
                "Webhook endpoint is not a valid URL", extra={**log_extra, "error": str(e)}
            )
            return DeliveryResult.failed(f"Invalid webhook URL: {e}", "config")
        except httpx.TimeoutException:
            logger.warning("Webhook delivery timeout", extra=log_extra)
            return DeliveryResult.failed(
                f"Request timeout after {self._settings.timeout_seconds}s",
                "timeout",
                response_time_ms=_elapsed_ms(start_time),
            )
        except httpx.RequestError as e:
            logger.warning(
                "Webhook delivery request error", extra={**log_extra, "error": str(e)}
            )
            return DeliveryResult.failed(
                f"Request error: {e}",
                "network",
                response_time_ms=_elapsed_ms(start_time),
            )

        response_time_ms = _elapsed_ms(start_time)
        success = 200 <= response.status_code < 300
        limit = self._settings.max_response_body_chars
        response_body = response.text[:limit] if response.text else None

        if success:
            logger.info(
                "Webhook delivered successfully",
                extra={**log_extra, "status_code": response.status_code},
            )
            return DeliveryResult.ok(
                status_code=response.status_code,
                response_body=response_body,
                response_time_ms=response_time_ms,
            )

        logger.warning(
            "Webhook delivery failed with non-2xx status",
            extra={**log_extra, "status_code": response.status_code},
        )
        return DeliveryResult.failed(
            f"HTTP {response.status_code}",
            "http",
            status_code=response.status_code,
            response_body=response_body,
            response_time_ms=response_time_ms,
        )


def _elapsed_ms(start: float) -> int:
    return int((time.time() - start) * 1000)


__all__ = [
    "SignedPayload",
    "WebhookChannel",
    "compute_signature",
    "sign_payload",
    "verify_signature",
]
