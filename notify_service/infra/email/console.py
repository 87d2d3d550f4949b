"""Console email transport for development.

Logs the rendered message instead of sending it and always succeeds, so the
delivery worker can run end to end without an SMTP relay.
"""

from __future__ import annotations

import logging
import uuid
from typing import TYPE_CHECKING

from .base import EmailDeliveryResult

if TYPE_CHECKING:
    from .base import EmailMessage

logger = logging.getLogger(__name__)


class ConsoleTransport:
    """Log emails to the console."""

    def __init__(self) -> None:
        logger.info("Console email transport initialized (no SMTP host configured)")

    @property
    def provider_name(self) -> str:
        return "console"

    async def send(self, message: EmailMessage) -> EmailDeliveryResult:
        message_id = f"console-{uuid.uuid4()}"
        logger.info(
            "Email (console transport)",
            extra={
                "message_id": message_id,
                "to": message.to,
                "subject": message.subject,
                "text_body": message.text_body,
            },
        )
        return EmailDeliveryResult.success_result(
            message_id=message_id,
            provider=self.provider_name,
            duration_ms=0,
        )


__all__ = ["ConsoleTransport"]
