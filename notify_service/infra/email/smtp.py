"""SMTP email transport using aiosmtplib.

Supports STARTTLS (port 587), implicit TLS (port 465) and plain SMTP, with
optional LOGIN/PLAIN authentication.
"""

from __future__ import annotations

import logging
import time
from email.message import EmailMessage as MIMEEmailMessage
from email.utils import formataddr, make_msgid
from typing import TYPE_CHECKING

import aiosmtplib

from .base import EmailDeliveryResult

if TYPE_CHECKING:
    from notify_service.core.settings import EmailSettings

    from .base import EmailMessage

logger = logging.getLogger(__name__)


class SMTPTransport:
    """Deliver rendered emails through an SMTP relay.

    Example:
        transport = SMTPTransport(get_email_settings())
        result = await transport.send(message)
    """

    def __init__(self, settings: EmailSettings) -> None:
        if not settings.smtp_host:
            msg = "SMTP host is required for the SMTP transport"
            raise ValueError(msg)

        self._settings = settings
        self._host = settings.smtp_host
        self._port = settings.smtp_port

        logger.info(
            "SMTP transport initialized",
            extra={
                "host": self._host,
                "port": self._port,
                "use_tls": settings.use_tls,
                "use_ssl": settings.use_ssl,
            },
        )

    @property
    def provider_name(self) -> str:
        return "smtp"

    def _build_mime_message(self, message: EmailMessage) -> MIMEEmailMessage:
        mime = MIMEEmailMessage()
        mime["From"] = self._settings.sender
        mime["To"] = formataddr((message.to_name, message.to)) if message.to_name else message.to
        mime["Subject"] = message.subject
        mime["Message-ID"] = make_msgid(domain=self._settings.from_email.rpartition("@")[2] or None)
        for name, value in message.headers.items():
            mime[name] = value

        mime.set_content(message.text_body)
        mime.add_alternative(message.html_body, subtype="html")
        return mime

    async def send(self, message: EmailMessage) -> EmailDeliveryResult:
        """Send one message; SMTP and socket errors become failure results."""
        start = time.perf_counter()
        mime = self._build_mime_message(message)
        message_id = mime["Message-ID"]

        password = self._settings.smtp_password
        try:
            errors, _response = await aiosmtplib.send(
                mime,
                hostname=self._host,
                port=self._port,
                username=self._settings.smtp_username,
                password=password.get_secret_value() if password else None,
                use_tls=self._settings.use_ssl,
                start_tls=self._settings.use_tls,
                timeout=self._settings.timeout,
            )
        except aiosmtplib.SMTPAuthenticationError as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP authentication failed: {e}",
                error_code="auth_failed",
                duration_ms=_elapsed_ms(start),
            )
        except aiosmtplib.SMTPRecipientsRefused as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Recipient refused: {e}",
                error_code="recipient_refused",
                duration_ms=_elapsed_ms(start),
            )
        except aiosmtplib.SMTPException as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"SMTP error: {e}",
                error_code="smtp_error",
                duration_ms=_elapsed_ms(start),
            )
        except (OSError, TimeoutError) as e:
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Connection error: {e}",
                error_code="connection_error",
                duration_ms=_elapsed_ms(start),
            )

        if errors:
            logger.warning(
                "SMTP recipient rejected",
                extra={"message_id": message_id, "errors": {k: str(v) for k, v in errors.items()}},
            )
            return EmailDeliveryResult.failure_result(
                provider=self.provider_name,
                error=f"Recipient rejected: {', '.join(errors)}",
                error_code="recipient_refused",
                duration_ms=_elapsed_ms(start),
            )

        return EmailDeliveryResult.success_result(
            message_id=message_id,
            provider=self.provider_name,
            duration_ms=_elapsed_ms(start),
            metadata={"host": self._host, "port": self._port},
        )


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


__all__ = ["SMTPTransport"]
