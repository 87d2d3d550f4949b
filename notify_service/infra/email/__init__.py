"""Email transports (SMTP, console)."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import EmailDeliveryResult, EmailMessage, EmailTransport
from .console import ConsoleTransport
from .smtp import SMTPTransport

if TYPE_CHECKING:
    from notify_service.core.settings import EmailSettings


def get_email_transport(settings: EmailSettings | None = None) -> EmailTransport:
    """Build the transport selected by EmailSettings."""
    if settings is None:
        from notify_service.core.settings import get_email_settings

        settings = get_email_settings()

    if settings.resolved_backend == "smtp":
        return SMTPTransport(settings)
    return ConsoleTransport()


__all__ = [
    "ConsoleTransport",
    "EmailDeliveryResult",
    "EmailMessage",
    "EmailTransport",
    "SMTPTransport",
    "get_email_transport",
]
