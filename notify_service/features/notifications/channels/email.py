"""Email channel: resolve the recipient's address and send via the transport."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from sqlalchemy import select

from notify_service.features.notifications.channels.base import DeliveryResult
from notify_service.features.notifications.models import UserContact
from notify_service.infra.email import EmailMessage, get_email_transport
from notify_service.infra.logging import get_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.infra.email import EmailTransport

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Contact:
    user_id: str
    email: str | None
    display_name: str | None = None

    @property
    def greeting_name(self) -> str:
        return self.display_name or "there"


@runtime_checkable
class ContactDirectory(Protocol):
    """Lookup of recipient contact details."""

    async def get_contact(self, user_id: str) -> Contact | None: ...


class SqlContactDirectory:
    """ContactDirectory over the ``user_contacts`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_contact(self, user_id: str) -> Contact | None:
        result = await self._session.execute(
            select(UserContact).where(UserContact.user_id == user_id)
        )
        row = result.scalar_one_or_none()
        if row is None:
            return None
        return Contact(user_id=row.user_id, email=row.email, display_name=row.display_name)


class EmailChannel:
    """Send notification emails through an ``EmailTransport``.

    A recipient without an email address is a failed delivery, not an error.
    """

    def __init__(
        self,
        contacts: ContactDirectory,
        transport: EmailTransport | None = None,
    ) -> None:
        self._contacts = contacts
        self._transport = transport or get_email_transport()

    async def deliver_email(
        self,
        recipient_id: str,
        subject: str,
        html_body: str,
        text_body: str,
    ) -> DeliveryResult:
        contact = await self._contacts.get_contact(recipient_id)
        if contact is None or not contact.email:
            logger.warning(
                "No email address for recipient",
                extra={"recipient_id": recipient_id, "operation": "email.deliver"},
            )
            return DeliveryResult.failed("No email address found for user", "validation")

        result = await self._transport.send(
            EmailMessage(
                to=contact.email,
                to_name=contact.display_name,
                subject=subject,
                html_body=html_body,
                text_body=text_body,
            )
        )
        if not result.success:
            return DeliveryResult.failed(
                result.error or "Email send failed",
                result.error_code or "provider",
                response_time_ms=result.duration_ms,
                metadata={"provider": result.provider},
            )

        metadata: dict[str, str | int | bool] = {"provider": result.provider}
        if result.message_id:
            metadata["message_id"] = result.message_id
        return DeliveryResult.ok(response_time_ms=result.duration_ms, metadata=metadata)


__all__ = ["Contact", "ContactDirectory", "EmailChannel", "SqlContactDirectory"]
