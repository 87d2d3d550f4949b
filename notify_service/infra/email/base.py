"""Email transport contract.

A transport takes a fully rendered ``EmailMessage`` and reports the outcome
as an ``EmailDeliveryResult``; it never raises for delivery problems.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class EmailMessage:
    """A rendered email ready for a transport."""

    to: str
    subject: str
    html_body: str
    text_body: str
    to_name: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class EmailDeliveryResult:
    """Result of an email delivery attempt.

    Attributes:
        success: Whether delivery succeeded
        message_id: Transport-assigned message id
        provider: Transport name (smtp, console)
        error: Error message if failed
        error_code: Error category for programmatic handling
        duration_ms: Time taken to send in milliseconds
    """

    success: bool
    message_id: str | None
    provider: str
    error: str | None = None
    error_code: str | None = None
    duration_ms: int | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success_result(
        cls,
        message_id: str,
        provider: str,
        duration_ms: int | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> EmailDeliveryResult:
        return cls(
            success=True,
            message_id=message_id,
            provider=provider,
            duration_ms=duration_ms,
            metadata=metadata or {},
        )

    @classmethod
    def failure_result(
        cls,
        provider: str,
        error: str,
        error_code: str | None = None,
        duration_ms: int | None = None,
    ) -> EmailDeliveryResult:
        return cls(
            success=False,
            message_id=None,
            provider=provider,
            error=error,
            error_code=error_code,
            duration_ms=duration_ms,
        )


@runtime_checkable
class EmailTransport(Protocol):
    """Anything that can send a rendered EmailMessage."""

    @property
    def provider_name(self) -> str: ...

    async def send(self, message: EmailMessage) -> EmailDeliveryResult: ...


__all__ = ["EmailDeliveryResult", "EmailMessage", "EmailTransport"]
