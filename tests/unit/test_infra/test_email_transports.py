"""Unit tests for the email transports."""

from __future__ import annotations

from unittest.mock import AsyncMock, patch

import aiosmtplib
import pytest

from notify_service.core.settings import EmailSettings
from notify_service.infra.email import (
    ConsoleTransport,
    EmailMessage,
    SMTPTransport,
    get_email_transport,
)


@pytest.fixture
def message() -> EmailMessage:
    return EmailMessage(
        to="u1@example.com",
        to_name="Una",
        subject="New Maintenance Ticket",
        html_body="<p>Hi Una,</p>",
        text_body="Hi Una,",
    )


@pytest.fixture
def smtp_settings() -> EmailSettings:
    return EmailSettings(
        backend="smtp",
        smtp_host="smtp.example.com",
        smtp_port=587,
        from_email="notify@example.com",
    )


class TestGetEmailTransport:
    def test_console_without_host(self):
        assert isinstance(get_email_transport(EmailSettings(backend="auto")), ConsoleTransport)

    def test_smtp_with_host(self, smtp_settings):
        assert isinstance(get_email_transport(smtp_settings), SMTPTransport)


class TestConsoleTransport:
    async def test_always_succeeds(self, message):
        result = await ConsoleTransport().send(message)

        assert result.success is True
        assert result.provider == "console"
        assert result.message_id.startswith("console-")


class TestSMTPTransport:
    """Tests for SMTPTransport with aiosmtplib.send mocked."""

    def test_requires_host(self):
        with pytest.raises(ValueError, match="SMTP host"):
            SMTPTransport(EmailSettings(backend="console"))

    async def test_sends_multipart_message(self, smtp_settings, message):
        with patch("aiosmtplib.send", AsyncMock(return_value=({}, "OK"))) as send:
            result = await SMTPTransport(smtp_settings).send(message)

        assert result.success is True
        assert result.provider == "smtp"
        mime = send.await_args.args[0]
        assert mime["To"] == "Una <u1@example.com>"
        assert mime["Subject"] == "New Maintenance Ticket"
        assert mime.is_multipart()
        assert send.await_args.kwargs["start_tls"] is True
        assert result.message_id == mime["Message-ID"]

    async def test_refused_recipients(self, smtp_settings, message):
        refused = aiosmtplib.SMTPRecipientsRefused([])
        with patch("aiosmtplib.send", AsyncMock(side_effect=refused)):
            result = await SMTPTransport(smtp_settings).send(message)

        assert result.success is False
        assert result.error_code == "recipient_refused"

    async def test_connection_error(self, smtp_settings, message):
        with patch("aiosmtplib.send", AsyncMock(side_effect=ConnectionRefusedError("nope"))):
            result = await SMTPTransport(smtp_settings).send(message)

        assert result.success is False
        assert result.error_code == "connection_error"

    async def test_partial_rejection(self, smtp_settings, message):
        errors = {"u1@example.com": aiosmtplib.SMTPResponse(550, "no such user")}
        with patch("aiosmtplib.send", AsyncMock(return_value=(errors, "OK"))):
            result = await SMTPTransport(smtp_settings).send(message)

        assert result.success is False
        assert "u1@example.com" in result.error
