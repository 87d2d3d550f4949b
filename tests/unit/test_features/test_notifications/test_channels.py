"""Unit tests for the channel adapters and the dispatcher."""

from __future__ import annotations

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock

import httpx
import pytest

from notify_service.core.settings import WebhookSettings
from notify_service.features.notifications.channels import (
    ChannelDispatcher,
    DeliveryResult,
    EmailChannel,
    InAppChannel,
    SqlContactDirectory,
    WebhookChannel,
    sign_payload,
    verify_signature,
)
from notify_service.features.notifications.channels.email import Contact
from notify_service.features.notifications.channels.webhook import (
    EVENT_ID_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
)
from notify_service.features.notifications.exceptions import DeliveryContractError
from notify_service.features.notifications.preferences import RecipientPreference
from notify_service.features.notifications.repository import get_notification_repository

# ──────────────────────────────────────────────────────────────
# In-app
# ──────────────────────────────────────────────────────────────


class TestInAppChannel:
    """Tests for the in-app adapter."""

    async def test_creates_inbox_row(self, db_session):
        """Delivery creates one unread notification for the recipient."""
        channel = InAppChannel(db_session)

        result = await channel.deliver_in_app(
            "u1",
            "New Maintenance Ticket",
            "A new maintenance ticket has been created",
            "ticket",
            "t1",
            source_key="ticket.created:t1:1:u1:in-app",
            event_type="ticket.created",
        )

        assert result.success is True
        rows = await get_notification_repository().list_for_user(db_session, "u1")
        assert len(rows) == 1
        assert rows[0].type == "ticket.created"
        assert rows[0].resource_type == "ticket"
        assert rows[0].is_read is False
        assert result.metadata == {"notification_id": str(rows[0].id)}

    async def test_redelivery_reuses_row(self, db_session):
        """The same source key never creates a second inbox row."""
        channel = InAppChannel(db_session)
        args = ("u1", "Title", "Message", "ticket", "t1")

        first = await channel.deliver_in_app(*args, source_key="k1")
        second = await channel.deliver_in_app(*args, source_key="k1")

        assert first.metadata == second.metadata
        assert await get_notification_repository().count_unread(db_session, "u1") == 1

    @pytest.mark.parametrize(
        ("recipient_id", "title", "message", "missing"),
        [
            ("", "Title", "Message", ["recipient_id"]),
            ("u1", "", "Message", ["title"]),
            ("u1", "Title", "", ["message"]),
        ],
    )
    async def test_missing_fields_violate_contract(
        self, db_session, recipient_id, title, message, missing
    ):
        """Required fields missing is a programming error, not a failed result."""
        channel = InAppChannel(db_session)

        with pytest.raises(DeliveryContractError) as exc_info:
            await channel.deliver_in_app(recipient_id, title, message, "ticket", "t1")

        assert exc_info.value.details["missing"] == missing


# ──────────────────────────────────────────────────────────────
# Email
# ──────────────────────────────────────────────────────────────


class TestEmailChannel:
    """Tests for the email adapter."""

    async def test_sends_to_contact_address(self, db_session, add_contact, email_transport):
        """The transport receives the rendered message for the contact address."""
        await add_contact("u1", "u1@example.com", "Una")
        channel = EmailChannel(SqlContactDirectory(db_session), email_transport)

        result = await channel.deliver_email("u1", "Subject", "<p>Hi</p>", "Hi")

        assert result.success is True
        assert result.metadata == {"provider": "recording", "message_id": "msg-1"}
        [message] = email_transport.sent
        assert message.to == "u1@example.com"
        assert message.to_name == "Una"
        assert message.subject == "Subject"

    async def test_missing_contact_is_validation_failure(self, db_session, email_transport):
        """No contact row means a failed result, not an exception."""
        channel = EmailChannel(SqlContactDirectory(db_session), email_transport)

        result = await channel.deliver_email("ghost", "Subject", "<p>Hi</p>", "Hi")

        assert result.success is False
        assert result.error_category == "validation"
        assert result.error_message == "No email address found for user"
        assert email_transport.sent == []

    async def test_contact_without_address(self, db_session, add_contact, email_transport):
        """A contact without an email is treated like no contact."""
        await add_contact("u1", None)
        channel = EmailChannel(SqlContactDirectory(db_session), email_transport)

        result = await channel.deliver_email("u1", "Subject", "<p>Hi</p>", "Hi")

        assert result.error_category == "validation"

    async def test_transport_failure(self, db_session, add_contact, email_transport):
        """Transport failures are reported with the transport's error."""
        await add_contact("u1", "u1@example.com")
        email_transport.error = "mailbox unavailable"
        channel = EmailChannel(SqlContactDirectory(db_session), email_transport)

        result = await channel.deliver_email("u1", "Subject", "<p>Hi</p>", "Hi")

        assert result.success is False
        assert result.error_message == "mailbox unavailable"
        assert result.error_category == "provider"


# ──────────────────────────────────────────────────────────────
# Webhook
# ──────────────────────────────────────────────────────────────


class TestSignPayload:
    """Tests for webhook payload signing."""

    def test_signature_verifies(self):
        """Receivers can verify the signature over timestamp and body."""
        signed = sign_payload(
            {"b": 2, "a": 1},
            secret="s3cret",
            event_type="ticket.created",
            event_id="k1",
            timestamp="2026-10-18T09:00:00Z",
        )

        assert signed.body == '{"a":1,"b":2}'
        assert signed.signature is not None
        assert signed.signature.startswith("sha256=")
        assert verify_signature("s3cret", signed.timestamp, signed.body, signed.signature)
        assert not verify_signature("other", signed.timestamp, signed.body, signed.signature)

    def test_no_secret_means_unsigned(self):
        """Without a secret no signature header is sent."""
        signed = sign_payload({}, secret=None, event_type="ticket.created", event_id="k1")

        assert signed.signature is None
        assert SIGNATURE_HEADER not in signed.headers("agent")


def _webhook(handler) -> WebhookChannel:
    return WebhookChannel(WebhookSettings(), transport=httpx.MockTransport(handler))


class TestWebhookChannel:
    """Tests for the webhook adapter over httpx.MockTransport."""

    @pytest.fixture
    def signed(self):
        return sign_payload(
            {"id": "k1"}, secret="s3cret", event_type="ticket.created", event_id="k1"
        )

    async def test_posts_signed_body(self, signed):
        """The request carries the body and the signature headers."""
        captured: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(204)

        result = await _webhook(handler).deliver_webhook("https://hooks.example.com/n", signed)

        assert result.success is True
        assert result.status_code == 204
        [request] = captured
        assert request.method == "POST"
        assert request.content.decode() == signed.body
        assert request.headers[SIGNATURE_HEADER] == signed.signature
        assert request.headers[TIMESTAMP_HEADER] == signed.timestamp
        assert request.headers[EVENT_ID_HEADER] == "k1"

    async def test_non_2xx_is_http_failure(self, signed):
        """Server errors become failed results with the status code."""
        result = await _webhook(lambda r: httpx.Response(500, text="boom")).deliver_webhook(
            "https://hooks.example.com/n", signed
        )

        assert result.success is False
        assert result.error_category == "http"
        assert result.status_code == 500
        assert result.response_body == "boom"

    async def test_timeout(self, signed):
        """Timeouts become failed results."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("timed out", request=request)

        result = await _webhook(handler).deliver_webhook("https://hooks.example.com/n", signed)

        assert result.error_category == "timeout"

    async def test_connection_error(self, signed):
        """Connection errors become network failures."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        result = await _webhook(handler).deliver_webhook("https://hooks.example.com/n", signed)

        assert result.error_category == "network"

    async def test_missing_endpoint(self, signed):
        """An empty endpoint is a configuration failure."""
        result = await _webhook(lambda r: httpx.Response(200)).deliver_webhook("", signed)

        assert result.error_category == "config"

    @pytest.mark.parametrize(
        "endpoint",
        ["https://hooks.example.com:notaport/n", "http://999.1.1.1/n"],
    )
    async def test_unparseable_endpoint(self, signed, endpoint):
        """A URL httpx cannot parse is a configuration failure, not an exception."""
        result = await _webhook(lambda r: httpx.Response(200)).deliver_webhook(endpoint, signed)

        assert result.success is False
        assert result.error_category == "config"
        assert result.error_message.startswith("Invalid webhook URL")

    def test_default_secret_from_settings(self):
        """An empty signing secret means no default secret."""
        assert WebhookChannel(WebhookSettings()).default_secret is None
        assert WebhookChannel(WebhookSettings(signing_secret="abc")).default_secret == "abc"


# ──────────────────────────────────────────────────────────────
# Dispatcher
# ──────────────────────────────────────────────────────────────


def _entry(channel: str, *, payload: str = '{"kind":"ticket","title":"Leaking tap"}'):
    return SimpleNamespace(
        id="00000000-0000-0000-0000-000000000001",
        event_type="ticket.created",
        entity_id="t1",
        entity_version=1,
        idempotency_key=f"ticket.created:t1:1:u1:{channel}",
        channel=channel,
        recipient_id="u1",
        payload=payload,
    )


@pytest.fixture
def adapters():
    in_app = AsyncMock()
    in_app.deliver_in_app.return_value = DeliveryResult.ok()
    email = AsyncMock()
    email.deliver_email.return_value = DeliveryResult.ok()
    webhook = AsyncMock()
    webhook.deliver_webhook.return_value = DeliveryResult.ok(status_code=200)
    preferences = AsyncMock()
    preferences.get_preferences.return_value = RecipientPreference(recipient_id="u1")
    contacts = AsyncMock()
    contacts.get_contact.return_value = Contact("u1", "u1@example.com", "Una")
    return SimpleNamespace(
        in_app=in_app, email=email, webhook=webhook, preferences=preferences, contacts=contacts
    )


def _dispatcher(adapters, **kwargs) -> ChannelDispatcher:
    return ChannelDispatcher(
        in_app=adapters.in_app,
        email=adapters.email,
        webhook=adapters.webhook,
        preferences=adapters.preferences,
        contacts=adapters.contacts,
        **kwargs,
    )


class TestChannelDispatcher:
    """Tests for routing outbox entries to adapters."""

    async def test_in_app_rendered(self, adapters):
        """In-app entries render title and message from the payload."""
        result = await _dispatcher(adapters).dispatch(_entry("in-app"))

        assert result.success is True
        adapters.in_app.deliver_in_app.assert_awaited_once_with(
            "u1",
            "New Maintenance Ticket",
            "A new maintenance ticket has been created: Leaking tap",
            "ticket",
            "t1",
            source_key="ticket.created:t1:1:u1:in-app",
            event_type="ticket.created",
        )

    async def test_email_greets_contact(self, adapters):
        """Email bodies use the contact's display name."""
        await _dispatcher(adapters).dispatch(_entry("email"))

        recipient_id, subject, html_body, text_body = adapters.email.deliver_email.await_args.args
        assert recipient_id == "u1"
        assert subject == "New Maintenance Ticket"
        assert html_body.startswith("<p>Hi Una,</p>")
        assert "Leaking tap" in text_body

    async def test_email_html_is_escaped(self, adapters):
        """Payload text is escaped in the HTML body only."""
        entry = _entry("email", payload='{"kind":"ticket","title":"<b>tap</b>"}')

        await _dispatcher(adapters).dispatch(entry)

        _, _, html_body, text_body = adapters.email.deliver_email.await_args.args
        assert "&lt;b&gt;tap&lt;/b&gt;" in html_body
        assert "<b>tap</b>" in text_body

    async def test_webhook_uses_recipient_endpoint_and_secret(self, adapters):
        """Webhook entries are signed with the recipient's secret."""
        adapters.preferences.get_preferences.return_value = RecipientPreference(
            recipient_id="u1",
            webhook_enabled=True,
            webhook_endpoint="https://hooks.example.com/n",
            webhook_secret="s3cret",
        )

        await _dispatcher(adapters, default_webhook_secret="fallback").dispatch(_entry("webhook"))

        endpoint, signed = adapters.webhook.deliver_webhook.await_args.args
        assert endpoint == "https://hooks.example.com/n"
        assert verify_signature("s3cret", signed.timestamp, signed.body, signed.signature)
        body = json.loads(signed.body)
        assert body["id"] == "ticket.created:t1:1:u1:webhook"
        assert body["payload"]["title"] == "Leaking tap"
        assert signed.event_id == body["id"]

    async def test_webhook_falls_back_to_default_secret(self, adapters):
        """Without a recipient secret the default signing secret is used."""
        adapters.preferences.get_preferences.return_value = RecipientPreference(
            recipient_id="u1",
            webhook_enabled=True,
            webhook_endpoint="https://hooks.example.com/n",
        )

        await _dispatcher(adapters, default_webhook_secret="fallback").dispatch(_entry("webhook"))

        _, signed = adapters.webhook.deliver_webhook.await_args.args
        assert verify_signature("fallback", signed.timestamp, signed.body, signed.signature)

    async def test_webhook_without_endpoint(self, adapters):
        """A webhook entry whose recipient removed the endpoint fails as config."""
        result = await _dispatcher(adapters).dispatch(_entry("webhook"))

        assert result.error_category == "config"
        adapters.webhook.deliver_webhook.assert_not_awaited()

    async def test_unknown_channel(self, adapters):
        """Unknown channels are a failed result."""
        result = await _dispatcher(adapters).dispatch(_entry("sms"))

        assert result.success is False
        assert result.error_category == "config"

    async def test_undecodable_payload(self, adapters):
        """Payloads that do not match any variant fail without calling an adapter."""
        result = await _dispatcher(adapters).dispatch(_entry("in-app", payload='{"kind":"spaceship"}'))

        assert result.error_category == "payload"
        adapters.in_app.deliver_in_app.assert_not_awaited()

    async def test_contract_error_propagates(self, adapters):
        """Contract violations are not turned into results."""
        adapters.in_app.deliver_in_app.side_effect = DeliveryContractError("bad call")

        with pytest.raises(DeliveryContractError):
            await _dispatcher(adapters).dispatch(_entry("in-app"))
