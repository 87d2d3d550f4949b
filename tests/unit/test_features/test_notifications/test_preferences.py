"""Unit tests for the SQL preference store."""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from notify_service.features.notifications.enums import Channel, EventType
from notify_service.features.notifications.models import NotificationPreference
from notify_service.features.notifications.preferences import SqlPreferenceStore, to_preference
from notify_service.features.notifications.schemas import PreferenceUpdate


class TestGetPreferences:
    """Tests for reading preferences."""

    async def test_missing_recipient_gets_defaults(self, db_session):
        """Absent recipients get all defaults and no row is created."""
        store = SqlPreferenceStore(db_session)

        pref = await store.get_preferences("nobody")

        assert pref.recipient_id == "nobody"
        assert pref.email_enabled is True
        assert pref.in_app_enabled is True
        assert pref.webhook_enabled is False
        assert pref.has_webhook is False
        assert dict(pref.overrides) == {}
        assert await store.get_by(db_session, NotificationPreference.recipient_id, "nobody") is None

    def test_unknown_override_entries_dropped(self):
        """Stored overrides with unknown types or channels are ignored."""
        row = NotificationPreference(
            recipient_id="u1",
            email_enabled=True,
            in_app_enabled=True,
            webhook_enabled=False,
            event_overrides={
                "ticket.sneezed": ["email"],
                "ticket.created": ["sms", "email", "in-app"],
            },
        )

        pref = to_preference(row)

        assert dict(pref.overrides) == {EventType.TICKET_CREATED: (Channel.IN_APP, Channel.EMAIL)}


class TestUpdatePreferences:
    """Tests for partial preference updates."""

    async def test_first_update_creates_row(self, db_session):
        """Updating an unknown recipient inserts a row with defaults plus the change."""
        store = SqlPreferenceStore(db_session)

        pref = await store.update_preferences("u1", PreferenceUpdate(email_enabled=False))

        assert pref.email_enabled is False
        assert pref.in_app_enabled is True
        assert (await store.get_preferences("u1")).email_enabled is False

    async def test_unset_fields_untouched(self, db_session):
        """Only explicitly set fields change."""
        store = SqlPreferenceStore(db_session)
        await store.update_preferences("u1", PreferenceUpdate(email_enabled=False))

        pref = await store.update_preferences("u1", PreferenceUpdate(in_app_enabled=False))

        assert pref.email_enabled is False
        assert pref.in_app_enabled is False

    async def test_webhook_settings(self, db_session):
        """Webhook URL and secret are stored and reported."""
        store = SqlPreferenceStore(db_session)

        pref = await store.update_preferences(
            "u1",
            PreferenceUpdate(
                webhook_enabled=True,
                webhook_url="https://hooks.example.com/n",
                webhook_secret="s3cret",
            ),
        )

        assert pref.has_webhook is True
        assert pref.webhook_endpoint == "https://hooks.example.com/n"
        assert pref.webhook_secret == "s3cret"

    async def test_overrides_merge_and_remove(self, db_session):
        """Override updates merge per event type; None removes one."""
        store = SqlPreferenceStore(db_session)
        await store.update_preferences(
            "u1",
            PreferenceUpdate(
                event_overrides={
                    EventType.TICKET_CREATED: [Channel.IN_APP],
                    EventType.QUOTE_SUBMITTED: [Channel.EMAIL],
                }
            ),
        )

        pref = await store.update_preferences(
            "u1",
            PreferenceUpdate(
                event_overrides={
                    EventType.TICKET_CREATED: None,
                    EventType.TICKET_CLOSED: [],
                }
            ),
        )

        assert dict(pref.overrides) == {
            EventType.QUOTE_SUBMITTED: (Channel.EMAIL,),
            EventType.TICKET_CLOSED: (),
        }

    def test_update_rejects_unknown_fields(self):
        """Typos in update payloads are rejected."""
        with pytest.raises(ValidationError):
            PreferenceUpdate(sms_enabled=True)

    def test_update_rejects_unknown_channel(self):
        """Override channels must be known channels."""
        with pytest.raises(ValidationError):
            PreferenceUpdate(event_overrides={"ticket.created": ["sms"]})
