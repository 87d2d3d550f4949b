"""Unit tests for channel selection."""

from __future__ import annotations

from types import MappingProxyType
from unittest.mock import AsyncMock

from notify_service.features.notifications.enums import Channel, EventType, Role
from notify_service.features.notifications.preferences import RecipientPreference
from notify_service.features.notifications.routing import RoutingRule, RoutingTable
from notify_service.features.notifications.selector import ChannelSelector, select_channels

TICKET_CREATED = RoutingTable.default()[EventType.TICKET_CREATED]


def _pref(**kwargs) -> RecipientPreference:
    overrides = kwargs.pop("overrides", {})
    return RecipientPreference(
        recipient_id="u1",
        overrides=MappingProxyType(overrides),
        **kwargs,
    )


class TestSelectChannels:
    """Tests for the pure selection function."""

    def test_defaults_with_default_preferences(self):
        """Default preferences keep the routing defaults."""
        assert select_channels(_pref(), TICKET_CREATED) == [Channel.IN_APP, Channel.EMAIL]

    def test_override_replaces_defaults(self):
        """An override for the event type wins over the defaults entirely."""
        pref = _pref(overrides={EventType.TICKET_CREATED: (Channel.IN_APP,)})

        assert select_channels(pref, TICKET_CREATED) == [Channel.IN_APP]

    def test_override_for_other_event_type_ignored(self):
        """Overrides only apply to their own event type."""
        pref = _pref(overrides={EventType.QUOTE_APPROVED: (Channel.EMAIL,)})

        assert select_channels(pref, TICKET_CREATED) == [Channel.IN_APP, Channel.EMAIL]

    def test_empty_override_means_no_channels(self):
        """An empty override silences the event type."""
        pref = _pref(overrides={EventType.TICKET_CREATED: ()})

        assert select_channels(pref, TICKET_CREATED) == []

    def test_email_disabled_removes_email(self):
        """email_enabled=false removes email even when defaults include it."""
        assert select_channels(_pref(email_enabled=False), TICKET_CREATED) == [Channel.IN_APP]

    def test_email_gate_applies_to_overrides(self):
        """Global gates also filter override lists."""
        pref = _pref(
            email_enabled=False,
            overrides={EventType.TICKET_CREATED: (Channel.EMAIL,)},
        )

        assert select_channels(pref, TICKET_CREATED) == []

    def test_in_app_disabled_removes_in_app(self):
        """in_app_enabled=false removes in-app."""
        assert select_channels(_pref(in_app_enabled=False), TICKET_CREATED) == [Channel.EMAIL]

    def test_webhook_auto_added_when_enabled_with_endpoint(self):
        """Webhook opt-in adds the channel even if nothing lists it."""
        pref = _pref(webhook_enabled=True, webhook_endpoint="https://hooks.example.com/n")

        assert select_channels(pref, TICKET_CREATED) == [
            Channel.IN_APP,
            Channel.EMAIL,
            Channel.WEBHOOK,
        ]

    def test_webhook_added_on_top_of_override(self):
        """Webhook addition also applies after an override."""
        pref = _pref(
            webhook_enabled=True,
            webhook_endpoint="https://hooks.example.com/n",
            overrides={EventType.TICKET_CREATED: (Channel.IN_APP,)},
        )

        assert select_channels(pref, TICKET_CREATED) == [Channel.IN_APP, Channel.WEBHOOK]

    def test_webhook_without_endpoint_removed(self):
        """Webhook needs an endpoint, even when listed in an override."""
        pref = _pref(
            webhook_enabled=True,
            overrides={EventType.TICKET_CREATED: (Channel.WEBHOOK,)},
        )

        assert select_channels(pref, TICKET_CREATED) == []

    def test_webhook_disabled_removed_from_rule(self):
        """A rule listing webhook does not deliver to recipients without opt-in."""
        rule = RoutingRule(
            EventType.QUOTE_REJECTED,
            frozenset({Role.CONTRACTOR}),
            frozenset({Channel.WEBHOOK, Channel.EMAIL}),
        )
        pref = _pref(webhook_endpoint="https://hooks.example.com/n")

        assert select_channels(pref, rule) == [Channel.EMAIL]

    def test_everything_disabled_is_empty(self):
        """An empty selection is a valid result."""
        pref = _pref(email_enabled=False, in_app_enabled=False)

        assert select_channels(pref, TICKET_CREATED) == []


class TestChannelSelector:
    """Tests for the store-backed selector."""

    async def test_reads_preferences_from_store(self):
        """The selector looks up the recipient's preferences."""
        store = AsyncMock()
        store.get_preferences.return_value = _pref(email_enabled=False)
        selector = ChannelSelector(store)

        channels = await selector.select_channels("u1", TICKET_CREATED)

        assert channels == [Channel.IN_APP]
        store.get_preferences.assert_awaited_once_with("u1")
