"""Channel selection: fold routing defaults with a recipient's preferences."""

from __future__ import annotations

from typing import TYPE_CHECKING

from notify_service.features.notifications.enums import CHANNEL_ORDER, Channel

if TYPE_CHECKING:
    from notify_service.features.notifications.preferences import (
        PreferenceStore,
        RecipientPreference,
    )
    from notify_service.features.notifications.routing import RoutingRule


def select_channels(preference: RecipientPreference, rule: RoutingRule) -> list[Channel]:
    """Final channel list for one recipient and one event type.

    1. Start from the rule's default channels.
    2. An override for the event type replaces them entirely.
    3. Drop channels the recipient disabled; webhook also needs an endpoint.
    4. Add webhook when it is enabled and has an endpoint.

    An empty list means the recipient is not notified.
    """
    override = preference.override_for(rule.event_type)
    channels = set(override) if override is not None else set(rule.default_channels)

    if not preference.email_enabled:
        channels.discard(Channel.EMAIL)
    if not preference.in_app_enabled:
        channels.discard(Channel.IN_APP)
    if not preference.has_webhook:
        channels.discard(Channel.WEBHOOK)
    else:
        channels.add(Channel.WEBHOOK)

    return [c for c in CHANNEL_ORDER if c in channels]


class ChannelSelector:
    """Select channels for a recipient, reading preferences from a store."""

    def __init__(self, preferences: PreferenceStore) -> None:
        self._preferences = preferences

    async def select_channels(self, recipient_id: str, rule: RoutingRule) -> list[Channel]:
        preference = await self._preferences.get_preferences(recipient_id)
        return select_channels(preference, rule)


__all__ = ["ChannelSelector", "select_channels"]
