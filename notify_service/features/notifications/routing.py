"""Static routing table: event type -> recipient roles and default channels.

The table is built once per process, either from the built-in rules below or
from a YAML file named by ``NOTIFY_ROUTING_FILE``, and is read-only after
that. It has no knowledge of the business modules that emit events.

YAML format::

    ticket.created:
      roles: [LANDLORD, OPS]
      channels: [in-app, email]
    quote.approved:
      roles: [CONTRACTOR, TENANT]
      channels: [in-app]
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from types import MappingProxyType
from typing import Any

import yaml

from notify_service.features.notifications.enums import CHANNEL_ORDER, Channel, EventType, Role
from notify_service.features.notifications.exceptions import RoutingConfigError
from notify_service.infra.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class RoutingRule:
    """Who may be notified about an event type and on which channels by default."""

    event_type: EventType
    allowed_roles: frozenset[Role]
    default_channels: frozenset[Channel]

    @property
    def ordered_channels(self) -> list[Channel]:
        return [c for c in CHANNEL_ORDER if c in self.default_channels]


def _rule(event_type: EventType, roles: tuple[Role, ...], channels: tuple[Channel, ...]) -> RoutingRule:
    return RoutingRule(event_type, frozenset(roles), frozenset(channels))


L, T, C, O = Role.LANDLORD, Role.TENANT, Role.CONTRACTOR, Role.OPS
IN_APP, EMAIL = Channel.IN_APP, Channel.EMAIL

DEFAULT_RULES: tuple[RoutingRule, ...] = (
    _rule(EventType.TICKET_CREATED, (L, O), (IN_APP, EMAIL)),
    _rule(EventType.TICKET_ASSIGNED, (C, T), (EMAIL, IN_APP)),
    _rule(EventType.QUOTE_SUBMITTED, (L, O), (IN_APP, EMAIL)),
    _rule(EventType.QUOTE_APPROVED, (C, T), (IN_APP,)),
    _rule(EventType.QUOTE_REJECTED, (C,), (EMAIL, IN_APP)),
    _rule(EventType.APPOINTMENT_PROPOSED, (T, L), (IN_APP, EMAIL)),
    _rule(EventType.APPOINTMENT_CONFIRMED, (C,), (EMAIL, IN_APP)),
    _rule(EventType.TICKET_IN_PROGRESS, (T, L), (IN_APP,)),
    _rule(EventType.TICKET_COMPLETED, (T, L, O), (IN_APP, EMAIL)),
    _rule(EventType.TICKET_CLOSED, (T, L, O), (IN_APP,)),
    _rule(EventType.TICKET_CANCELLED, (T, L, C, O), (IN_APP, EMAIL)),
)

del L, T, C, O, IN_APP, EMAIL


class RoutingTable(Mapping[EventType, RoutingRule]):
    """Immutable mapping from event type to routing rule.

    Example:
        table = RoutingTable.default()
        rule = table.lookup("ticket.created")
        table.lookup("ticket.sneezed")  # None
    """

    __slots__ = ("_rules",)

    def __init__(self, rules: Mapping[EventType, RoutingRule] | None = None) -> None:
        self._rules: Mapping[EventType, RoutingRule] = MappingProxyType(dict(rules or {}))

    @classmethod
    def default(cls) -> RoutingTable:
        return cls.from_rules(DEFAULT_RULES)

    @classmethod
    def from_rules(cls, rules: tuple[RoutingRule, ...] | list[RoutingRule]) -> RoutingTable:
        mapping: dict[EventType, RoutingRule] = {}
        for rule in rules:
            if rule.event_type in mapping:
                msg = "Duplicate routing rule"
                raise RoutingConfigError(msg, {"event_type": str(rule.event_type)})
            mapping[rule.event_type] = rule
        return cls(mapping)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> RoutingTable:
        """Build a table from the parsed YAML structure."""
        rules: list[RoutingRule] = []
        for raw_type, spec in data.items():
            event_type = EventType.parse(str(raw_type))
            if event_type is None:
                msg = "Unknown event type in routing file"
                raise RoutingConfigError(msg, {"event_type": raw_type})
            if not isinstance(spec, Mapping):
                msg = "Routing entry must be a mapping with roles and channels"
                raise RoutingConfigError(msg, {"event_type": raw_type})
            try:
                roles = frozenset(Role(str(r).upper()) for r in spec.get("roles", []))
                channels = frozenset(Channel(str(c)) for c in spec.get("channels", []))
            except ValueError as e:
                msg = "Invalid role or channel in routing file"
                raise RoutingConfigError(msg, {"event_type": raw_type, "error": str(e)}) from e
            rules.append(RoutingRule(event_type, roles, channels))
        return cls.from_rules(rules)

    def lookup(self, event_type: str) -> RoutingRule | None:
        """Return the rule for ``event_type``; None when it has no notification behavior."""
        key = EventType.parse(event_type)
        if key is None:
            return None
        return self._rules.get(key)

    def __getitem__(self, key: EventType) -> RoutingRule:
        return self._rules[key]

    def __iter__(self) -> Iterator[EventType]:
        return iter(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def __repr__(self) -> str:
        return f"RoutingTable(event_types={sorted(self._rules)})"


def load_routing_table(path: Path | str | None = None) -> RoutingTable:
    """Load the routing table from YAML, or the built-in defaults when no path is given.

    Raises:
        RoutingConfigError: If the file is missing, unparsable or invalid.
    """
    if path is None:
        return RoutingTable.default()

    file_path = Path(path)
    try:
        data = yaml.safe_load(file_path.read_text(encoding="utf-8")) or {}
    except OSError as e:
        msg = "Routing file could not be read"
        raise RoutingConfigError(msg, {"path": str(file_path), "error": str(e)}) from e
    except yaml.YAMLError as e:
        msg = "Routing file is not valid YAML"
        raise RoutingConfigError(msg, {"path": str(file_path), "error": str(e)}) from e

    if not isinstance(data, Mapping):
        msg = "Routing file must contain a mapping of event types"
        raise RoutingConfigError(msg, {"path": str(file_path)})

    table = RoutingTable.from_mapping(data)
    logger.info(
        "Routing table loaded from file",
        extra={"path": str(file_path), "rules": len(table), "operation": "routing.load"},
    )
    return table


@lru_cache(maxsize=1)
def get_routing_table() -> RoutingTable:
    """Process-wide routing table, loaded on first use."""
    from notify_service.core.settings import get_notification_settings

    return load_routing_table(get_notification_settings().routing_file)


__all__ = [
    "DEFAULT_RULES",
    "RoutingRule",
    "RoutingTable",
    "get_routing_table",
    "load_routing_table",
]
