"""Recipient resolution: event + routing rule -> set of user ids.

Membership data comes from a ``MembershipDirectory``; the default
implementation reads the ``org_members`` table.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Protocol, runtime_checkable

from sqlalchemy import select

from notify_service.features.notifications.enums import MemberRole, Role
from notify_service.features.notifications.models import OrgMember
from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Collection

    from sqlalchemy.ext.asyncio import AsyncSession

    from notify_service.features.notifications.events import NotificationEvent
    from notify_service.features.notifications.routing import RoutingRule

_lazy = get_lazy_logger(__name__)

# Membership roles that qualify for each routing role.
LANDLORD_MEMBER_ROLES = (MemberRole.LANDLORD, MemberRole.ADMIN)
TENANT_MEMBER_ROLES = (MemberRole.TENANT,)
OPS_MEMBER_ROLES = (MemberRole.OPS,)


@runtime_checkable
class MembershipDirectory(Protocol):
    """Read access to organisation memberships."""

    async def members_of(self, org_id: str, roles: Collection[str]) -> list[str]:
        """User ids in ``org_id`` holding any of ``roles``."""
        ...

    async def members_with_role(self, roles: Collection[str]) -> list[str]:
        """User ids holding any of ``roles`` in any organisation."""
        ...


class SqlMembershipDirectory:
    """MembershipDirectory over the ``org_members`` table."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def members_of(self, org_id: str, roles: Collection[str]) -> list[str]:
        stmt = (
            select(OrgMember.user_id)
            .where(OrgMember.org_id == org_id, OrgMember.role.in_([str(r) for r in roles]))
            .distinct()
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def members_with_role(self, roles: Collection[str]) -> list[str]:
        stmt = select(OrgMember.user_id).where(OrgMember.role.in_([str(r) for r in roles])).distinct()
        result = await self._session.execute(stmt)
        return list(result.scalars().all())


class RecipientResolver:
    """Resolve the users an event should reach.

    Role scopes:
        LANDLORD: LANDLORD or ADMIN members of ``event.landlord_id``
        OPS: OPS members of ``event.landlord_id``, or of any org with ``ops_scope="platform"``
        TENANT: TENANT members of ``event.tenant_id``
        CONTRACTOR: ``event.contractor_id`` itself

    A role whose identifier is missing from the event contributes nobody.
    """

    def __init__(
        self,
        directory: MembershipDirectory,
        *,
        ops_scope: Literal["landlord", "platform"] = "landlord",
    ) -> None:
        self._directory = directory
        self._ops_scope = ops_scope

    async def resolve_recipients(self, event: NotificationEvent, rule: RoutingRule) -> set[str]:
        recipients: set[str] = set()
        for role in sorted(rule.allowed_roles):
            found = await self._resolve_role(event, role)
            _lazy.debug(lambda r=role, f=found: f"resolve: {event.type} role={r} -> {len(f)} users")
            recipients.update(found)
        return recipients

    async def _resolve_role(self, event: NotificationEvent, role: Role) -> list[str]:
        match role:
            case Role.LANDLORD:
                if not event.landlord_id:
                    return []
                return await self._directory.members_of(event.landlord_id, LANDLORD_MEMBER_ROLES)
            case Role.TENANT:
                if not event.tenant_id:
                    return []
                return await self._directory.members_of(event.tenant_id, TENANT_MEMBER_ROLES)
            case Role.CONTRACTOR:
                return [event.contractor_id] if event.contractor_id else []
            case Role.OPS:
                if self._ops_scope == "platform":
                    return await self._directory.members_with_role(OPS_MEMBER_ROLES)
                if not event.landlord_id:
                    return []
                return await self._directory.members_of(event.landlord_id, OPS_MEMBER_ROLES)
        return []


__all__ = [
    "MembershipDirectory",
    "RecipientResolver",
    "SqlMembershipDirectory",
]
