"""Repositories for the notification outbox and the in-app inbox.

OutboxRepository provides:
- Existing-key lookup and conflict-tolerant batched inserts (outbox writer)
- Atomic claiming of due entries (delivery worker)
- Lease renewal and DELIVERED / FAILED transitions, conditioned on the claim
  still being held by the calling worker
- Release of PROCESSING entries whose lease expired
- Operational queries (stats, exhausted entries)
"""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from notify_service.core.database import BaseRepository, utcnow
from notify_service.features.notifications.enums import OutboxStatus
from notify_service.features.notifications.models import Notification, NotificationOutbox
from notify_service.features.notifications.schemas import OutboxStats

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

MAX_ERROR_LENGTH = 1000
LEASE_EXPIRED_ERROR = "processing lease expired"


def compute_backoff_seconds(attempts: int, *, base: int = 10, cap: int = 300) -> int:
    """Delay before the next attempt: ``min(cap, 2 ** attempts * base)``.

    ``attempts`` counts the attempts made before the one that just failed, so
    the first retry waits ``base`` seconds.
    """
    return min(cap, (2**attempts) * base)


class OutboxRepository(BaseRepository[NotificationOutbox]):
    """Outbox queries used by the writer, the worker and the CLI."""

    def __init__(self) -> None:
        super().__init__(NotificationOutbox)

    # ------------------------------------------------------------------
    # Writer side
    # ------------------------------------------------------------------

    async def existing_keys(self, session: AsyncSession, keys: Iterable[str]) -> set[str]:
        """Return the subset of ``keys`` already present in the outbox."""
        key_list = list(keys)
        if not key_list:
            return set()
        stmt = select(NotificationOutbox.idempotency_key).where(
            NotificationOutbox.idempotency_key.in_(key_list)
        )
        result = await session.execute(stmt)
        return set(result.scalars().all())

    async def insert_entries(
        self, session: AsyncSession, rows: Iterable[dict[str, Any]]
    ) -> Sequence[str]:
        """Insert entries in one statement; returns the keys actually inserted."""
        return await self.insert_ignore_conflicts(
            session,
            rows,
            conflict_column="idempotency_key",
            returning=NotificationOutbox.idempotency_key,
        )

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    async def claim_due(
        self,
        session: AsyncSession,
        *,
        batch_size: int,
        worker_id: str,
    ) -> Sequence[NotificationOutbox]:
        """Claim up to ``batch_size`` due entries for this worker.

        Candidates are PENDING or FAILED, due, and below their attempt bound,
        oldest ``next_attempt_at`` first. Each candidate is moved to
        PROCESSING by an UPDATE that also matches the status and attempt
        count that were read; an entry counts as claimed only if that UPDATE
        touched exactly one row, so two workers never claim the same entry.
        ``attempts`` is incremented and ``last_attempt_at`` stamped as part
        of the claim.
        """
        now = utcnow()
        candidates_stmt = (
            select(
                NotificationOutbox.id,
                NotificationOutbox.status,
                NotificationOutbox.attempts,
            )
            .where(
                NotificationOutbox.status.in_([OutboxStatus.PENDING, OutboxStatus.FAILED]),
                NotificationOutbox.next_attempt_at <= now,
                NotificationOutbox.attempts < NotificationOutbox.max_attempts,
            )
            .order_by(NotificationOutbox.next_attempt_at.asc(), NotificationOutbox.id.asc())
            .limit(batch_size)
            .with_for_update(skip_locked=True)
        )
        candidates = (await session.execute(candidates_stmt)).all()

        claimed_ids: list[UUID] = []
        for entry_id, observed_status, observed_attempts in candidates:
            claim_stmt = (
                update(NotificationOutbox)
                .where(
                    NotificationOutbox.id == entry_id,
                    NotificationOutbox.status == observed_status,
                    NotificationOutbox.attempts == observed_attempts,
                )
                .values(
                    status=OutboxStatus.PROCESSING,
                    attempts=observed_attempts + 1,
                    last_attempt_at=now,
                    claimed_by=worker_id,
                    updated_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            result = await session.execute(claim_stmt)
            if result.rowcount == 1:
                claimed_ids.append(entry_id)

        self._lazy.debug(
            lambda: f"outbox.claim_due: {len(claimed_ids)}/{len(candidates)} claimed by {worker_id}"
        )
        if not claimed_ids:
            return []

        stmt = (
            select(NotificationOutbox)
            .where(NotificationOutbox.id.in_(claimed_ids))
            .order_by(NotificationOutbox.next_attempt_at.asc(), NotificationOutbox.id.asc())
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    def _held_by(self, entry_id: UUID, worker_id: str, attempts: int) -> tuple[Any, ...]:
        """Match an entry still PROCESSING under this worker's claim."""
        return (
            NotificationOutbox.id == entry_id,
            NotificationOutbox.status == OutboxStatus.PROCESSING,
            NotificationOutbox.claimed_by == worker_id,
            NotificationOutbox.attempts == attempts,
        )

    async def renew_lease(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        worker_id: str,
        attempts: int,
    ) -> bool:
        """Restamp ``last_attempt_at`` on a claimed entry before dispatching it.

        Returns False if the claim is gone: the lease expired and the entry
        was released or claimed again by another worker.
        """
        now = utcnow()
        stmt = (
            update(NotificationOutbox)
            .where(*self._held_by(entry_id, worker_id, attempts))
            .values(last_attempt_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def mark_delivered(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        worker_id: str,
        attempts: int,
    ) -> bool:
        """PROCESSING -> DELIVERED. Returns False if this worker no longer holds the claim."""
        now = utcnow()
        stmt = (
            update(NotificationOutbox)
            .where(*self._held_by(entry_id, worker_id, attempts))
            .values(
                status=OutboxStatus.DELIVERED,
                delivered_at=now,
                last_error=None,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def mark_failed(
        self,
        session: AsyncSession,
        entry_id: UUID,
        *,
        worker_id: str,
        attempts: int,
        error: str,
        backoff_base_seconds: int = 10,
        backoff_max_seconds: int = 300,
    ) -> datetime | None:
        """PROCESSING -> FAILED with exponential backoff.

        Args:
            session: Database session
            entry_id: Entry that failed
            worker_id: Worker that claimed the entry
            attempts: Attempt count stored by the claim (previous attempts + 1)
            error: Failure description (truncated to 1000 characters)
            backoff_base_seconds: Backoff multiplier
            backoff_max_seconds: Backoff cap

        Returns:
            The scheduled ``next_attempt_at``, or None if this worker no
            longer holds the claim.
        """
        now = utcnow()
        delay = compute_backoff_seconds(
            attempts - 1, base=backoff_base_seconds, cap=backoff_max_seconds
        )
        next_attempt_at = now + timedelta(seconds=delay)
        stmt = (
            update(NotificationOutbox)
            .where(*self._held_by(entry_id, worker_id, attempts))
            .values(
                status=OutboxStatus.FAILED,
                next_attempt_at=next_attempt_at,
                last_error=error[:MAX_ERROR_LENGTH],
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return next_attempt_at if result.rowcount == 1 else None

    async def release_expired_leases(
        self,
        session: AsyncSession,
        *,
        timeout_seconds: int,
    ) -> int:
        """Move PROCESSING entries older than the timeout back to FAILED.

        Released entries become due immediately; those that already used
        their last attempt stay FAILED and are no longer selected.
        """
        now = utcnow()
        cutoff = now - timedelta(seconds=timeout_seconds)
        stmt = (
            update(NotificationOutbox)
            .where(
                NotificationOutbox.status == OutboxStatus.PROCESSING,
                NotificationOutbox.last_attempt_at <= cutoff,
            )
            .values(
                status=OutboxStatus.FAILED,
                next_attempt_at=now,
                last_error=LEASE_EXPIRED_ERROR,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def stats(self, session: AsyncSession) -> OutboxStats:
        """Entry counts per status plus the number of exhausted entries."""
        stmt = select(NotificationOutbox.status, func.count()).group_by(NotificationOutbox.status)
        counts = {status: count for status, count in (await session.execute(stmt)).all()}

        exhausted_stmt = (
            select(func.count())
            .select_from(NotificationOutbox)
            .where(
                NotificationOutbox.status == OutboxStatus.FAILED,
                NotificationOutbox.attempts >= NotificationOutbox.max_attempts,
            )
        )
        exhausted = (await session.execute(exhausted_stmt)).scalar_one()

        return OutboxStats(
            pending=counts.get(OutboxStatus.PENDING, 0),
            processing=counts.get(OutboxStatus.PROCESSING, 0),
            delivered=counts.get(OutboxStatus.DELIVERED, 0),
            failed=counts.get(OutboxStatus.FAILED, 0),
            exhausted=exhausted,
        )

    async def list_exhausted(
        self,
        session: AsyncSession,
        *,
        limit: int = 50,
    ) -> Sequence[NotificationOutbox]:
        """FAILED entries that used every attempt, most recently updated first."""
        stmt = (
            select(NotificationOutbox)
            .where(
                NotificationOutbox.status == OutboxStatus.FAILED,
                NotificationOutbox.attempts >= NotificationOutbox.max_attempts,
            )
            .order_by(NotificationOutbox.updated_at.desc())
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_for_entity(
        self,
        session: AsyncSession,
        event_type: str,
        entity_id: str,
    ) -> Sequence[NotificationOutbox]:
        stmt = (
            select(NotificationOutbox)
            .where(
                NotificationOutbox.event_type == event_type,
                NotificationOutbox.entity_id == entity_id,
            )
            .order_by(NotificationOutbox.recipient_id, NotificationOutbox.channel)
        )
        result = await session.execute(stmt)
        return result.scalars().all()


class NotificationRepository(BaseRepository[Notification]):
    """In-app inbox read model."""

    def __init__(self) -> None:
        super().__init__(Notification)

    async def create_once(
        self,
        session: AsyncSession,
        *,
        user_id: str,
        type: str,  # noqa: A002
        title: str,
        message: str,
        resource_type: str | None,
        resource_id: str | None,
        source_key: str | None,
    ) -> Notification:
        """Create an inbox row, or return the row already created for ``source_key``."""
        if source_key is not None:
            existing = await self.get_by(session, Notification.source_key, source_key)
            if existing is not None:
                return existing

        return await self.create(
            session,
            Notification(
                user_id=user_id,
                type=type,
                title=title,
                message=message,
                resource_type=resource_type,
                resource_id=resource_id,
                source_key=source_key,
                is_read=False,
            ),
        )

    async def list_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 50,
        offset: int = 0,
    ) -> Sequence[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc(), Notification.id.desc())
        result = await session.execute(stmt.limit(limit).offset(offset))
        return result.scalars().all()

    async def count_unread(self, session: AsyncSession, user_id: str) -> int:
        stmt = (
            select(func.count())
            .select_from(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        )
        return (await session.execute(stmt)).scalar_one()

    async def mark_read(self, session: AsyncSession, notification_id: UUID, user_id: str) -> bool:
        """Mark one of ``user_id``'s notifications read. False if not found."""
        stmt = (
            update(Notification)
            .where(Notification.id == notification_id, Notification.user_id == user_id)
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount == 1

    async def mark_all_read(self, session: AsyncSession, user_id: str) -> int:
        stmt = (
            update(Notification)
            .where(Notification.user_id == user_id, Notification.is_read.is_(False))
            .values(is_read=True, read_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def delete_read_older_than(self, session: AsyncSession, *, days: int = 30) -> int:
        """Delete read notifications created more than ``days`` ago."""
        cutoff = utcnow() - timedelta(days=days)
        stmt = (
            delete(Notification)
            .where(Notification.is_read.is_(True), Notification.created_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0


_outbox_repository: OutboxRepository | None = None
_notification_repository: NotificationRepository | None = None


def get_outbox_repository() -> OutboxRepository:
    """Get the shared OutboxRepository instance."""
    global _outbox_repository
    if _outbox_repository is None:
        _outbox_repository = OutboxRepository()
    return _outbox_repository


def get_notification_repository() -> NotificationRepository:
    """Get the shared NotificationRepository instance."""
    global _notification_repository
    if _notification_repository is None:
        _notification_repository = NotificationRepository()
    return _notification_repository


__all__ = [
    "LEASE_EXPIRED_ERROR",
    "MAX_ERROR_LENGTH",
    "NotificationRepository",
    "OutboxRepository",
    "compute_backoff_seconds",
    "get_notification_repository",
    "get_outbox_repository",
]
