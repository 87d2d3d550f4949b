"""Minimal generic repository for SQLAlchemy models.

Provides a few CRUD helpers with explicit session passing. For anything more
specific use the session directly; this is a convenience, not a cage.

Example:
    class PreferenceRepository(BaseRepository[NotificationPreference]):
        async def for_recipient(self, session, recipient_id):
            return await self.get_by(session, NotificationPreference.recipient_id, recipient_id)
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from notify_service.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from sqlalchemy.ext.asyncio import AsyncSession
    from sqlalchemy.orm import InstrumentedAttribute


class BaseRepository[T]:
    """Generic repository over one mapped model.

    Provides:
        - get_by(session, attr, value) -> T | None
        - create(session, instance) -> T
        - insert_ignore_conflicts(session, rows, conflict_column, returning) -> list
    """

    __slots__ = ("_lazy", "model")

    def __init__(self, model: type[T]) -> None:
        self.model = model
        self._lazy = get_lazy_logger(f"repository.{model.__name__}")

    async def get_by(
        self,
        session: AsyncSession,
        attr: InstrumentedAttribute[Any],
        value: Any,
    ) -> T | None:
        """Get entity by an arbitrary (unique) attribute."""
        result = await session.execute(select(self.model).where(attr == value))
        instance = result.scalar_one_or_none()
        self._lazy.debug(
            lambda: f"db.get_by: {self.model.__name__}.{attr.key}={value!r} -> "
            f"{'found' if instance else 'not found'}"
        )
        return instance

    async def create(self, session: AsyncSession, instance: T) -> T:
        """Add, flush and refresh a new entity."""
        session.add(instance)
        await session.flush()
        await session.refresh(instance)
        self._lazy.debug(
            lambda: f"db.create: {self.model.__name__}(id={getattr(instance, 'id', None)})"
        )
        return instance

    async def insert_ignore_conflicts(
        self,
        session: AsyncSession,
        rows: Iterable[dict[str, Any]],
        *,
        conflict_column: str,
        returning: InstrumentedAttribute[Any],
    ) -> Sequence[Any]:
        """Insert rows in one statement, skipping rows that hit a unique conflict.

        Uses ``ON CONFLICT (...) DO NOTHING`` on PostgreSQL and SQLite so a
        uniqueness violation from a concurrent writer is reported as a skipped
        row instead of an error.

        Args:
            session: Database session
            rows: Column-value dicts (every row must carry the same keys)
            conflict_column: Unique column the conflict target refers to
            returning: Column returned for each row actually inserted

        Returns:
            Values of ``returning`` for inserted rows only.
        """
        values = list(rows)
        if not values:
            return []

        dialect = session.get_bind().dialect.name
        if dialect == "postgresql":
            stmt = pg_insert(self.model).values(values)
            stmt = stmt.on_conflict_do_nothing(index_elements=[conflict_column])
        elif dialect == "sqlite":
            stmt = sqlite_insert(self.model).values(values)
            stmt = stmt.on_conflict_do_nothing(index_elements=[conflict_column])
        else:
            stmt = insert(self.model).values(values)

        result = await session.execute(stmt.returning(returning))
        inserted = result.scalars().all()

        self._lazy.debug(
            lambda: f"db.insert_ignore_conflicts: {self.model.__name__} -> "
            f"{len(inserted)}/{len(values)} inserted"
        )
        return inserted


__all__ = ["BaseRepository"]
