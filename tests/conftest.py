"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings defaults so tests need no external infrastructure
    - Database Fixtures: in-memory SQLite engine, session and session factory
    - Notification Fixtures: membership/contact/preference factories and events
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncEngine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LOG_JSON_LOGS", "false")
os.environ.setdefault("LOG_FILE_ENABLED", "false")
os.environ.setdefault("LOG_CONSOLE_ENABLED", "false")
os.environ.setdefault("NOTIFY_WORKER_ID", "test-worker")
os.environ.setdefault("EMAIL_BACKEND", "console")


@pytest.fixture(autouse=True)
def reset_cached_settings():
    """Clear LRU-cached settings and the routing table around every test."""
    from notify_service.core.settings import clear_all_caches
    from notify_service.features.notifications.routing import get_routing_table

    clear_all_caches()
    get_routing_table.cache_clear()
    yield
    clear_all_caches()
    get_routing_table.cache_clear()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine() -> AsyncGenerator[AsyncEngine]:
    """Async engine over a single shared in-memory SQLite connection.

    ``StaticPool`` keeps every session on the same connection so sessions
    opened by the worker see the tables and rows created by the test.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
async def db_session_maker(db_engine: AsyncEngine) -> AsyncGenerator[async_sessionmaker[AsyncSession]]:
    """Create all tables and yield a session factory bound to the test engine."""
    from notify_service.core.database import Base
    from notify_service.features.notifications import models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def db_session(
    db_session_maker: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Async session with tables created; rolled back after the test.

    Example:
        async def test_route(db_session):
            await route_event(db_session, event)
            await db_session.commit()
    """
    async with db_session_maker() as session:
        try:
            yield session
        finally:
            await session.rollback()


@pytest.fixture
def session_factory(db_session_maker: async_sessionmaker[AsyncSession]):
    """Context-manager factory in the shape ``DeliveryWorker`` expects."""

    @asynccontextmanager
    async def _factory() -> AsyncGenerator[AsyncSession]:
        async with db_session_maker() as session:
            yield session

    return _factory


# ============================================================================
# Notification Fixtures
# ============================================================================


@pytest.fixture
def add_member(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    """Insert an organisation membership.

    Example:
        await add_member("orgA", "u1", "LANDLORD")
    """
    from notify_service.features.notifications.models import OrgMember

    async def _add(org_id: str, user_id: str, role: str) -> None:
        db_session.add(OrgMember(org_id=org_id, user_id=user_id, role=role))
        await db_session.flush()

    return _add


@pytest.fixture
def add_contact(db_session: AsyncSession) -> Callable[..., Awaitable[None]]:
    """Insert a user contact row for the email channel."""
    from notify_service.features.notifications.models import UserContact

    async def _add(user_id: str, email: str | None, display_name: str | None = None) -> None:
        db_session.add(UserContact(user_id=user_id, email=email, display_name=display_name))
        await db_session.flush()

    return _add


class RecordingTransport:
    """Email transport that records messages and returns a canned outcome."""

    def __init__(self) -> None:
        self.sent: list = []
        self.error: str | None = None
        self.raises: Exception | None = None

    @property
    def provider_name(self) -> str:
        return "recording"

    async def send(self, message):
        from notify_service.infra.email import EmailDeliveryResult

        if self.raises is not None:
            raise self.raises
        self.sent.append(message)
        if self.error is not None:
            return EmailDeliveryResult.failure_result(self.provider_name, self.error, "provider")
        return EmailDeliveryResult.success_result(f"msg-{len(self.sent)}", self.provider_name)


@pytest.fixture
def email_transport() -> RecordingTransport:
    """Email transport that records what it was asked to send.

    Example:
        email_transport.error = "mailbox unavailable"  # make sends fail
    """
    return RecordingTransport()


@pytest.fixture
def notification_settings():
    """NotificationSettings with test-friendly values."""
    from notify_service.core.settings import NotificationSettings

    return NotificationSettings(
        worker_id="test-worker",
        batch_size=100,
        poll_interval_seconds=0.01,
        max_attempts=3,
    )


@pytest.fixture
def ticket_created_event():
    """The canonical ticket.created event for landlord org ``orgA``."""
    from notify_service.features.notifications.events import NotificationEvent, TicketPayload

    return NotificationEvent(
        type="ticket.created",
        entity_id="t1",
        entity_version=1,
        landlord_id="orgA",
        payload=TicketPayload(title="Leaking tap", priority="HIGH"),
    )
