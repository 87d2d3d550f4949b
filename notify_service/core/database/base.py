"""Declarative base and composable model mixins.

Examples:
    Time-ordered primary key with timestamps:
    class NotificationOutbox(Base, UUIDv7PKMixin, TimestampMixin):
        __tablename__ = "notification_outbox"
        channel: Mapped[str] = mapped_column(String(20))
"""

from __future__ import annotations

import os
import time
import uuid
from datetime import UTC, datetime

from sqlalchemy import MetaData
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.sql import func

from notify_service.core.database.types import UTCDateTime

# Predictable constraint names for migrations
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    """Declarative base for every notify-service model."""

    metadata = MetaData(naming_convention=NAMING_CONVENTION)


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def generate_uuid7() -> uuid.UUID:
    """Generate a time-ordered UUID (version 7).

    The first 48 bits hold the Unix timestamp in milliseconds, so ids sort
    in creation order.
    """
    timestamp_ms = int(time.time() * 1000)
    rand = os.urandom(10)

    raw = bytearray(16)
    raw[0:6] = timestamp_ms.to_bytes(6, byteorder="big")
    raw[6] = (rand[0] & 0x0F) | 0x70
    raw[7] = rand[1]
    raw[8] = (rand[2] & 0x3F) | 0x80
    raw[9:16] = rand[3:10]
    return uuid.UUID(bytes=bytes(raw))


class UUIDv7PKMixin:
    """UUID v7 primary key (time-sortable)."""

    __allow_unmapped__ = True

    id: Mapped[uuid.UUID] = mapped_column(
        primary_key=True,
        default=generate_uuid7,
        comment="UUID v7 primary key (time-sortable)",
    )


class TimestampMixin:
    """created_at / updated_at tracking in UTC."""

    __allow_unmapped__ = True

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        nullable=False,
        comment="Timestamp of record creation",
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp of last update",
    )


__all__ = [
    "NAMING_CONVENTION",
    "Base",
    "TimestampMixin",
    "UUIDv7PKMixin",
    "generate_uuid7",
    "utcnow",
]
