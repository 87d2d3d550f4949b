"""Database primitives: declarative base, column types, repository helpers."""

from __future__ import annotations

from .base import Base, TimestampMixin, UUIDv7PKMixin, generate_uuid7, utcnow
from .repository import BaseRepository
from .types import JSONType, UTCDateTime

__all__ = [
    "Base",
    "BaseRepository",
    "JSONType",
    "TimestampMixin",
    "UTCDateTime",
    "UUIDv7PKMixin",
    "generate_uuid7",
    "utcnow",
]
