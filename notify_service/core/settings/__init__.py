"""Modular Pydantic Settings v2 configuration.

Settings are split by domain (db, logging, notify, email, webhooks), each an
immutable model read through an LRU-cached loader.

Configuration precedence (highest to lowest):
    1. init kwargs (testing/overrides)
    2. YAML/conf.d files (optional, local/dev)
    3. Environment variables
    4. .env file
    5. secrets_dir
"""

from __future__ import annotations

from .database import DatabaseSettings
from .email import EmailSettings
from .loader import (
    clear_all_caches,
    get_db_settings,
    get_email_settings,
    get_logging_settings,
    get_notification_settings,
    get_webhook_settings,
)
from .logs import LoggingSettings
from .notifications import NotificationSettings
from .webhooks import WebhookSettings

__all__ = [
    "DatabaseSettings",
    "EmailSettings",
    "LoggingSettings",
    "NotificationSettings",
    "WebhookSettings",
    "clear_all_caches",
    "get_db_settings",
    "get_email_settings",
    "get_logging_settings",
    "get_notification_settings",
    "get_webhook_settings",
]
