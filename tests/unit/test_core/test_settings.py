"""Unit tests for modular Pydantic Settings v2."""
from __future__ import annotations

import pytest
from pydantic import ValidationError

from notify_service.core.settings import (
    DatabaseSettings,
    EmailSettings,
    NotificationSettings,
    WebhookSettings,
)
from notify_service.core.settings.database import SQLITE_FALLBACK_URL
from notify_service.core.settings.loader import (
    clear_all_caches,
    get_notification_settings,
    get_webhook_settings,
)


@pytest.mark.unit
class TestNotificationSettings:
    """Test suite for NotificationSettings."""

    def test_defaults(self):
        settings = NotificationSettings()

        assert settings.enabled is True
        assert settings.batch_size == 100
        assert settings.max_attempts == 3
        assert settings.backoff_base_seconds == 10
        assert settings.backoff_max_seconds == 300
        assert settings.processing_timeout_seconds == 300
        assert settings.ops_scope == "landlord"
        assert settings.routing_file is None

    def test_worker_id_from_env(self):
        """conftest sets NOTIFY_WORKER_ID."""
        assert NotificationSettings().worker_id == "test-worker"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("NOTIFY_BATCH_SIZE", "25")
        monkeypatch.setenv("NOTIFY_OPS_SCOPE", "platform")

        settings = NotificationSettings()

        assert settings.batch_size == 25
        assert settings.ops_scope == "platform"

    def test_frozen(self):
        settings = NotificationSettings()

        with pytest.raises(ValidationError):
            settings.batch_size = 1

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"batch_size": 0},
            {"max_attempts": 0},
            {"ops_scope": "galaxy"},
            {"backoff_base_seconds": 600, "backoff_max_seconds": 300},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValidationError):
            NotificationSettings(**kwargs)

    def test_yaml_source(self, tmp_path, monkeypatch):
        """conf/notify.yaml is read; conf.d files override it."""
        (tmp_path / "notify.yaml").write_text("batch_size: 10\nmax_attempts: 4\n")
        (tmp_path / "notify.d").mkdir()
        (tmp_path / "notify.d" / "10-local.yaml").write_text("batch_size: 20\n")
        monkeypatch.setenv("NOTIFY_CONFIG_DIR", str(tmp_path))

        settings = NotificationSettings()

        assert settings.batch_size == 20
        assert settings.max_attempts == 4

    def test_loader_is_cached(self):
        first = get_notification_settings()

        assert get_notification_settings() is first
        clear_all_caches()
        assert get_notification_settings() is not first


@pytest.mark.unit
class TestDatabaseSettings:
    """Test suite for DatabaseSettings."""

    def test_url_from_env(self):
        """conftest points DB_DATABASE_URL at in-memory SQLite."""
        settings = DatabaseSettings()

        assert settings.url == "sqlite+aiosqlite:///:memory:"
        assert settings.is_sqlite is True

    def test_components_build_postgres_url(self, monkeypatch):
        monkeypatch.delenv("DB_DATABASE_URL", raising=False)

        settings = DatabaseSettings(host="db", user="notify", password="p@ss", name="n")

        assert settings.url.startswith("postgresql+psycopg://notify:p%40ss@db:5432/n")
        assert "pool_size" in settings.sqlalchemy_engine_kwargs()

    def test_sqlite_fallback(self, monkeypatch):
        monkeypatch.delenv("DB_DATABASE_URL", raising=False)

        settings = DatabaseSettings()

        assert settings.url == SQLITE_FALLBACK_URL
        assert settings.sqlalchemy_engine_kwargs() == {"echo": False}


@pytest.mark.unit
class TestEmailSettings:
    """Test suite for EmailSettings."""

    def test_console_backend_from_env(self):
        assert EmailSettings().resolved_backend == "console"

    def test_auto_picks_smtp_with_host(self):
        settings = EmailSettings(backend="auto", smtp_host="smtp.example.com")

        assert settings.resolved_backend == "smtp"

    def test_smtp_backend_requires_host(self):
        with pytest.raises(ValidationError):
            EmailSettings(backend="smtp")

    def test_tls_and_ssl_exclusive(self):
        with pytest.raises(ValidationError):
            EmailSettings(use_tls=True, use_ssl=True)


@pytest.mark.unit
class TestWebhookSettings:
    """Test suite for WebhookSettings."""

    def test_secret_not_leaked_in_repr(self):
        settings = WebhookSettings(signing_secret="s3cret")

        assert "s3cret" not in repr(settings)
        assert settings.signing_secret.get_secret_value() == "s3cret"

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("WEBHOOK_TIMEOUT_SECONDS", "5")

        assert get_webhook_settings().timeout_seconds == 5
