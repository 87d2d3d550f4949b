"""Webhook delivery configuration settings.

Controls the HTTP client used to post signed notification payloads to
recipient-configured endpoints.
"""

from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

from .sources import create_yaml_source


class WebhookSettings(BaseSettings):
    """Configuration for outbound notification webhooks."""

    timeout_seconds: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Timeout for webhook HTTP requests (seconds)",
    )
    connect_timeout_seconds: int = Field(
        default=10,
        ge=1,
        le=60,
        description="Connection timeout for webhook HTTP requests (seconds)",
    )
    signing_secret: SecretStr = Field(
        default=SecretStr(""),
        description="HMAC-SHA256 secret used when the recipient has no secret of their own",
    )
    user_agent: str = Field(
        default="notify-service-webhooks/1.0",
        description="User-Agent header sent with every delivery",
    )
    max_response_body_chars: int = Field(
        default=10_000,
        ge=0,
        description="Response body characters kept on the delivery result",
    )

    model_config = SettingsConfigDict(
        env_prefix="WEBHOOK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_yaml_source(settings_cls, "webhooks"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


__all__ = ["WebhookSettings"]
