"""Notification routing and delivery worker settings."""

from __future__ import annotations

import os
import socket
from pathlib import Path
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .sources import create_yaml_source

OpsScope = Literal["landlord", "platform"]


def _default_worker_id() -> str:
    return f"{socket.gethostname()}:{os.getpid()}"


class NotificationSettings(BaseSettings):
    """Outbox delivery worker configuration.

    Environment variables use NOTIFY_ prefix.
    Example: NOTIFY_BATCH_SIZE=50, NOTIFY_MAX_ATTEMPTS=5, NOTIFY_OPS_SCOPE=platform
    """

    enabled: bool = Field(
        default=True,
        description="Run the delivery worker. Routing still records outbox entries when False.",
    )

    # Polling
    batch_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Maximum outbox entries claimed per worker pass",
    )
    poll_interval_seconds: float = Field(
        default=5.0,
        gt=0.0,
        le=300.0,
        description="Sleep between worker passes when the previous pass claimed nothing",
    )
    worker_id: str = Field(
        default_factory=_default_worker_id,
        description="Identifier recorded on claimed entries",
    )

    # Retry
    max_attempts: int = Field(
        default=3,
        ge=1,
        le=50,
        description="Delivery attempts before an entry is left in terminal FAILED",
    )
    backoff_base_seconds: int = Field(
        default=10,
        ge=1,
        description="Backoff multiplier: base * 2^(attempts before the failed one)",
    )
    backoff_max_seconds: int = Field(
        default=300,
        ge=1,
        description="Upper bound on the retry delay",
    )
    processing_timeout_seconds: int = Field(
        default=300,
        ge=10,
        description="PROCESSING entries older than this are released for re-claim",
    )

    # Routing
    ops_scope: OpsScope = Field(
        default="landlord",
        description="Resolve OPS recipients within the landlord org or platform-wide",
    )
    routing_file: Path | None = Field(
        default=None,
        description="YAML file replacing the built-in routing table",
    )

    model_config = SettingsConfigDict(
        env_prefix="NOTIFY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        frozen=True,
        extra="ignore",
        env_ignore_empty=True,
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings source precedence: init > yaml > env > dotenv > secrets."""
        return (
            init_settings,
            create_yaml_source(settings_cls, "notify"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _check_backoff_bounds(self) -> NotificationSettings:
        if self.backoff_base_seconds > self.backoff_max_seconds:
            msg = "backoff_base_seconds must not exceed backoff_max_seconds"
            raise ValueError(msg)
        return self


__all__ = ["NotificationSettings", "OpsScope"]
