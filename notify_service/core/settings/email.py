"""Email transport settings.

Environment variables use EMAIL_ prefix.
Example: EMAIL_SMTP_HOST=smtp.example.com, EMAIL_SMTP_PORT=587
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .sources import create_yaml_source


class EmailSettings(BaseSettings):
    """Email transport configuration.

    Backends:
    - smtp: deliver through an SMTP relay (aiosmtplib)
    - console: log the rendered message and report success (development)

    With ``backend="auto"`` the SMTP backend is used when ``smtp_host`` is
    set and the console backend otherwise.
    """

    backend: Literal["auto", "smtp", "console"] = Field(
        default="auto",
        description="Email backend selection",
    )

    smtp_host: str | None = Field(default=None, max_length=255, description="SMTP server hostname")
    smtp_port: int = Field(
        default=587,
        ge=1,
        le=65535,
        description="SMTP server port (587 for STARTTLS, 465 for SSL, 25 for plain)",
    )
    smtp_username: str | None = Field(default=None, max_length=255, description="SMTP username")
    smtp_password: SecretStr | None = Field(default=None, description="SMTP password")

    use_tls: bool = Field(default=True, description="Use STARTTLS")
    use_ssl: bool = Field(default=False, description="Use implicit SSL/TLS")

    from_email: str = Field(
        default="noreply@propertymanager.com",
        description="Sender address",
    )
    from_name: str = Field(default="Property Manager", max_length=100, description="Sender name")

    timeout: float = Field(default=30.0, ge=1.0, le=300.0, description="SMTP timeout in seconds")

    model_config = SettingsConfigDict(
        env_prefix="EMAIL_",
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
            create_yaml_source(settings_cls, "email"),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _validate_tls(self) -> EmailSettings:
        if self.use_tls and self.use_ssl:
            msg = "use_tls and use_ssl are mutually exclusive"
            raise ValueError(msg)
        if self.backend == "smtp" and not self.smtp_host:
            msg = "smtp_host is required for the smtp backend"
            raise ValueError(msg)
        return self

    @property
    def resolved_backend(self) -> Literal["smtp", "console"]:
        """Backend actually used after resolving ``auto``."""
        if self.backend == "auto":
            return "smtp" if self.smtp_host else "console"
        return self.backend

    @property
    def sender(self) -> str:
        """Formatted From header."""
        if self.from_name:
            return f"{self.from_name} <{self.from_email}>"
        return self.from_email


__all__ = ["EmailSettings"]
