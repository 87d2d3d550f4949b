"""Programmatic Alembic commands.

Example:
    from notify_service.infra.database.migrations import get_alembic_commands

    commands = get_alembic_commands()
    output = await commands.upgrade("head")
"""

from __future__ import annotations

import asyncio
import io
import logging
from dataclasses import dataclass
from pathlib import Path

from alembic import command
from alembic.config import Config

logger = logging.getLogger(__name__)

DEFAULT_SCRIPT_LOCATION = str(Path(__file__).resolve().parents[3] / "alembic")


@dataclass
class AlembicCommandConfig:
    """Configuration for Alembic commands.

    Attributes:
        url: Database URL handed to env.py (defaults to DatabaseSettings.url)
        script_location: Path to the alembic scripts directory
    """

    url: str | None = None
    script_location: str = DEFAULT_SCRIPT_LOCATION

    def get_alembic_config(self, output_buffer: io.StringIO | None = None) -> Config:
        config = Config(stdout=output_buffer or io.StringIO())
        config.set_main_option("script_location", self.script_location)
        if self.url:
            config.attributes["url"] = self.url
        return config


class AlembicCommands:
    """Alembic operations run in a worker thread so the event loop stays free."""

    def __init__(self, config: AlembicCommandConfig) -> None:
        self.config = config

    async def upgrade(self, revision: str = "head", *, sql: bool = False) -> str:
        """Upgrade the database to ``revision``; returns alembic's output."""
        logger.info("Upgrading database", extra={"revision": revision, "operation": "db.upgrade"})
        output = io.StringIO()
        alembic_config = self.config.get_alembic_config(output)
        await asyncio.to_thread(command.upgrade, alembic_config, revision, sql=sql)
        return output.getvalue()

    async def current(self, *, verbose: bool = False) -> str:
        """Current revision of the database."""
        output = io.StringIO()
        alembic_config = self.config.get_alembic_config(output)
        await asyncio.to_thread(command.current, alembic_config, verbose=verbose)
        return output.getvalue()


def get_alembic_commands(url: str | None = None) -> AlembicCommands:
    return AlembicCommands(AlembicCommandConfig(url=url))


__all__ = ["AlembicCommandConfig", "AlembicCommands", "get_alembic_commands"]
