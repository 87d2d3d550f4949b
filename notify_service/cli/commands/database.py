"""Database commands.

Example:bash
    # Create missing tables without running migrations (local/dev)
    notify-service db init

    # Apply migrations
    notify-service db upgrade
"""

import sys

import click
from sqlalchemy.exc import SQLAlchemyError

from notify_service.cli.utils import coro, error, info, success
from notify_service.core.settings import get_db_settings


@click.group(name="db")
def db() -> None:
    """Database management commands."""


@db.command()
@click.option("--no-create", is_flag=True, help="Only verify connectivity")
@coro
async def init(no_create: bool) -> None:
    """Verify connectivity and create missing tables."""
    from notify_service.infra.database import close_database, init_database

    db_settings = get_db_settings()
    info(f"Connecting to: {db_settings.url.split('@')[-1]}")

    try:
        await init_database(create_tables=not no_create)
    except (SQLAlchemyError, OSError) as e:
        error(f"Failed to initialize database: {e}")
        sys.exit(1)
    finally:
        await close_database()

    success("Database ready" if not no_create else "Database connected successfully!")


@db.command()
@click.option("--revision", default="head", show_default=True, help="Target revision")
@click.option("--sql", is_flag=True, help="Print SQL instead of executing it")
@coro
async def upgrade(revision: str, sql: bool) -> None:
    """Apply Alembic migrations."""
    from alembic.util.exc import CommandError

    from notify_service.infra.database.migrations import get_alembic_commands

    try:
        output = await get_alembic_commands().upgrade(revision, sql=sql)
    except (CommandError, SQLAlchemyError, OSError) as e:
        error(f"Migration failed: {e}")
        sys.exit(1)

    if output:
        click.echo(output)
    success(f"Database upgraded to {revision}")


@db.command()
@coro
async def current() -> None:
    """Show the current migration revision."""
    from notify_service.infra.database.migrations import get_alembic_commands

    output = await get_alembic_commands().current(verbose=True)
    click.echo(output or "No revision applied")
