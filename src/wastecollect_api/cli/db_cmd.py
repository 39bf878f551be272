"""Database migration CLI commands using Alembic programmatically."""

from typing import TYPE_CHECKING

import typer
from loguru import logger

if TYPE_CHECKING:
    from alembic.config import Config

db_app = typer.Typer()


def _config(alembic_ini: str) -> "Config":
    """Load Alembic configuration from an ini file."""
    from alembic.config import Config

    return Config(alembic_ini)


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    alembic_ini: str = typer.Option("alembic.ini", "--config", help="Path to alembic.ini"),
) -> None:
    """Run database migrations up to the target revision."""
    from alembic import command

    logger.info("Upgrading database to {}", revision)
    command.upgrade(_config(alembic_ini), revision)
    logger.info("Database upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    alembic_ini: str = typer.Option("alembic.ini", "--config", help="Path to alembic.ini"),
) -> None:
    """Rollback database migration to the target revision."""
    from alembic import command

    logger.info("Downgrading database to {}", revision)
    command.downgrade(_config(alembic_ini), revision)
    logger.info("Database downgrade complete")


@db_app.command()
def current(
    alembic_ini: str = typer.Option("alembic.ini", "--config", help="Path to alembic.ini"),
) -> None:
    """Show the current database migration revision."""
    from alembic import command

    command.current(_config(alembic_ini), verbose=True)
