"""Helpers for preparing the database before serving authorization queries."""

from __future__ import annotations

import asyncio
import logging

from alembic import command
from alembic.config import Config
from sqlalchemy.engine import Connection, make_url

from lms_authz.paths import MIGRATIONS_DIR
from lms_authz.settings import Settings, get_settings

from .engine import get_engine, is_memory_sqlite, prepare_sqlite_file, sync_database_url

logger = logging.getLogger(__name__)

_MIGRATION_LOCK = asyncio.Lock()
_MIGRATED_URLS: set[str] = set()


def alembic_config(settings: Settings | None = None) -> Config:
    """Return an Alembic ``Config`` pointing at the packaged migrations."""

    resolved = settings or get_settings()
    config = Config()
    config.set_main_option("script_location", str(MIGRATIONS_DIR))
    config.set_main_option(
        "sqlalchemy.url",
        sync_database_url(resolved.database_url).replace("%", "%%"),
    )
    return config


def _upgrade_database(settings: Settings, connection: Connection | None = None) -> None:
    config = alembic_config(settings)
    if connection is not None:
        config.attributes["connection"] = connection
    command.upgrade(config, "head")


def apply_migrations(settings: Settings | None = None) -> None:
    """Upgrade the configured database to the latest schema revision."""

    resolved = settings or get_settings()
    prepare_sqlite_file(make_url(resolved.database_url))

    _upgrade_database(resolved)


def downgrade_database(settings: Settings | None = None, revision: str = "base") -> None:
    """Downgrade the configured database to ``revision``."""

    command.downgrade(alembic_config(settings), revision)


async def ensure_database_ready(settings: Settings | None = None) -> None:
    """Create the database and apply migrations if needed."""

    resolved = settings or get_settings()
    database_url = resolved.database_url

    async with _MIGRATION_LOCK:
        if database_url in _MIGRATED_URLS:
            return

        url = make_url(database_url)

        if is_memory_sqlite(url):
            engine = get_engine(resolved)

            async with engine.begin() as connection:
                await connection.run_sync(
                    lambda sync_connection: _upgrade_database(
                        resolved, connection=sync_connection
                    )
                )
        else:
            await asyncio.to_thread(apply_migrations, resolved)
        _MIGRATED_URLS.add(database_url)
        logger.info("db.migrations.applied", extra={"backend": url.get_backend_name()})


def forget_migrated_databases() -> None:
    """Make the next ``ensure_database_ready`` call run migrations again."""

    _MIGRATED_URLS.clear()


__all__ = [
    "alembic_config",
    "apply_migrations",
    "downgrade_database",
    "ensure_database_ready",
    "forget_migrated_databases",
]
