"""Database engine, session and migration helpers."""

from __future__ import annotations

from .engine import (
    get_engine,
    get_sessionmaker,
    is_memory_sqlite,
    prepare_sqlite_file,
    reset_database_state,
    sync_database_url,
)
from .metadata import NAMING_CONVENTION, Base, metadata
from .migrations import (
    alembic_config,
    apply_migrations,
    downgrade_database,
    ensure_database_ready,
    forget_migrated_databases,
)
from .mixins import TimestampMixin, new_id, ulid_primary_key, utc_now
from .session import get_session

__all__ = [
    "Base",
    "NAMING_CONVENTION",
    "TimestampMixin",
    "alembic_config",
    "apply_migrations",
    "downgrade_database",
    "ensure_database_ready",
    "forget_migrated_databases",
    "get_engine",
    "get_session",
    "get_sessionmaker",
    "is_memory_sqlite",
    "metadata",
    "new_id",
    "prepare_sqlite_file",
    "reset_database_state",
    "sync_database_url",
    "ulid_primary_key",
    "utc_now",
]
