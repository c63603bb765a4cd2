"""One cached async engine and session factory per configured database."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import URL, make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool, StaticPool

from lms_authz.settings import Settings, get_settings

# Alembic runs on blocking drivers; asyncpg URLs migrate through psycopg 3.
_SYNC_DRIVERS = {
    "sqlite": "sqlite",
    "postgres": "postgresql+psycopg",
    "postgresql": "postgresql+psycopg",
}


@dataclass(frozen=True, slots=True)
class _Database:
    key: tuple[Any, ...]
    engine: AsyncEngine
    sessions: async_sessionmaker[AsyncSession]


_current: _Database | None = None


def _settings_key(settings: Settings) -> tuple[Any, ...]:
    return (
        settings.database_url,
        settings.database_echo,
        settings.database_pool_size,
        settings.database_max_overflow,
        settings.database_pool_timeout,
    )


def is_memory_sqlite(url: URL) -> bool:
    if url.get_backend_name() != "sqlite":
        return False
    database = (url.database or "").strip()
    return database in ("", ":memory:") or url.query.get("mode") == "memory"


def prepare_sqlite_file(url: URL) -> None:
    """Create the parent directory of a file-backed SQLite database."""

    database = (url.database or "").strip()
    if url.get_backend_name() != "sqlite" or is_memory_sqlite(url):
        return
    if database.startswith("file:"):
        return
    Path(database).resolve().parent.mkdir(parents=True, exist_ok=True)


def _enable_sqlite_foreign_keys(dbapi_connection: Any, _record: Any) -> None:
    cursor = dbapi_connection.cursor()
    try:
        cursor.execute("PRAGMA foreign_keys=ON")
    finally:
        cursor.close()


def _open(settings: Settings) -> _Database:
    url = make_url(settings.database_url)
    options: dict[str, Any] = {"echo": settings.database_echo, "pool_pre_ping": True}

    sqlite = url.get_backend_name() == "sqlite"
    if sqlite:
        prepare_sqlite_file(url)
        options["connect_args"] = {"check_same_thread": False}
        options["poolclass"] = StaticPool if is_memory_sqlite(url) else NullPool
    else:
        options.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_timeout=settings.database_pool_timeout,
        )

    engine = create_async_engine(url, **options)
    if sqlite:
        event.listen(engine.sync_engine, "connect", _enable_sqlite_foreign_keys)

    sessions = async_sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)
    return _Database(key=_settings_key(settings), engine=engine, sessions=sessions)


def _database(settings: Settings | None) -> _Database:
    global _current
    resolved = settings or get_settings()
    key = _settings_key(resolved)
    if _current is None or _current.key != key:
        if _current is not None:
            _current.engine.sync_engine.dispose()
        _current = _open(resolved)
    return _current


def get_engine(settings: Settings | None = None) -> AsyncEngine:
    return _database(settings).engine


def get_sessionmaker(settings: Settings | None = None) -> async_sessionmaker[AsyncSession]:
    return _database(settings).sessions


def reset_database_state() -> None:
    """Drop the cached engine and forget which databases were migrated."""

    global _current
    if _current is not None:
        _current.engine.sync_engine.dispose()
    _current = None

    from .migrations import forget_migrated_databases

    forget_migrated_databases()


def sync_database_url(database_url: str) -> str:
    """Return the blocking-driver URL Alembic migrates ``database_url`` through."""

    url = make_url(database_url)
    backend = url.get_backend_name()
    try:
        drivername = _SYNC_DRIVERS[backend]
    except KeyError:
        msg = f"Unsupported database backend '{backend}'; use SQLite or PostgreSQL"
        raise ValueError(msg) from None
    return url.set(drivername=drivername).render_as_string(hide_password=False)


__all__ = [
    "get_engine",
    "get_sessionmaker",
    "is_memory_sqlite",
    "prepare_sqlite_file",
    "reset_database_state",
    "sync_database_url",
]
