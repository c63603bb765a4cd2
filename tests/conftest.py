"""Shared pytest fixtures for the authorization core tests."""

from __future__ import annotations

import logging
import os
from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.db import (
    apply_migrations,
    downgrade_database,
    get_sessionmaker,
    reset_database_state,
)
from lms_authz.features.rbac.models import Permission, Role, RolePermission, UserPermissionOverride
from lms_authz.features.rbac.sync import SyncReport, sync_permission_registry
from lms_authz.features.users.models import User
from lms_authz.features.users.repository import UsersRepository
from lms_authz.settings import Settings, get_settings, reload_settings

_ENV_VARS = (
    "LMS_AUTHZ_DATABASE_URL",
    "LMS_AUTHZ_BOOTSTRAP_SUPERADMIN_EMAIL",
    "LMS_AUTHZ_BOOTSTRAP_SUPERADMIN_PASSWORD",
)


def plain_hasher(password: str) -> str:
    """Cheap stand-in for scrypt so fixtures stay fast."""

    return f"plain${password}"


@pytest.fixture(scope="session")
def _database_url(tmp_path_factory: pytest.TempPathFactory) -> str:
    """Provide a file-backed SQLite database URL for the test session."""

    db_path = tmp_path_factory.mktemp("lms-authz-db") / "authz.sqlite"
    return f"sqlite+aiosqlite:///{db_path}"


@pytest.fixture(scope="session", autouse=True)
def _configure_database(_database_url: str) -> Iterator[None]:
    """Apply Alembic migrations against the ephemeral test database."""

    for env_var in _ENV_VARS:
        os.environ.pop(env_var, None)
    os.environ["LMS_AUTHZ_DATABASE_URL"] = _database_url
    settings = reload_settings()
    assert settings.database_url == _database_url
    reset_database_state()

    apply_migrations(settings)

    yield

    downgrade_database(settings, "base")
    reset_database_state()
    os.environ.pop("LMS_AUTHZ_DATABASE_URL", None)
    reload_settings()


@pytest.fixture()
def settings() -> Settings:
    return get_settings()


@pytest.fixture()
def password_hasher() -> Callable[[str], str]:
    return plain_hasher


async def _truncate(session: AsyncSession) -> None:
    for model in (UserPermissionOverride, User, RolePermission, Role, Permission):
        await session.execute(delete(model))
    await session.commit()


@pytest_asyncio.fixture()
async def session(settings: Settings) -> AsyncIterator[AsyncSession]:
    """Yield a session against an empty schema; all rows are removed afterwards."""

    session_factory = get_sessionmaker(settings=settings)
    async with session_factory() as db_session:
        try:
            yield db_session
        finally:
            await db_session.rollback()

    async with session_factory() as cleanup:
        await _truncate(cleanup)


@pytest_asyncio.fixture()
async def synced(session: AsyncSession, settings: Settings) -> SyncReport:
    """Reconcile the registry (and bootstrap superadmin) into the test database."""

    report = await sync_permission_registry(
        session, settings=settings, password_hasher=plain_hasher
    )
    await session.commit()
    return report


@pytest_asyncio.fixture()
async def make_user(
    session: AsyncSession, synced: SyncReport
) -> Callable[..., Awaitable[User]]:
    """Return a factory creating committed users with the given role name."""

    users = UsersRepository(session)

    async def _make(role: str = "student", *, email: str | None = None) -> User:
        role_id = await session.scalar(select(Role.id).where(Role.name == role))
        assert role_id is not None, f"role {role} missing"
        user = await users.create(
            email=email or f"{role}-{uuid4().hex[:8]}@example.test",
            role_id=role_id,
            password_hash=plain_hasher("password"),
        )
        await session.commit()
        return user

    return _make


@pytest.fixture()
def restore_root_logger() -> Iterator[None]:
    """Undo ``setup_logging`` so pytest's capture handlers stay in place."""

    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers = handlers
    root.setLevel(level)
    if hasattr(root, "_lms_authz_configured"):
        delattr(root, "_lms_authz_configured")
