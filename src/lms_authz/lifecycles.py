"""Startup helpers shared by the CLI and FastAPI applications."""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.routing import Lifespan
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.common.logging import log_context, setup_logging
from lms_authz.db import ensure_database_ready, get_engine, get_sessionmaker
from lms_authz.features.rbac.sync import SyncReport, sync_permission_registry
from lms_authz.settings import Settings, get_settings

logger = logging.getLogger(__name__)


@asynccontextmanager
async def open_session(settings: Settings | None = None) -> AsyncIterator[AsyncSession]:
    """Yield an ``AsyncSession`` with commit/rollback semantics."""

    resolved = settings or get_settings()
    await ensure_database_ready(resolved)
    session_factory = get_sessionmaker(settings=resolved)
    session = session_factory()
    try:
        yield session
        if session.in_transaction():
            await session.commit()
    except Exception:
        if session.in_transaction():
            await session.rollback()
        raise
    finally:
        await session.close()


async def reconcile(settings: Settings | None = None) -> SyncReport:
    """Run registry reconciliation in its own transaction."""

    resolved = settings or get_settings()
    async with open_session(resolved) as session:
        report = await sync_permission_registry(session, settings=resolved)
    if report.generated_password is not None:
        logger.warning(
            "rbac.sync.bootstrap.password_generated",
            extra=log_context(email=resolved.bootstrap_superadmin_email),
        )
    return report


async def startup(settings: Settings | None = None) -> SyncReport | None:
    """Configure logging, migrate the database and reconcile the registry.

    Raises :class:`~lms_authz.features.rbac.errors.ReconciliationError` when
    reconciliation fails; the process must not serve requests in that case.
    """

    resolved = settings or get_settings()
    setup_logging(resolved)
    safe_url = make_url(resolved.database_url).render_as_string(hide_password=True)
    logger.info("lms_authz.startup", extra=log_context(database_url=safe_url))

    await ensure_database_ready(resolved)
    if not resolved.sync_on_startup:
        logger.info("rbac.sync.skipped", extra=log_context(sync_on_startup=False))
        return None
    return await reconcile(resolved)


def create_lifespan(*, settings: Settings | None = None) -> Lifespan[FastAPI]:
    """Return a FastAPI lifespan that runs :func:`startup` before serving."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        resolved = settings or get_settings()
        app.state.settings = resolved
        app.state.sync_report = await startup(resolved)
        try:
            yield
        finally:
            await get_engine(resolved).dispose()
            logger.info("lms_authz.shutdown")

    return lifespan


__all__ = ["create_lifespan", "open_session", "reconcile", "startup"]
