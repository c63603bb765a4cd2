"""Request-scoped sessions for FastAPI routes."""

from __future__ import annotations

from collections.abc import AsyncIterator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from .engine import get_sessionmaker


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield one session per request, committed when the route returns cleanly.

    Uses the settings stored on ``app.state.settings`` when the lifespan set
    them, otherwise the process settings.
    """

    session_factory = get_sessionmaker(getattr(request.app.state, "settings", None))
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            raise
        await session.commit()


__all__ = ["get_session"]
