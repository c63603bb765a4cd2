"""Query helpers for working with ``User`` records."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from .models import User


def _canonical_email(value: str) -> str:
    return value.strip().lower()


class UsersRepository:
    """Persistence helpers for the user rows the authorization core reads."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, user_id: str) -> User | None:
        stmt = select(User).where(User.id == user_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_email(self, email: str) -> User | None:
        stmt = select(User).where(User.email_canonical == _canonical_email(email))
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(
        self,
        *,
        email: str,
        role_id: str,
        password_hash: str | None = None,
        display_name: str | None = None,
    ) -> User:
        user = User(
            email=email,
            role_id=role_id,
            password_hash=password_hash,
            display_name=display_name,
        )
        self._session.add(user)
        await self._session.flush()
        await self._session.refresh(user)
        return user

    async def set_role(self, user: User, *, role_id: str) -> User:
        """Point ``user`` at ``role_id``; permission overrides are left untouched."""

        user.role_id = role_id
        await self._session.flush()
        await self._session.refresh(user, attribute_names=["role"])
        return user


__all__ = ["UsersRepository"]
