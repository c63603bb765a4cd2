"""Per-user permission grants and blocks."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from sqlalchemy import delete, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.common.logging import log_context
from lms_authz.db import utc_now
from lms_authz.features.users.models import User

from .errors import UnknownPermissionError, UserNotFoundError
from .models import OverrideKind, Permission, UserPermissionOverride
from .registry import collect_permission_names
from .resolver import OverrideSet
from .schemas import OverrideChangeRead

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite.insert,
    "postgresql": postgresql.insert,
}


@dataclass(frozen=True)
class OverrideChange:
    """Outcome of one override mutation for a ``(user, permission)`` pair."""

    user_id: str
    permission: str
    previous: OverrideKind | None
    current: OverrideKind | None
    changed: bool

    def to_schema(self) -> OverrideChangeRead:
        return OverrideChangeRead(
            user_id=self.user_id,
            permission=self.permission,
            previous=self.previous.value if self.previous else None,
            current=self.current.value if self.current else None,
            changed=self.changed,
        )


class OverrideStore:
    """Read and write ``user_permission_overrides`` rows.

    Each ``(user_id, permission_id)`` pair holds at most one row, so a pair is
    either absent, granted or blocked. Writes are single statements and the
    caller owns the transaction.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def overrides_for(self, user_id: str) -> OverrideSet:
        stmt = (
            select(Permission.name, UserPermissionOverride.kind)
            .join(Permission, Permission.id == UserPermissionOverride.permission_id)
            .where(UserPermissionOverride.user_id == user_id)
        )
        result = await self._session.execute(stmt)
        grants: set[str] = set()
        blocks: set[str] = set()
        for name, kind in result.all():
            if kind == OverrideKind.GRANT:
                grants.add(name)
            else:
                blocks.add(name)
        return OverrideSet(grants=frozenset(grants), blocks=frozenset(blocks))

    async def grant(
        self, user_id: str, permission_name: str, *, actor_id: str | None = None
    ) -> OverrideChange:
        """Grant ``permission_name``; an existing block for the pair is replaced."""

        return await self._set(user_id, permission_name, OverrideKind.GRANT, actor_id)

    async def block(
        self, user_id: str, permission_name: str, *, actor_id: str | None = None
    ) -> OverrideChange:
        """Block ``permission_name``; an existing grant for the pair is replaced."""

        return await self._set(user_id, permission_name, OverrideKind.BLOCK, actor_id)

    async def revoke(
        self, user_id: str, permission_name: str, *, actor_id: str | None = None
    ) -> OverrideChange:
        """Remove a grant if present."""

        return await self._clear(user_id, permission_name, OverrideKind.GRANT, actor_id)

    async def unblock(
        self, user_id: str, permission_name: str, *, actor_id: str | None = None
    ) -> OverrideChange:
        """Remove a block if present."""

        return await self._clear(user_id, permission_name, OverrideKind.BLOCK, actor_id)

    # ------------------------------------------------------------------
    async def _set(
        self,
        user_id: str,
        permission_name: str,
        kind: OverrideKind,
        actor_id: str | None,
    ) -> OverrideChange:
        name, permission_id = await self._resolve_target(user_id, permission_name)
        previous = await self._current_kind(user_id, permission_id)

        insert = self._insert_factory()
        table = UserPermissionOverride.__table__
        now = utc_now()
        stmt = insert(table).values(
            user_id=user_id,
            permission_id=permission_id,
            kind=kind,
            created_by=actor_id,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[table.c.user_id, table.c.permission_id],
            set_={
                "kind": stmt.excluded.kind,
                "created_by": stmt.excluded.created_by,
                "updated_at": stmt.excluded.updated_at,
            },
            where=table.c.kind != kind,
        )
        result = await self._session.execute(stmt)
        changed = bool(result.rowcount)
        if not changed:
            # The conditional update matched nothing, so the row already held ``kind``.
            previous = kind

        logger.info(
            f"rbac.override.{kind.value}",
            extra=log_context(
                user_id=user_id,
                permission=name,
                actor_id=actor_id,
                previous=previous.value if previous else None,
                changed=changed,
            ),
        )
        return OverrideChange(
            user_id=user_id,
            permission=name,
            previous=previous,
            current=kind,
            changed=changed,
        )

    async def _clear(
        self,
        user_id: str,
        permission_name: str,
        kind: OverrideKind,
        actor_id: str | None,
    ) -> OverrideChange:
        name, permission_id = await self._resolve_target(user_id, permission_name)
        previous = await self._current_kind(user_id, permission_id)

        stmt = delete(UserPermissionOverride).where(
            UserPermissionOverride.user_id == user_id,
            UserPermissionOverride.permission_id == permission_id,
            UserPermissionOverride.kind == kind,
        )
        result = await self._session.execute(stmt)
        changed = bool(result.rowcount)
        if changed:
            previous = kind
        current = None if changed else previous

        event = "rbac.override.revoke" if kind is OverrideKind.GRANT else "rbac.override.unblock"
        logger.info(
            event,
            extra=log_context(
                user_id=user_id,
                permission=name,
                actor_id=actor_id,
                changed=changed,
            ),
        )
        return OverrideChange(
            user_id=user_id,
            permission=name,
            previous=previous,
            current=current,
            changed=changed,
        )

    async def _resolve_target(self, user_id: str, permission_name: str) -> tuple[str, str]:
        (name,) = collect_permission_names([permission_name])

        user_exists = await self._session.scalar(select(User.id).where(User.id == user_id))
        if user_exists is None:
            raise UserNotFoundError(user_id)

        permission_id = await self._session.scalar(
            select(Permission.id).where(Permission.name == name)
        )
        if permission_id is None:
            # Declared in code but not yet reconciled into the database.
            raise UnknownPermissionError(name)
        return name, permission_id

    async def _current_kind(self, user_id: str, permission_id: str) -> OverrideKind | None:
        stmt = (
            select(UserPermissionOverride.kind)
            .where(
                UserPermissionOverride.user_id == user_id,
                UserPermissionOverride.permission_id == permission_id,
            )
            .with_for_update()
        )
        return await self._session.scalar(stmt)

    def _insert_factory(self):
        dialect = self._session.get_bind().dialect.name
        try:
            return _UPSERT_DIALECTS[dialect]
        except KeyError as exc:
            msg = f"Permission overrides require SQLite or PostgreSQL (got '{dialect}')"
            raise NotImplementedError(msg) from exc


__all__ = ["OverrideChange", "OverrideSet", "OverrideStore"]
