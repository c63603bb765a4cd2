"""Store-backed authorization entry points.

The service takes the acting user id explicitly on every call; there is no
ambient "current user". It loads the role, its linked permissions and the
user's overrides, then hands them to the pure resolver and guard.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.common.logging import log_context
from lms_authz.features.users.models import User
from lms_authz.features.users.repository import UsersRepository

from .errors import EmptyPermissionListError, UnknownRoleError, UserNotFoundError
from .guard import OwnershipDecision, ResourceKind, evaluate_ownership, policy_for
from .models import Permission, Role, RolePermission
from .overrides import OverrideStore
from .registry import PERMISSION_NAMES, collect_permission_names
from .resolver import EffectivePermissions, resolve_effective_permissions
from .schemas import PermissionExplanation, PermissionOriginRead, ResolvedPermissions

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Answer permission and ownership questions for one database session."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session
        self._users = UsersRepository(session)
        self.overrides = OverrideStore(session)

    # Roles ----------------------------------------------------------------
    async def get_role_by_name(self, name: str) -> Role:
        role = await self._session.scalar(select(Role).where(Role.name == name))
        if role is None:
            raise UnknownRoleError(name)
        return role

    async def get_role_permission_names(self, role_id: str) -> frozenset[str]:
        stmt = (
            select(Permission.name)
            .join(RolePermission, RolePermission.permission_id == Permission.id)
            .where(RolePermission.role_id == role_id)
        )
        result = await self._session.execute(stmt)
        return frozenset(result.scalars().all())

    async def assign_role(self, user_id: str, role_name: str) -> User:
        """Move ``user_id`` to ``role_name``; existing overrides are kept as-is."""

        user = await self._require_user(user_id)
        role = await self.get_role_by_name(role_name)
        previous = user.role.name
        await self._users.set_role(user, role_id=role.id)
        logger.info(
            "rbac.role.assigned",
            extra=log_context(user_id=user_id, role=role.name, previous_role=previous),
        )
        return user

    # Resolution -----------------------------------------------------------
    async def effective_permissions(self, user_id: str) -> EffectivePermissions:
        user = await self._require_user(user_id)
        role_permissions = await self.get_role_permission_names(user.role_id)
        overrides = await self.overrides.overrides_for(user_id)
        return resolve_effective_permissions(
            role_name=user.role.name,
            role_permissions=role_permissions,
            grants=overrides.grants,
            blocks=overrides.blocks,
            catalog=PERMISSION_NAMES,
        )

    async def resolve(self, user_id: str) -> ResolvedPermissions:
        effective = await self.effective_permissions(user_id)
        return ResolvedPermissions(
            user_id=user_id,
            role=effective.role,
            permissions=sorted(effective.permissions),
        )

    async def explain(self, user_id: str) -> PermissionExplanation:
        """Return the effective set along with where each permission comes from."""

        effective = await self.effective_permissions(user_id)
        return PermissionExplanation(
            user_id=user_id,
            role=effective.role,
            is_superadmin=effective.is_superadmin,
            permissions=[
                PermissionOriginRead(name=name, origin=origin.value)
                for name, origin in effective.origins().items()
            ],
            role_permissions=sorted(effective.role_permissions),
            grants=sorted(effective.grants),
            blocks=sorted(effective.blocks),
            ignored_blocks=sorted(effective.ignored_blocks()),
        )

    # Decisions ------------------------------------------------------------
    async def can_perform(self, user_id: str, permission_name: str) -> bool:
        (name,) = collect_permission_names([permission_name])
        effective = await self.effective_permissions(user_id)
        allowed = name in effective.permissions
        self._log_decision(
            "rbac.decision.permission",
            allowed=allowed,
            effective=effective,
            user_id=user_id,
            permission=name,
        )
        return allowed

    async def has_any_permission(self, user_id: str, permission_names: Iterable[str]) -> bool:
        names = collect_permission_names(permission_names)
        if not names:
            raise EmptyPermissionListError
        effective = await self.effective_permissions(user_id)
        allowed = any(name in effective.permissions for name in names)
        self._log_decision(
            "rbac.decision.any_permission",
            allowed=allowed,
            effective=effective,
            user_id=user_id,
            permission=",".join(names),
        )
        return allowed

    async def can_modify(
        self,
        user_id: str,
        resource_owner_id: str,
        own_permission: str,
        moderate_all_permission: str,
    ) -> OwnershipDecision:
        (own,) = collect_permission_names([own_permission])
        (moderate_all,) = collect_permission_names([moderate_all_permission])
        effective = await self.effective_permissions(user_id)
        decision = evaluate_ownership(
            user_id=user_id,
            owner_user_id=resource_owner_id,
            effective=effective,
            own_permission=own,
            moderate_all_permission=moderate_all,
        )
        self._log_decision(
            "rbac.decision.ownership",
            allowed=decision.allowed,
            effective=effective,
            user_id=user_id,
            permission=own,
            owner_user_id=resource_owner_id,
            reason=decision.reason.value if decision.reason else None,
        )
        return decision

    async def can_modify_resource(
        self,
        user_id: str,
        kind: ResourceKind | str,
        resource_owner_id: str,
    ) -> OwnershipDecision:
        """Ownership check using the permission pair registered for ``kind``."""

        policy = policy_for(kind)
        return await self.can_modify(
            user_id,
            resource_owner_id,
            policy.own_permission,
            policy.moderate_all_permission,
        )

    # ------------------------------------------------------------------
    async def _require_user(self, user_id: str) -> User:
        user = await self._users.get_by_id(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    @staticmethod
    def _log_decision(
        event: str,
        *,
        allowed: bool,
        effective: EffectivePermissions,
        user_id: str,
        permission: str,
        **extra: object,
    ) -> None:
        payload = log_context(
            user_id=user_id,
            role=effective.role,
            permission=permission,
            allowed=allowed,
            **extra,
        )
        if allowed:
            logger.debug(event, extra=payload)
        else:
            logger.info("rbac.decision.denied", extra=dict(payload, check=event))


__all__ = ["AuthorizationService"]
