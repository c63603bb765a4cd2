"""Startup reconciliation of the in-code registry into the database."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.common.logging import log_context
from lms_authz.core.security import generate_password, hash_password
from lms_authz.features.users.models import User
from lms_authz.features.users.repository import UsersRepository
from lms_authz.settings import Settings, get_settings

from .errors import InvariantViolationError, RbacError, ReconciliationError
from .models import Permission, Role, RolePermission
from .registry import (
    PERMISSIONS,
    REGISTRY_VERSION,
    SUPERADMIN_ROLE,
    SYSTEM_ROLES,
    is_superadmin_role,
    validate_registry,
)

logger = logging.getLogger(__name__)

PasswordHasher = Callable[[str], str]


@dataclass
class SyncReport:
    """Counts describing what a reconciliation run changed."""

    registry_version: int = REGISTRY_VERSION
    permissions_created: int = 0
    permissions_updated: int = 0
    roles_created: int = 0
    roles_updated: int = 0
    links_added: int = 0
    links_removed: int = 0
    bootstrap_created: bool = False
    bootstrap_user_id: str | None = None
    generated_password: str | None = field(default=None, repr=False)

    @property
    def changed(self) -> bool:
        return any(
            (
                self.permissions_created,
                self.permissions_updated,
                self.roles_created,
                self.roles_updated,
                self.links_added,
                self.links_removed,
                self.bootstrap_created,
            )
        )


async def sync_permission_registry(
    session: AsyncSession,
    *,
    settings: Settings | None = None,
    password_hasher: PasswordHasher = hash_password,
) -> SyncReport:
    """Bring permissions, system roles, links and the bootstrap account in line.

    The caller owns the transaction; on failure nothing is committed here and
    the error is raised as :class:`ReconciliationError` so the caller can roll
    back and abort startup. Safe to run repeatedly: a second run against an
    up-to-date database reports no changes.
    """

    resolved = settings or get_settings()
    report = SyncReport()
    try:
        validate_registry()
        permissions = await _sync_permissions(session, report)
        roles = await _sync_roles(session, report)
        await _sync_links(session, report, roles=roles, permissions=permissions)
        await ensure_bootstrap_superadmin(
            session,
            settings=resolved,
            report=report,
            password_hasher=password_hasher,
        )
    except IntegrityError as exc:
        violation = InvariantViolationError(f"Duplicate name during reconciliation: {exc.orig}")
        logger.error("rbac.sync.failed", extra=log_context(error=str(violation)))
        raise ReconciliationError("Permission registry reconciliation failed") from violation
    except (RbacError, SQLAlchemyError) as exc:
        logger.error("rbac.sync.failed", extra=log_context(error=str(exc)))
        raise ReconciliationError("Permission registry reconciliation failed") from exc

    logger.info(
        "rbac.sync.complete",
        extra=log_context(
            registry_version=report.registry_version,
            permissions_created=report.permissions_created,
            permissions_updated=report.permissions_updated,
            roles_created=report.roles_created,
            roles_updated=report.roles_updated,
            links_added=report.links_added,
            links_removed=report.links_removed,
            bootstrap_created=report.bootstrap_created,
        ),
    )
    return report


async def _sync_permissions(session: AsyncSession, report: SyncReport) -> dict[str, Permission]:
    result = await session.execute(select(Permission))
    existing = {permission.name: permission for permission in result.scalars()}

    # Rows for names dropped from the catalog are kept; overrides may still reference them.
    for definition in PERMISSIONS:
        record = existing.get(definition.name)
        if record is None:
            record = Permission(name=definition.name, description=definition.description)
            session.add(record)
            existing[definition.name] = record
            report.permissions_created += 1
        elif record.description != definition.description:
            record.description = definition.description
            report.permissions_updated += 1

    await session.flush()
    return existing


async def _sync_roles(session: AsyncSession, report: SyncReport) -> dict[str, Role]:
    names = [definition.name for definition in SYSTEM_ROLES]
    result = await session.execute(select(Role).where(Role.name.in_(names)))
    existing = {role.name: role for role in result.scalars()}

    for definition in SYSTEM_ROLES:
        role = existing.get(definition.name)
        if role is None:
            role = Role(name=definition.name, description=definition.description, is_system=True)
            session.add(role)
            existing[definition.name] = role
            report.roles_created += 1
        elif role.description != definition.description or not role.is_system:
            role.description = definition.description
            role.is_system = True
            report.roles_updated += 1

    await session.flush()
    return existing


async def _sync_links(
    session: AsyncSession,
    report: SyncReport,
    *,
    roles: dict[str, Role],
    permissions: dict[str, Permission],
) -> None:
    for definition in SYSTEM_ROLES:
        role = roles[definition.name]
        result = await session.execute(
            select(RolePermission.permission_id).where(RolePermission.role_id == role.id)
        )
        current = set(result.scalars().all())
        desired = {permissions[name].id for name in definition.permissions}

        for permission_id in sorted(desired - current):
            session.add(RolePermission(role_id=role.id, permission_id=permission_id))
            report.links_added += 1

        extras = current - desired
        if extras:
            await session.execute(
                delete(RolePermission).where(
                    RolePermission.role_id == role.id,
                    RolePermission.permission_id.in_(sorted(extras)),
                )
            )
            report.links_removed += len(extras)

    await session.flush()


async def ensure_bootstrap_superadmin(
    session: AsyncSession,
    *,
    settings: Settings,
    report: SyncReport | None = None,
    password_hasher: PasswordHasher = hash_password,
) -> User | None:
    """Create the configured superadmin account when no user holds its email.

    Returns the new user, or ``None`` when an account already exists. An
    existing account is never modified.
    """

    report = report if report is not None else SyncReport()
    users = UsersRepository(session)
    email = settings.bootstrap_superadmin_email

    existing = await users.get_by_email(email)
    if existing is not None:
        if not is_superadmin_role(existing.role.name):
            logger.warning(
                "rbac.sync.bootstrap.role_mismatch",
                extra=log_context(user_id=existing.id, role=existing.role.name, email=email),
            )
        return None

    role = await session.scalar(select(Role).where(Role.name == SUPERADMIN_ROLE))
    if role is None:
        msg = f"System role '{SUPERADMIN_ROLE}' is missing; reconcile roles first"
        raise ReconciliationError(msg)

    if settings.bootstrap_superadmin_password is not None:
        password = settings.bootstrap_superadmin_password.get_secret_value()
    else:
        password = generate_password()
        report.generated_password = password

    user = await users.create(
        email=email,
        role_id=role.id,
        password_hash=password_hasher(password),
        display_name=settings.bootstrap_superadmin_display_name,
    )
    report.bootstrap_created = True
    report.bootstrap_user_id = user.id
    logger.info(
        "rbac.sync.bootstrap.created",
        extra=log_context(
            user_id=user.id,
            role=SUPERADMIN_ROLE,
            email=email,
            generated_password=report.generated_password is not None,
        ),
    )
    return user


__all__ = ["SyncReport", "ensure_bootstrap_superadmin", "sync_permission_registry"]
