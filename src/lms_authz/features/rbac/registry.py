"""Canonical permission catalog and system role declarations.

Changing these declarations and redeploying is the only supported way to
evolve the baseline permission graph; startup reconciliation
(:mod:`lms_authz.features.rbac.sync`) writes them to the database.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Protocol, TypeVar

from .errors import InvariantViolationError, UnknownPermissionError, UnknownRoleError

REGISTRY_VERSION = 3

SUPERADMIN_ROLE = "superadmin"


@dataclass(frozen=True)
class PermissionDefinition:
    """Describes a permission entry in the catalog."""

    name: str
    description: str


@dataclass(frozen=True)
class SystemRoleDefinition:
    """Seed data for a predefined role."""

    name: str
    description: str
    permissions: tuple[str, ...]


class _Named(Protocol):
    @property
    def name(self) -> str: ...


T = TypeVar("T", bound=_Named)


def is_superadmin_role(role_name: str | None) -> bool:
    """Return ``True`` for the irrevocable top role (exact, case-sensitive)."""

    return role_name == SUPERADMIN_ROLE


def _index_unique(definitions: Iterable[T], *, kind: str) -> dict[str, T]:
    index: dict[str, T] = {}
    for definition in definitions:
        if definition.name in index:
            msg = f"Duplicate {kind} name '{definition.name}' in registry"
            raise InvariantViolationError(msg)
        index[definition.name] = definition
    return index


PERMISSIONS: tuple[PermissionDefinition, ...] = (
    # Users and access control -------------------------------------------
    PermissionDefinition("read:users", "View user accounts."),
    PermissionDefinition("write:users", "Create and edit user accounts."),
    PermissionDefinition("delete:users", "Delete user accounts."),
    PermissionDefinition("manage:roles", "Manage roles and their assignments."),
    PermissionDefinition("manage:permissions", "Grant or block permissions for individual users."),
    PermissionDefinition("delete:roles", "Delete roles."),
    PermissionDefinition("delete:permissions", "Delete permissions."),
    # Course catalog -------------------------------------------------------
    PermissionDefinition("read:courses", "Browse the list of available courses."),
    PermissionDefinition("read:course_details", "View the details of a specific course."),
    PermissionDefinition("enroll:courses", "Enroll in available courses."),
    PermissionDefinition("access:course_content", "Access the content of enrolled courses."),
    PermissionDefinition("delete:courses", "Delete courses."),
    PermissionDefinition("publish:courses", "Publish courses."),
    PermissionDefinition("archive:courses", "Archive courses."),
    # Profile ----------------------------------------------------------------
    PermissionDefinition("manage:own_profile", "Edit one's own user profile."),
    PermissionDefinition("read:own_progress", "View one's own course progress."),
    # Course authoring -------------------------------------------------------
    PermissionDefinition("manage:courses", "Create, edit or delete courses."),
    PermissionDefinition("manage:categories", "Manage course categories and tags."),
    PermissionDefinition("manage:course_content", "Manage course sections and lessons."),
    PermissionDefinition("manage:enrollments", "Enroll or unenroll users from courses."),
    # Moderation -------------------------------------------------------------
    PermissionDefinition("moderate:content", "Approve or reject user generated content."),
    PermissionDefinition("delete:content", "Delete user generated content."),
    # Progress ---------------------------------------------------------------
    PermissionDefinition("read:all_progress", "View the course progress of every user."),
    # System -----------------------------------------------------------------
    PermissionDefinition("manage:system_settings", "Configure platform-wide settings."),
    PermissionDefinition("manage:backups", "Run backups and restores."),
    PermissionDefinition("manage:all_users", "Manage every user account."),
    # Analytics and audit ----------------------------------------------------
    PermissionDefinition("view:analytics", "Access platform analytics and reports."),
    PermissionDefinition("audit:logs", "Read platform audit logs."),
    PermissionDefinition("impersonate:users", "Impersonate any user account."),
    # Community --------------------------------------------------------------
    PermissionDefinition("manage:groups", "Manage discussion groups and communities."),
    PermissionDefinition("manage:community_posts", "Manage community posts."),
    # Sales ------------------------------------------------------------------
    PermissionDefinition("manage:sales", "Manage all sales."),
    PermissionDefinition("refund:sales", "Issue refunds for sales."),
    PermissionDefinition("view:sales", "View completed sales."),
    # Uploaded resources -----------------------------------------------------
    PermissionDefinition("read:resources", "Browse uploaded resources."),
    PermissionDefinition("upload:resources", "Upload one's own resources."),
    PermissionDefinition("manage:own_resources", "Edit or delete one's own resources."),
    PermissionDefinition("moderate:all_resources", "Edit or delete any user's resources."),
    # Comments ---------------------------------------------------------------
    PermissionDefinition("comment:resources", "Comment on resources."),
    PermissionDefinition("manage:own_comments", "Edit or delete one's own comments."),
    PermissionDefinition("moderate:all_comments", "Edit or delete any user's comments."),
    # Ratings ----------------------------------------------------------------
    PermissionDefinition("rate:resources", "Rate resources."),
    PermissionDefinition("manage:own_ratings", "Edit or delete one's own ratings."),
    PermissionDefinition("moderate:all_ratings", "Edit or delete any user's ratings."),
)

PERMISSION_REGISTRY: Mapping[str, PermissionDefinition] = _index_unique(
    PERMISSIONS, kind="permission"
)

PERMISSION_NAMES: frozenset[str] = frozenset(PERMISSION_REGISTRY)


_LEARNER_BASE: tuple[str, ...] = (
    "read:courses",
    "read:course_details",
    "enroll:courses",
    "access:course_content",
    "manage:own_profile",
    "read:own_progress",
    "read:resources",
    "upload:resources",
    "manage:own_resources",
    "comment:resources",
    "manage:own_comments",
    "rate:resources",
    "manage:own_ratings",
)

_AUTHORING: tuple[str, ...] = (
    "manage:courses",
    "manage:course_content",
    "publish:courses",
    "archive:courses",
    "view:sales",
)

_MODERATION: tuple[str, ...] = (
    "read:users",
    "moderate:content",
    "delete:content",
    "manage:categories",
    "manage:groups",
    "manage:community_posts",
    "moderate:all_resources",
    "moderate:all_comments",
    "moderate:all_ratings",
)

_ADMINISTRATION: tuple[str, ...] = (
    "write:users",
    "delete:users",
    "manage:all_users",
    "manage:roles",
    "manage:permissions",
    "manage:system_settings",
    "manage:enrollments",
    "read:all_progress",
    "delete:courses",
    "view:analytics",
    "audit:logs",
    "manage:sales",
    "refund:sales",
)


SYSTEM_ROLES: tuple[SystemRoleDefinition, ...] = (
    SystemRoleDefinition(
        name="student",
        description="Learner enrolled in courses.",
        permissions=_LEARNER_BASE,
    ),
    SystemRoleDefinition(
        name="instructor",
        description="Course author and instructor.",
        permissions=_LEARNER_BASE + _AUTHORING,
    ),
    SystemRoleDefinition(
        name="moderator",
        description="Community moderator.",
        permissions=_LEARNER_BASE + _MODERATION,
    ),
    SystemRoleDefinition(
        name="admin",
        description="Platform administrator.",
        permissions=_LEARNER_BASE + _AUTHORING + _MODERATION + _ADMINISTRATION,
    ),
    SystemRoleDefinition(
        name=SUPERADMIN_ROLE,
        description="Super administrator with irrevocable full access.",
        permissions=tuple(definition.name for definition in PERMISSIONS),
    ),
)

SYSTEM_ROLE_BY_NAME: Mapping[str, SystemRoleDefinition] = _index_unique(
    SYSTEM_ROLES, kind="role"
)


def all_permissions() -> tuple[PermissionDefinition, ...]:
    """Return the catalog in declaration order."""

    return PERMISSIONS


def role_by_name(name: str) -> SystemRoleDefinition:
    """Return the declared role called ``name`` (exact match)."""

    definition = SYSTEM_ROLE_BY_NAME.get(name)
    if definition is None:
        raise UnknownRoleError(name)
    return definition


def role_permissions(name: str) -> frozenset[str]:
    """Return the declared permission names of role ``name``."""

    return frozenset(role_by_name(name).permissions)


def collect_permission_names(names: Iterable[str]) -> tuple[str, ...]:
    """Return de-duplicated names, each matching a catalog entry exactly."""

    collected: list[str] = []
    for name in names:
        if name not in PERMISSION_REGISTRY:
            raise UnknownPermissionError(name)
        collected.append(name)
    return tuple(dict.fromkeys(collected))


def validate_registry(
    permissions: Iterable[PermissionDefinition] = PERMISSIONS,
    roles: Iterable[SystemRoleDefinition] = SYSTEM_ROLES,
) -> None:
    """Check declarations for duplicate names and dangling permission references."""

    catalog = _index_unique(permissions, kind="permission")
    declared = _index_unique(roles, kind="role")
    for role in declared.values():
        for name in role.permissions:
            if name not in catalog:
                raise UnknownPermissionError(name)


__all__ = [
    "PERMISSIONS",
    "PERMISSION_NAMES",
    "PERMISSION_REGISTRY",
    "PermissionDefinition",
    "REGISTRY_VERSION",
    "SUPERADMIN_ROLE",
    "SYSTEM_ROLES",
    "SYSTEM_ROLE_BY_NAME",
    "SystemRoleDefinition",
    "all_permissions",
    "collect_permission_names",
    "is_superadmin_role",
    "role_by_name",
    "role_permissions",
    "validate_registry",
]
