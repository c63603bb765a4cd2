"""Pure effective-permission resolution.

Nothing in this module touches the database: callers load the role name,
role-linked permission names and override sets, and the resolver combines
them.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import StrEnum

from .registry import PERMISSION_NAMES, is_superadmin_role


class PermissionOrigin(StrEnum):
    """Why a permission is present in an effective set."""

    ROLE = "role"
    GRANT = "grant"
    SUPERADMIN = "superadmin"


@dataclass(frozen=True)
class OverrideSet:
    """Per-user grants and blocks, keyed by permission name."""

    grants: frozenset[str] = field(default_factory=frozenset)
    blocks: frozenset[str] = field(default_factory=frozenset)


@dataclass(frozen=True)
class EffectivePermissions:
    """Resolved permission set for one user plus the inputs it came from."""

    role: str
    permissions: frozenset[str]
    role_permissions: frozenset[str]
    grants: frozenset[str]
    blocks: frozenset[str]

    @property
    def is_superadmin(self) -> bool:
        return is_superadmin_role(self.role)

    def __contains__(self, name: object) -> bool:
        return name in self.permissions

    def origins(self) -> Mapping[str, PermissionOrigin]:
        """Map every effective permission to the source that provides it."""

        if self.is_superadmin:
            return {name: PermissionOrigin.SUPERADMIN for name in sorted(self.permissions)}
        origins: dict[str, PermissionOrigin] = {}
        for name in sorted(self.permissions):
            if name in self.role_permissions:
                origins[name] = PermissionOrigin.ROLE
            else:
                origins[name] = PermissionOrigin.GRANT
        return origins

    def ignored_blocks(self) -> frozenset[str]:
        """Blocks that remove nothing (superadmin, or not otherwise held)."""

        if self.is_superadmin:
            return self.blocks
        return self.blocks - (self.role_permissions | self.grants)


def resolve_effective_permissions(
    *,
    role_name: str,
    role_permissions: Iterable[str],
    grants: Iterable[str] = (),
    blocks: Iterable[str] = (),
    catalog: frozenset[str] = PERMISSION_NAMES,
) -> EffectivePermissions:
    """Combine role permissions with grants and blocks.

    A ``superadmin`` role resolves to the full ``catalog`` and blocks do not
    apply to it. Every other role resolves to ``(role ∪ grants) \\ blocks``.
    """

    base = frozenset(role_permissions)
    granted = frozenset(grants)
    blocked = frozenset(blocks)

    if is_superadmin_role(role_name):
        resolved = frozenset(catalog)
    else:
        resolved = (base | granted) - blocked

    return EffectivePermissions(
        role=role_name,
        permissions=resolved,
        role_permissions=base,
        grants=granted,
        blocks=blocked,
    )


def has_permission(effective: EffectivePermissions, name: str) -> bool:
    return name in effective.permissions


def has_any_permission(effective: EffectivePermissions, names: Iterable[str]) -> bool:
    return any(has_permission(effective, name) for name in names)


__all__ = [
    "EffectivePermissions",
    "OverrideSet",
    "PermissionOrigin",
    "has_any_permission",
    "has_permission",
    "resolve_effective_permissions",
]
