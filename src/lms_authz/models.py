"""Import every model module so ``Base.metadata`` is fully populated."""

from __future__ import annotations

from lms_authz.features.rbac.models import (
    OverrideKind,
    Permission,
    Role,
    RolePermission,
    UserPermissionOverride,
)
from lms_authz.features.users.models import User

__all__ = [
    "OverrideKind",
    "Permission",
    "Role",
    "RolePermission",
    "User",
    "UserPermissionOverride",
]
