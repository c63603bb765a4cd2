"""Role-based access control: catalog, overrides, resolution and ownership checks."""

from .errors import (
    InvariantViolationError,
    RbacError,
    ReconciliationError,
    UnknownPermissionError,
    UnknownRoleError,
    UserNotFoundError,
)
from .guard import (
    OWNERSHIP_POLICIES,
    DenialReason,
    OwnershipDecision,
    ResourceKind,
    evaluate_ownership,
)
from .overrides import OverrideChange, OverrideStore
from .registry import PERMISSION_NAMES, SUPERADMIN_ROLE, is_superadmin_role
from .resolver import (
    EffectivePermissions,
    OverrideSet,
    has_any_permission,
    has_permission,
    resolve_effective_permissions,
)
from .service import AuthorizationService
from .sync import SyncReport, ensure_bootstrap_superadmin, sync_permission_registry

__all__ = [
    "AuthorizationService",
    "DenialReason",
    "EffectivePermissions",
    "InvariantViolationError",
    "OWNERSHIP_POLICIES",
    "OverrideChange",
    "OverrideSet",
    "OverrideStore",
    "OwnershipDecision",
    "PERMISSION_NAMES",
    "RbacError",
    "ReconciliationError",
    "ResourceKind",
    "SUPERADMIN_ROLE",
    "SyncReport",
    "UnknownPermissionError",
    "UnknownRoleError",
    "UserNotFoundError",
    "ensure_bootstrap_superadmin",
    "evaluate_ownership",
    "has_any_permission",
    "has_permission",
    "is_superadmin_role",
    "resolve_effective_permissions",
    "sync_permission_registry",
]
