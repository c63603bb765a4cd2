"""Error taxonomy for the RBAC feature.

Denials are not errors: ``NotOwner`` and ``MissingOwnPermission`` are returned
as :class:`~lms_authz.features.rbac.guard.DenialReason` values. Everything in
this module signals malformed input or a broken permission graph.
"""

from __future__ import annotations


class RbacError(ValueError):
    """Base class for authorization-core errors."""


class UnknownPermissionError(RbacError):
    """Raised when a permission name is not part of the catalog."""

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"Permission '{name}' is not registered")


class UnknownRoleError(RbacError):
    """Raised when a role name or id has no registry entry."""

    def __init__(self, role: str) -> None:
        self.role = role
        super().__init__(f"Role '{role}' is not registered")


class InvariantViolationError(RbacError):
    """Raised when a declaration or insert would duplicate a unique name."""


class EmptyPermissionListError(RbacError):
    """Raised when a check names no permissions at all."""

    def __init__(self) -> None:
        super().__init__("At least one permission name is required")


class UserNotFoundError(RbacError):
    """Raised when a user id cannot be located."""

    def __init__(self, user_id: str) -> None:
        self.user_id = user_id
        super().__init__(f"User '{user_id}' not found")


class ReconciliationError(RuntimeError):
    """Raised when startup reconciliation fails; the process must not serve."""


__all__ = [
    "EmptyPermissionListError",
    "InvariantViolationError",
    "RbacError",
    "ReconciliationError",
    "UnknownPermissionError",
    "UnknownRoleError",
    "UserNotFoundError",
]
