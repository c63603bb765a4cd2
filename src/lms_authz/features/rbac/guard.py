"""Ownership authorization guard shared by every moderable resource kind."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum

from .resolver import EffectivePermissions, has_permission
from .schemas import CanModifyResult


class DenialReason(StrEnum):
    """Negative results of an ownership check, surfaced to end users."""

    NOT_OWNER = "NotOwner"
    MISSING_OWN_PERMISSION = "MissingOwnPermission"

    @property
    def message(self) -> str:
        return _DENIAL_MESSAGES[self]


_DENIAL_MESSAGES: Mapping[DenialReason, str] = {
    DenialReason.NOT_OWNER: "Only the owner may modify this resource",
    DenialReason.MISSING_OWN_PERMISSION: (
        "Lacks permission to manage own resources of this type"
    ),
}


class ResourceKind(StrEnum):
    """Resource kinds whose mutations are guarded by ownership."""

    COMMENT = "comment"
    RATING = "rating"
    RESOURCE = "resource"


@dataclass(frozen=True)
class OwnershipPolicy:
    """The own/moderate-all permission pair that applies to a resource kind."""

    own_permission: str
    moderate_all_permission: str


OWNERSHIP_POLICIES: Mapping[ResourceKind, OwnershipPolicy] = {
    ResourceKind.COMMENT: OwnershipPolicy("manage:own_comments", "moderate:all_comments"),
    ResourceKind.RATING: OwnershipPolicy("manage:own_ratings", "moderate:all_ratings"),
    ResourceKind.RESOURCE: OwnershipPolicy("manage:own_resources", "moderate:all_resources"),
}


@dataclass(frozen=True)
class OwnershipDecision:
    """Outcome of :func:`evaluate_ownership`."""

    allowed: bool
    reason: DenialReason | None = None

    def __bool__(self) -> bool:
        return self.allowed

    @property
    def detail(self) -> str | None:
        return self.reason.message if self.reason is not None else None

    def to_schema(self) -> CanModifyResult:
        return CanModifyResult(
            allowed=self.allowed,
            reason=self.reason.value if self.reason is not None else None,
            detail=self.detail,
        )


_ALLOW = OwnershipDecision(allowed=True)


def evaluate_ownership(
    *,
    user_id: str,
    owner_user_id: str,
    effective: EffectivePermissions,
    own_permission: str,
    moderate_all_permission: str,
) -> OwnershipDecision:
    """Decide whether ``user_id`` may mutate a resource owned by ``owner_user_id``.

    Evaluated in order, first match wins:

    1. moderate-all permission (or the superadmin role) allows;
    2. owner holding the own permission allows;
    3. a non-owner is denied with ``NotOwner``;
    4. an owner without the own permission is denied with
       ``MissingOwnPermission``.
    """

    is_owner = owner_user_id == user_id
    can_moderate_all = (
        has_permission(effective, moderate_all_permission) or effective.is_superadmin
    )
    can_manage_own = has_permission(effective, own_permission)

    if can_moderate_all:
        return _ALLOW
    if is_owner and can_manage_own:
        return _ALLOW
    if not is_owner:
        return OwnershipDecision(allowed=False, reason=DenialReason.NOT_OWNER)
    return OwnershipDecision(allowed=False, reason=DenialReason.MISSING_OWN_PERMISSION)


def policy_for(kind: ResourceKind | str) -> OwnershipPolicy:
    return OWNERSHIP_POLICIES[ResourceKind(kind)]


__all__ = [
    "DenialReason",
    "OWNERSHIP_POLICIES",
    "OwnershipDecision",
    "OwnershipPolicy",
    "ResourceKind",
    "evaluate_ownership",
    "policy_for",
]
