"""Pydantic schemas for authorization results."""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from lms_authz.common.schema import BaseSchema


class ResolvedPermissions(BaseSchema):
    """Effective permission set of a user."""

    user_id: str
    role: str
    permissions: list[str] = Field(default_factory=list)


class CanModifyResult(BaseSchema):
    """Serialized ownership decision."""

    allowed: bool
    reason: Literal["NotOwner", "MissingOwnPermission"] | None = None
    detail: str | None = None


class PermissionOriginRead(BaseSchema):
    name: str
    origin: Literal["role", "grant", "superadmin"]


class PermissionExplanation(BaseSchema):
    """Breakdown of where a user's effective permissions come from."""

    user_id: str
    role: str
    is_superadmin: bool
    permissions: list[PermissionOriginRead] = Field(default_factory=list)
    role_permissions: list[str] = Field(default_factory=list)
    grants: list[str] = Field(default_factory=list)
    blocks: list[str] = Field(default_factory=list)
    ignored_blocks: list[str] = Field(default_factory=list)


class OverrideChangeRead(BaseSchema):
    user_id: str
    permission: str
    previous: Literal["grant", "block"] | None = None
    current: Literal["grant", "block"] | None = None
    changed: bool


__all__ = [
    "CanModifyResult",
    "OverrideChangeRead",
    "PermissionExplanation",
    "PermissionOriginRead",
    "ResolvedPermissions",
]
