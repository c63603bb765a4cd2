"""SQLAlchemy models for RBAC tables."""

from __future__ import annotations

from enum import StrEnum

from sqlalchemy import Boolean, Enum, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lms_authz.db import Base, TimestampMixin, ulid_primary_key


class OverrideKind(StrEnum):
    """State of a per-user permission override."""

    GRANT = "grant"
    BLOCK = "block"


class Permission(TimestampMixin, Base):
    """Database record for a catalog entry."""

    __tablename__ = "permissions"

    id: Mapped[str] = ulid_primary_key("permission_id")

    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)

    role_permissions: Mapped[list[RolePermission]] = relationship(
        "RolePermission",
        back_populates="permission",
        cascade="all, delete-orphan",
    )


class Role(TimestampMixin, Base):
    """Named bundle of baseline permissions."""

    __tablename__ = "roles"

    id: Mapped[str] = ulid_primary_key("role_id")

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    permissions: Mapped[list[RolePermission]] = relationship(
        "RolePermission",
        back_populates="role",
        cascade="all, delete-orphan",
    )


class RolePermission(Base):
    """Bridge table linking roles to permissions."""

    __tablename__ = "role_permissions"

    role_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("roles.role_id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("permissions.permission_id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )

    role: Mapped[Role] = relationship("Role", back_populates="permissions")
    permission: Mapped[Permission] = relationship(
        "Permission", back_populates="role_permissions"
    )


class UserPermissionOverride(TimestampMixin, Base):
    """Per-user grant or block; one row per (user, permission) pair."""

    __tablename__ = "user_permission_overrides"

    user_id: Mapped[str] = mapped_column(
        String(26), ForeignKey("users.user_id", ondelete="CASCADE"), primary_key=True
    )
    permission_id: Mapped[str] = mapped_column(
        String(26),
        ForeignKey("permissions.permission_id", ondelete="CASCADE"),
        primary_key=True,
    )
    kind: Mapped[OverrideKind] = mapped_column(
        Enum(
            OverrideKind,
            name="override_kind",
            native_enum=False,
            length=10,
            values_callable=lambda kinds: [kind.value for kind in kinds],
        ),
        nullable=False,
    )
    created_by: Mapped[str | None] = mapped_column(String(26), nullable=True)

    permission: Mapped[Permission] = relationship("Permission")


__all__ = [
    "OverrideKind",
    "Permission",
    "Role",
    "RolePermission",
    "UserPermissionOverride",
]
