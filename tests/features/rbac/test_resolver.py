from lms_authz.features.rbac.registry import PERMISSION_NAMES, role_permissions
from lms_authz.features.rbac.resolver import (
    PermissionOrigin,
    has_any_permission,
    has_permission,
    resolve_effective_permissions,
)


def test_superadmin_receives_full_catalog_despite_blocks() -> None:
    effective = resolve_effective_permissions(
        role_name="superadmin",
        role_permissions=(),
        blocks={"manage:permissions", "read:users"},
    )

    assert effective.permissions == PERMISSION_NAMES
    assert effective.is_superadmin
    assert effective.ignored_blocks() == {"manage:permissions", "read:users"}


def test_role_union_grants_minus_blocks() -> None:
    base = role_permissions("student")

    effective = resolve_effective_permissions(
        role_name="student",
        role_permissions=base,
        grants={"view:analytics"},
        blocks={"manage:own_comments"},
    )

    assert effective.permissions == (base | {"view:analytics"}) - {"manage:own_comments"}
    assert has_permission(effective, "view:analytics")
    assert not has_permission(effective, "manage:own_comments")


def test_block_wins_over_grant_at_resolution() -> None:
    effective = resolve_effective_permissions(
        role_name="student",
        role_permissions=(),
        grants={"view:analytics"},
        blocks={"view:analytics"},
    )

    assert "view:analytics" not in effective


def test_has_any_permission() -> None:
    effective = resolve_effective_permissions(
        role_name="student", role_permissions={"read:courses"}
    )

    assert has_any_permission(effective, ["manage:courses", "read:courses"])
    assert not has_any_permission(effective, ["manage:courses"])
    assert not has_any_permission(effective, [])


def test_origins_distinguish_role_and_grant() -> None:
    effective = resolve_effective_permissions(
        role_name="student",
        role_permissions={"read:courses", "manage:own_comments"},
        grants={"view:analytics", "read:courses"},
        blocks={"manage:own_comments", "refund:sales"},
    )

    assert effective.origins() == {
        "read:courses": PermissionOrigin.ROLE,
        "view:analytics": PermissionOrigin.GRANT,
    }
    assert effective.ignored_blocks() == {"refund:sales"}


def test_superadmin_origins() -> None:
    effective = resolve_effective_permissions(
        role_name="superadmin",
        role_permissions=(),
        catalog=frozenset({"read:courses"}),
    )

    assert effective.origins() == {"read:courses": PermissionOrigin.SUPERADMIN}
