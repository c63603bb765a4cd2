import logging
from collections.abc import Awaitable, Callable

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.features.rbac.errors import (
    EmptyPermissionListError,
    UnknownPermissionError,
    UnknownRoleError,
    UserNotFoundError,
)
from lms_authz.features.rbac.guard import DenialReason, ResourceKind
from lms_authz.features.rbac.registry import PERMISSION_NAMES, role_permissions
from lms_authz.features.rbac.service import AuthorizationService
from lms_authz.features.users.models import User

pytestmark = pytest.mark.asyncio

MakeUser = Callable[..., Awaitable[User]]


async def test_student_comment_scenario(session: AsyncSession, make_user: MakeUser) -> None:
    u1 = await make_user("student")
    service = AuthorizationService(session)

    before = await service.can_modify(u1.id, u1.id, "manage:own_comments", "moderate:all_comments")
    assert before.to_schema().model_dump() == {"allowed": True, "reason": None, "detail": None}

    await service.overrides.block(u1.id, "manage:own_comments")
    await session.commit()

    after = await service.can_modify(u1.id, u1.id, "manage:own_comments", "moderate:all_comments")
    assert not after.allowed
    assert after.reason is DenialReason.MISSING_OWN_PERMISSION


async def test_non_owner_and_moderator(session: AsyncSession, make_user: MakeUser) -> None:
    owner = await make_user("student")
    other = await make_user("student")
    moderator = await make_user("moderator")
    service = AuthorizationService(session)

    denied = await service.can_modify_resource(other.id, ResourceKind.COMMENT, owner.id)
    allowed = await service.can_modify_resource(moderator.id, "rating", owner.id)

    assert denied.reason is DenialReason.NOT_OWNER
    assert allowed.allowed


async def test_resolve_matches_role_grants_and_blocks(
    session: AsyncSession, make_user: MakeUser
) -> None:
    user = await make_user("instructor")
    service = AuthorizationService(session)
    await service.overrides.grant(user.id, "view:analytics")
    await service.overrides.block(user.id, "publish:courses")

    resolved = await service.resolve(user.id)

    expected = (role_permissions("instructor") | {"view:analytics"}) - {"publish:courses"}
    assert resolved.role == "instructor"
    assert resolved.permissions == sorted(expected)


async def test_grant_then_block_removes_permission(
    session: AsyncSession, make_user: MakeUser
) -> None:
    user = await make_user()
    service = AuthorizationService(session)

    await service.overrides.grant(user.id, "audit:logs")
    assert await service.can_perform(user.id, "audit:logs")

    await service.overrides.block(user.id, "audit:logs")
    assert not await service.can_perform(user.id, "audit:logs")


async def test_superadmin_ignores_blocks(session: AsyncSession, make_user: MakeUser) -> None:
    root = await make_user("superadmin")
    service = AuthorizationService(session)
    await service.overrides.block(root.id, "manage:permissions")

    resolved = await service.resolve(root.id)
    explanation = await service.explain(root.id)

    assert set(resolved.permissions) == PERMISSION_NAMES
    assert explanation.is_superadmin
    assert explanation.ignored_blocks == ["manage:permissions"]
    assert {entry.origin for entry in explanation.permissions} == {"superadmin"}


async def test_explain_reports_origins(session: AsyncSession, make_user: MakeUser) -> None:
    user = await make_user()
    service = AuthorizationService(session)
    await service.overrides.grant(user.id, "view:analytics")
    await service.overrides.block(user.id, "refund:sales")

    explanation = await service.explain(user.id)
    origins = {entry.name: entry.origin for entry in explanation.permissions}

    assert origins["view:analytics"] == "grant"
    assert origins["read:courses"] == "role"
    assert explanation.ignored_blocks == ["refund:sales"]


async def test_has_any_permission(session: AsyncSession, make_user: MakeUser) -> None:
    user = await make_user()
    service = AuthorizationService(session)

    assert await service.has_any_permission(user.id, ["manage:courses", "read:courses"])
    assert not await service.has_any_permission(user.id, ["manage:courses"])
    with pytest.raises(EmptyPermissionListError):
        await service.has_any_permission(user.id, [])


async def test_malformed_input_is_an_error(session: AsyncSession, make_user: MakeUser) -> None:
    user = await make_user()
    service = AuthorizationService(session)

    with pytest.raises(UnknownPermissionError):
        await service.can_perform(user.id, "manage:everything")
    with pytest.raises(UnknownPermissionError):
        await service.can_modify(user.id, user.id, "manage:own_comments", "")
    with pytest.raises(UserNotFoundError):
        await service.resolve("01HZZZZZZZZZZZZZZZZZZZZZZZ")
    with pytest.raises(UnknownRoleError):
        await service.assign_role(user.id, "Student")


async def test_role_change_keeps_overrides(session: AsyncSession, make_user: MakeUser) -> None:
    user = await make_user("moderator")
    service = AuthorizationService(session)
    await service.overrides.grant(user.id, "view:analytics")
    await service.overrides.block(user.id, "moderate:all_comments")

    await service.assign_role(user.id, "student")
    await session.commit()

    overrides = await service.overrides.overrides_for(user.id)
    explanation = await service.explain(user.id)
    assert overrides.grants == {"view:analytics"}
    assert overrides.blocks == {"moderate:all_comments"}
    assert explanation.role == "student"
    assert explanation.ignored_blocks == ["moderate:all_comments"]


async def test_denials_are_logged(
    session: AsyncSession, make_user: MakeUser, caplog: pytest.LogCaptureFixture
) -> None:
    user = await make_user()
    service = AuthorizationService(session)

    with caplog.at_level(logging.INFO, logger="lms_authz.features.rbac.service"):
        await service.can_perform(user.id, "manage:courses")

    denied = [record for record in caplog.records if record.getMessage() == "rbac.decision.denied"]
    assert denied
    assert denied[0].permission == "manage:courses"
    assert denied[0].role == "student"
