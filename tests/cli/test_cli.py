"""Coverage for the ``lms-authz`` Typer application."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Iterator

import pytest
from sqlalchemy import delete, select
from typer.testing import CliRunner

from lms_authz.cli import app
from lms_authz.db import get_engine
from lms_authz.features.rbac.models import Permission, Role, RolePermission, UserPermissionOverride
from lms_authz.features.rbac.sync import sync_permission_registry
from lms_authz.features.users.models import User
from lms_authz.features.users.repository import UsersRepository
from lms_authz.lifecycles import open_session
from lms_authz.settings import get_settings, reload_settings

runner = CliRunner()


async def _seed() -> dict[str, str]:
    settings = get_settings()
    try:
        async with open_session(settings) as session:
            await sync_permission_registry(
                session, settings=settings, password_hasher=lambda value: f"plain${value}"
            )
            users = UsersRepository(session)
            student_id = await session.scalar(select(Role.id).where(Role.name == "student"))
            owner = await users.create(email="owner@example.test", role_id=student_id)
            other = await users.create(email="other@example.test", role_id=student_id)
            return {"owner": owner.id, "other": other.id}
    finally:
        await get_engine(settings).dispose()


async def _truncate() -> None:
    settings = get_settings()
    try:
        async with open_session(settings) as session:
            for model in (UserPermissionOverride, User, RolePermission, Role, Permission):
                await session.execute(delete(model))
    finally:
        await get_engine(settings).dispose()


@pytest.fixture()
def cli_users(
    monkeypatch: pytest.MonkeyPatch, restore_root_logger: None
) -> Iterator[dict[str, str]]:
    monkeypatch.setenv("LMS_AUTHZ_LOG_LEVEL", "ERROR")
    reload_settings()
    yield asyncio.run(_seed())
    asyncio.run(_truncate())
    monkeypatch.delenv("LMS_AUTHZ_LOG_LEVEL")
    reload_settings()


def test_sync_is_repeatable(cli_users: dict[str, str]) -> None:
    result = runner.invoke(app, ["sync"])

    assert result.exit_code == 0, result.output
    assert "permissions +0 ~0, roles +0 ~0, links +0 -0" in result.output
    assert "Generated password" not in result.output


def test_grant_resolve_and_revoke(cli_users: dict[str, str]) -> None:
    user_id = cli_users["owner"]

    granted = runner.invoke(app, ["grant", user_id, "view:analytics", "--actor", "admin"])
    resolved = runner.invoke(app, ["resolve", user_id, "--json"])
    revoked = runner.invoke(app, ["revoke", user_id, "view:analytics"])
    again = runner.invoke(app, ["revoke", user_id, "view:analytics"])

    assert granted.exit_code == 0, granted.output
    assert "grant view:analytics" in granted.output
    payload = json.loads(resolved.stdout)
    assert payload["role"] == "student"
    assert "view:analytics" in payload["permissions"]
    assert "updated" in revoked.output
    assert "unchanged" in again.output


def test_override_change_as_json(cli_users: dict[str, str]) -> None:
    user_id = cli_users["owner"]

    first = runner.invoke(app, ["block", user_id, "read:courses", "--json"])
    second = runner.invoke(app, ["grant", user_id, "read:courses", "--json"])

    assert first.exit_code == 0, first.output
    assert json.loads(second.stdout) == {
        "user_id": user_id,
        "permission": "read:courses",
        "previous": "block",
        "current": "grant",
        "changed": True,
    }


def test_block_and_explain(cli_users: dict[str, str]) -> None:
    user_id = cli_users["owner"]

    blocked = runner.invoke(app, ["block", user_id, "refund:sales"])
    explained = runner.invoke(app, ["explain", user_id])
    unblocked = runner.invoke(app, ["unblock", user_id, "refund:sales"])

    assert blocked.exit_code == 0, blocked.output
    assert "blocked: refund:sales (no effect)" in explained.output
    assert "unblock refund:sales" in unblocked.output


def test_can_modify_reports_denial(cli_users: dict[str, str]) -> None:
    owner, other = cli_users["owner"], cli_users["other"]

    allowed = runner.invoke(app, ["can-modify", owner, owner, "--kind", "comment"])
    denied = runner.invoke(app, ["can-modify", other, owner, "--kind", "rating", "--json"])

    assert allowed.exit_code == 0, allowed.output
    assert allowed.stdout.strip() == "allowed"
    assert json.loads(denied.stdout) == {
        "allowed": False,
        "reason": "NotOwner",
        "detail": "Only the owner may modify this resource",
    }


def test_set_role_keeps_overrides(cli_users: dict[str, str]) -> None:
    user_id = cli_users["other"]
    runner.invoke(app, ["block", user_id, "moderate:all_comments"])

    result = runner.invoke(app, ["set-role", user_id, "moderator"])
    explained = runner.invoke(app, ["explain", user_id, "--json"])

    assert result.exit_code == 0, result.output
    assert "is now moderator" in result.output
    payload = json.loads(explained.stdout)
    assert payload["blocks"] == ["moderate:all_comments"]
    assert payload["ignored_blocks"] == []


def test_unknown_permission_exits_with_error(cli_users: dict[str, str]) -> None:
    result = runner.invoke(app, ["grant", cli_users["owner"], "manage:everything"])

    assert result.exit_code == 1
    assert "Error: Permission 'manage:everything' is not registered" in result.output


def test_unknown_user_exits_with_error(cli_users: dict[str, str]) -> None:
    result = runner.invoke(app, ["resolve", "01HZZZZZZZZZZZZZZZZZZZZZZZ"])

    assert result.exit_code == 1
    assert "Error: User '01HZZZZZZZZZZZZZZZZZZZZZZZ' not found" in result.output
