"""Command-line interface for administering the authorization core."""

from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Annotated, Any, TypeVar

import typer

from lms_authz.common.logging import setup_logging
from lms_authz.db import get_engine
from lms_authz.features.rbac.errors import ReconciliationError
from lms_authz.features.rbac.guard import ResourceKind
from lms_authz.features.rbac.overrides import OverrideChange
from lms_authz.features.rbac.service import AuthorizationService
from lms_authz.lifecycles import open_session, reconcile
from lms_authz.settings import Settings, reload_settings

app = typer.Typer(
    add_completion=False,
    no_args_is_help=True,
    help="Administer roles, permissions and per-user overrides.",
)

UserIdArg = Annotated[str, typer.Argument(help="User id (ULID).")]
PermissionArg = Annotated[str, typer.Argument(help="Permission name, e.g. manage:own_comments.")]
ActorOption = Annotated[
    str | None, typer.Option("--actor", help="User id recorded as the override author.")
]
JsonOption = Annotated[bool, typer.Option("--json", help="Emit JSON instead of text.")]

T = TypeVar("T")


def _load_settings() -> Settings:
    settings = reload_settings()
    setup_logging(settings)
    return settings


def _run(settings: Settings, factory: Callable[[], Awaitable[T]]) -> T:
    async def runner() -> T:
        try:
            return await factory()
        finally:
            await get_engine(settings).dispose()

    try:
        return asyncio.run(runner())
    except (ValueError, ReconciliationError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc


def _print_json(payload: Any) -> None:
    typer.echo(json.dumps(payload, indent=2, sort_keys=True))


async def _with_service(
    settings: Settings, action: Callable[[AuthorizationService], Awaitable[T]]
) -> T:
    async with open_session(settings) as session:
        return await action(AuthorizationService(session))


def _echo_change(action: str, change: OverrideChange, *, as_json: bool) -> None:
    if as_json:
        _print_json(change.to_schema().serializable_dict())
        return
    state = "updated" if change.changed else "unchanged"
    typer.echo(f"{action} {change.permission} for {change.user_id}: {state}")


@app.command()
def sync() -> None:
    """Reconcile the permission catalog, system roles and bootstrap superadmin."""

    settings = _load_settings()
    report = _run(settings, lambda: reconcile(settings))
    typer.echo(
        "Registry v{version}: permissions +{p_new} ~{p_upd}, roles +{r_new} ~{r_upd}, "
        "links +{l_add} -{l_rem}".format(
            version=report.registry_version,
            p_new=report.permissions_created,
            p_upd=report.permissions_updated,
            r_new=report.roles_created,
            r_upd=report.roles_updated,
            l_add=report.links_added,
            l_rem=report.links_removed,
        )
    )
    if report.bootstrap_created:
        typer.echo(f"Created bootstrap superadmin {settings.bootstrap_superadmin_email}")
    if report.generated_password is not None:
        typer.echo(f"Generated password (shown once): {report.generated_password}")


@app.command()
def resolve(user_id: UserIdArg, as_json: JsonOption = False) -> None:
    """Print the effective permissions of a user."""

    settings = _load_settings()
    resolved = _run(settings, lambda: _with_service(settings, lambda svc: svc.resolve(user_id)))
    if as_json:
        _print_json(resolved.serializable_dict())
        return
    typer.echo(f"{resolved.user_id} ({resolved.role})")
    for name in resolved.permissions:
        typer.echo(f"  {name}")


@app.command()
def explain(user_id: UserIdArg, as_json: JsonOption = False) -> None:
    """Show where each effective permission of a user comes from."""

    settings = _load_settings()
    explanation = _run(
        settings, lambda: _with_service(settings, lambda svc: svc.explain(user_id))
    )
    if as_json:
        _print_json(explanation.serializable_dict())
        return
    typer.echo(f"{explanation.user_id} ({explanation.role})")
    for entry in explanation.permissions:
        typer.echo(f"  {entry.name:<32} {entry.origin}")
    for name in explanation.blocks:
        note = " (no effect)" if name in explanation.ignored_blocks else ""
        typer.echo(f"  blocked: {name}{note}")


@app.command()
def grant(
    user_id: UserIdArg,
    permission: PermissionArg,
    actor: ActorOption = None,
    as_json: JsonOption = False,
) -> None:
    """Grant a permission to a user, replacing any block."""

    settings = _load_settings()
    change = _run(
        settings,
        lambda: _with_service(
            settings, lambda svc: svc.overrides.grant(user_id, permission, actor_id=actor)
        ),
    )
    _echo_change("grant", change, as_json=as_json)


@app.command()
def block(
    user_id: UserIdArg,
    permission: PermissionArg,
    actor: ActorOption = None,
    as_json: JsonOption = False,
) -> None:
    """Block a permission for a user, replacing any grant."""

    settings = _load_settings()
    change = _run(
        settings,
        lambda: _with_service(
            settings, lambda svc: svc.overrides.block(user_id, permission, actor_id=actor)
        ),
    )
    _echo_change("block", change, as_json=as_json)


@app.command()
def revoke(
    user_id: UserIdArg,
    permission: PermissionArg,
    actor: ActorOption = None,
    as_json: JsonOption = False,
) -> None:
    """Remove a granted permission override."""

    settings = _load_settings()
    change = _run(
        settings,
        lambda: _with_service(
            settings, lambda svc: svc.overrides.revoke(user_id, permission, actor_id=actor)
        ),
    )
    _echo_change("revoke", change, as_json=as_json)


@app.command()
def unblock(
    user_id: UserIdArg,
    permission: PermissionArg,
    actor: ActorOption = None,
    as_json: JsonOption = False,
) -> None:
    """Remove a blocked permission override."""

    settings = _load_settings()
    change = _run(
        settings,
        lambda: _with_service(
            settings, lambda svc: svc.overrides.unblock(user_id, permission, actor_id=actor)
        ),
    )
    _echo_change("unblock", change, as_json=as_json)


@app.command("can-modify")
def can_modify(
    user_id: UserIdArg,
    owner_id: Annotated[str, typer.Argument(help="Owner user id of the resource.")],
    kind: Annotated[
        ResourceKind, typer.Option("--kind", help="Resource kind being modified.")
    ] = ResourceKind.COMMENT,
    as_json: JsonOption = False,
) -> None:
    """Check whether a user may modify a resource owned by another user."""

    settings = _load_settings()
    decision = _run(
        settings,
        lambda: _with_service(
            settings, lambda svc: svc.can_modify_resource(user_id, kind, owner_id)
        ),
    )
    if as_json:
        _print_json(decision.to_schema().serializable_dict())
        return
    if decision.allowed:
        typer.echo("allowed")
    else:
        typer.echo(f"denied: {decision.reason} ({decision.detail})")


@app.command("set-role")
def set_role(
    user_id: UserIdArg,
    role: Annotated[str, typer.Argument(help="Role name, e.g. moderator.")],
) -> None:
    """Assign a role to a user; permission overrides are kept."""

    settings = _load_settings()
    user = _run(
        settings, lambda: _with_service(settings, lambda svc: svc.assign_role(user_id, role))
    )
    typer.echo(f"{user.id} is now {user.role.name}")


def main() -> None:
    app()


__all__ = ["app", "main"]
