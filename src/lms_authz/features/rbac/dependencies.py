"""FastAPI dependencies for permission and ownership checks."""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from lms_authz.db.session import get_session

from .errors import EmptyPermissionListError, UnknownPermissionError, UserNotFoundError
from .guard import OwnershipDecision, ResourceKind
from .service import AuthorizationService


def get_current_user_id(request: Request) -> str:
    """Return the user id stored on the request by the authentication layer."""

    user_id = getattr(request.state, "user_id", None)
    if not user_id:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return str(user_id)


async def get_authorization_service(
    session: Annotated[AsyncSession, Depends(get_session)],
) -> AuthorizationService:
    return AuthorizationService(session)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
AuthorizationServiceDep = Annotated[AuthorizationService, Depends(get_authorization_service)]


def require_permissions(
    *permission_names: str, any_of: bool = False
) -> Callable[..., Awaitable[str]]:
    """Build a dependency that rejects callers lacking ``permission_names``.

    All names are required unless ``any_of`` is set. The dependency resolves
    to the acting user id. Calling it without names raises
    :class:`EmptyPermissionListError` when the route is declared.
    """

    if not permission_names:
        raise EmptyPermissionListError

    async def dependency(user_id: CurrentUserId, service: AuthorizationServiceDep) -> str:
        try:
            if any_of:
                allowed = await service.has_any_permission(user_id, permission_names)
            else:
                allowed = True
                for name in permission_names:
                    if not await service.can_perform(user_id, name):
                        allowed = False
                        break
        except UnknownPermissionError as exc:
            raise HTTPException(
                status.HTTP_500_INTERNAL_SERVER_ERROR,
                detail="Invalid permission configuration",
            ) from exc
        except UserNotFoundError as exc:
            raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Unknown user") from exc

        if not allowed:
            raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user_id

    return dependency


async def ensure_can_modify(
    service: AuthorizationService,
    *,
    user_id: str,
    resource_owner_id: str,
    kind: ResourceKind | str,
) -> OwnershipDecision:
    """Raise ``403`` with the denial message unless ``user_id`` may mutate the resource."""

    try:
        decision = await service.can_modify_resource(user_id, kind, resource_owner_id)
    except UnknownPermissionError as exc:
        raise HTTPException(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Invalid permission configuration",
        ) from exc
    except UserNotFoundError as exc:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, detail="Unknown user") from exc

    if not decision.allowed:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail=decision.detail)
    return decision


__all__ = [
    "AuthorizationServiceDep",
    "CurrentUserId",
    "ensure_can_modify",
    "get_authorization_service",
    "get_current_user_id",
    "require_permissions",
]
