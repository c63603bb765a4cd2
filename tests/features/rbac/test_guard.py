import pytest

from lms_authz.features.rbac.guard import (
    OWNERSHIP_POLICIES,
    DenialReason,
    ResourceKind,
    evaluate_ownership,
    policy_for,
)
from lms_authz.features.rbac.resolver import resolve_effective_permissions

OWN = "manage:own_comments"
ALL = "moderate:all_comments"


def _effective(*names: str, role: str = "student"):
    return resolve_effective_permissions(role_name=role, role_permissions=names)


def _decide(user_id: str, owner_id: str, effective):
    return evaluate_ownership(
        user_id=user_id,
        owner_user_id=owner_id,
        effective=effective,
        own_permission=OWN,
        moderate_all_permission=ALL,
    )


def test_owner_with_own_permission_is_allowed() -> None:
    decision = _decide("u1", "u1", _effective(OWN))

    assert decision.allowed
    assert decision.reason is None


def test_non_owner_without_moderation_is_denied() -> None:
    decision = _decide("u2", "u1", _effective(OWN))

    assert not decision.allowed
    assert decision.reason is DenialReason.NOT_OWNER
    assert decision.detail == DenialReason.NOT_OWNER.message


def test_moderator_is_allowed_regardless_of_ownership() -> None:
    assert _decide("u2", "u1", _effective(ALL))
    assert _decide("u2", "u2", _effective(ALL))


def test_owner_without_own_permission_is_denied() -> None:
    decision = _decide("u1", "u1", _effective())

    assert not decision.allowed
    assert decision.reason is DenialReason.MISSING_OWN_PERMISSION


def test_superadmin_bypasses_ownership() -> None:
    effective = resolve_effective_permissions(
        role_name="superadmin", role_permissions=(), catalog=frozenset()
    )

    assert _decide("admin", "u1", effective).allowed


def test_decision_schema() -> None:
    result = _decide("u2", "u1", _effective()).to_schema()

    assert result.allowed is False
    assert result.reason == "NotOwner"
    assert result.detail == "Only the owner may modify this resource"


def test_policies_cover_every_resource_kind() -> None:
    assert set(OWNERSHIP_POLICIES) == set(ResourceKind)
    assert policy_for("rating").moderate_all_permission == "moderate:all_ratings"
    with pytest.raises(ValueError):
        policy_for("course")
