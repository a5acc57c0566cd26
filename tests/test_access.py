import pytest

from m3connect.core.access import (
    AccessLevel,
    Role,
    Status,
    can_access,
    can_submit_project,
    is_admin,
    lock_reason,
    parse_enum,
    role_for_organization,
)
from m3connect.models.profile import Profile


def profile(role="user", status="pending"):
    return Profile(user_id="u-1", role=role, status=status)


ALL_PROFILES = [
    profile(role.value, status.value) for role in Role for status in Status
]


@pytest.mark.parametrize("p", ALL_PROFILES + [None])
def test_public_is_open_to_everyone(p):
    assert can_access(p, AccessLevel.PUBLIC)
    assert can_access(p, "public")


@pytest.mark.parametrize("level", ["members", "marina"])
def test_visitors_are_denied_gated_levels(level):
    assert not can_access(None, level)


@pytest.mark.parametrize("p", ALL_PROFILES)
def test_members_level_accepts_any_signed_in_profile(p):
    assert can_access(p, AccessLevel.MEMBERS)


@pytest.mark.parametrize("p", ALL_PROFILES)
def test_marina_level(p):
    expected = (p.role == "marina" and p.status == "verified") or p.role == "admin"
    assert can_access(p, AccessLevel.MARINA) is expected


def test_admin_override_ignores_status():
    assert can_access(profile("admin", "rejected"), "marina")


@pytest.mark.parametrize("level", ["premium", "", None, "MARINA"])
def test_unknown_levels_fail_closed(level):
    assert not can_access(profile("admin", "verified"), level)


def test_unknown_role_fails_closed():
    odd = profile("marina_verified", "verified")
    assert not can_access(odd, "marina")
    assert not can_submit_project(odd)
    assert not is_admin(odd)


def test_can_submit_project_requires_verified_marina():
    assert can_submit_project(profile("marina", "verified"))
    assert not can_submit_project(profile("marina", "pending"))
    assert not can_submit_project(profile("admin", "verified"))
    assert not can_submit_project(None)


def test_role_for_organization():
    assert role_for_organization("Marina / Port") is Role.MARINA
    assert role_for_organization("Supplier") is Role.USER
    assert role_for_organization(None) is Role.USER


def test_parse_enum():
    assert parse_enum(Status, "verified") is Status.VERIFIED
    assert parse_enum(Status, Status.PENDING) is Status.PENDING
    assert parse_enum(Status, "approved") is None


def test_lock_reason():
    assert lock_reason(None, "public") is None
    assert lock_reason(None, "members") == "signup_to_access"
    assert lock_reason(profile("marina", "pending"), "marina") == "verify_marina_to_access"
    assert lock_reason(profile(), "bogus") == "unavailable"
