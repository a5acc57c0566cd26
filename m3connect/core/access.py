# m3connect/core/access.py
"""
Access-control policy.

Pure decisions over an already-loaded profile. Nothing here performs I/O
and nothing here is cached: callers derive every decision from the current
auth snapshot, so a promotion by an administrator is visible on the next
profile refresh.

Roles, statuses and access levels are closed enumerations. Raw values coming
from the database are parsed at this boundary; anything unrecognized is
denied.
"""
from enum import Enum
from typing import TypeVar

from m3connect.models.profile import Profile


class Role(str, Enum):
    USER = "user"
    MARINA = "marina"
    PARTNER = "partner"
    ADMIN = "admin"


class Status(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class AccessLevel(str, Enum):
    PUBLIC = "public"
    MEMBERS = "members"
    MARINA = "marina"


MARINA_ORGANIZATION_TYPE = "Marina / Port"

E = TypeVar("E", bound=Enum)


def parse_enum(enum_cls: type[E], value: object) -> E | None:
    """Return the enum member for `value`, or None if it is not a known value."""
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        return None


def role_for_organization(organization_type: str | None) -> Role:
    """
    Role assigned at sign-up.

    Only marinas get a dedicated role; admin and partner are granted
    later by an administrator.
    """
    if organization_type == MARINA_ORGANIZATION_TYPE:
        return Role.MARINA
    return Role.USER


def is_admin(profile: Profile | None) -> bool:
    if profile is None:
        return False
    return parse_enum(Role, profile.role) is Role.ADMIN


def is_verified_marina(profile: Profile | None) -> bool:
    if profile is None:
        return False
    return (
        parse_enum(Role, profile.role) is Role.MARINA
        and parse_enum(Status, profile.status) is Status.VERIFIED
    )


def can_submit_project(profile: Profile | None) -> bool:
    """Project submission is reserved to verified marina operators."""
    return is_verified_marina(profile)


def can_access(profile: Profile | None, level: AccessLevel | str | None) -> bool:
    """
    Decide whether `profile` (None for visitors) may see content at `level`.

      public  -> everyone
      members -> any signed-in profile, whatever its role or status
      marina  -> verified marina operators, and administrators
      other   -> nobody
    """
    parsed = parse_enum(AccessLevel, level)

    if parsed is AccessLevel.PUBLIC:
        return True
    if profile is None:
        return False
    if parsed is AccessLevel.MEMBERS:
        return True
    if parsed is AccessLevel.MARINA:
        return is_verified_marina(profile) or is_admin(profile)
    return False


def lock_reason(profile: Profile | None, level: AccessLevel | str | None) -> str | None:
    """
    Explain a denial for the locked-content overlay.

    Returns None when access is allowed.
    """
    if can_access(profile, level):
        return None
    parsed = parse_enum(AccessLevel, level)
    if parsed is AccessLevel.MEMBERS:
        return "signup_to_access"
    if parsed is AccessLevel.MARINA:
        return "verify_marina_to_access"
    return "unavailable"
