"""Role to permission-level resolution and level predicates.

Every check compares levels, never role names, so a new role only needs
a row in ``ROLE_PERMISSION_LEVELS``.
"""

from __future__ import annotations

from taklaget.auth.models import ROLE_PERMISSION_LEVELS, PermissionLevel, UserRole
from taklaget.common.errors import ConfigurationError

# Thresholds for the administrative predicates
MANAGE_USERS_LEVEL = PermissionLevel.BRANCH_ADMIN
MANAGE_BRANCHES_LEVEL = PermissionLevel.SUPERADMIN
ALL_BRANCHES_LEVEL = PermissionLevel.SUPERADMIN


def permission_level(role: UserRole | str) -> PermissionLevel:
    """Return the permission level for a role.

    Raises:
        ConfigurationError: if the role is not defined.
    """
    try:
        return ROLE_PERMISSION_LEVELS[UserRole(role)]
    except (KeyError, ValueError) as exc:
        raise ConfigurationError(f"Unknown role: {role!r}") from exc


def at_least(level: int, required: int) -> bool:
    return level >= required


def can_access_all_branches(level: int) -> bool:
    return at_least(level, ALL_BRANCHES_LEVEL)


def can_manage_users(level: int) -> bool:
    return at_least(level, MANAGE_USERS_LEVEL)


def can_manage_branches(level: int) -> bool:
    return at_least(level, MANAGE_BRANCHES_LEVEL)


__all__ = [
    "MANAGE_USERS_LEVEL",
    "MANAGE_BRANCHES_LEVEL",
    "ALL_BRANCHES_LEVEL",
    "permission_level",
    "at_least",
    "can_access_all_branches",
    "can_manage_users",
    "can_manage_branches",
]
