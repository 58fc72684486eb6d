"""Principals, permission levels, branch scoping and claims."""

from taklaget.auth.claims import ClaimsProvisioner, InMemoryClaimsBackend, build_claims
from taklaget.auth.models import PermissionLevel, Principal, UserRole
from taklaget.auth.permissions import (
    at_least,
    can_access_all_branches,
    can_manage_branches,
    can_manage_users,
    permission_level,
)
from taklaget.auth.rbac import RBACEnforcer
from taklaget.auth.scoping import can_access_branch, filter_accessible, require_branch_access

__all__ = [
    "UserRole",
    "PermissionLevel",
    "Principal",
    "permission_level",
    "at_least",
    "can_access_all_branches",
    "can_manage_users",
    "can_manage_branches",
    "can_access_branch",
    "filter_accessible",
    "require_branch_access",
    "RBACEnforcer",
    "ClaimsProvisioner",
    "InMemoryClaimsBackend",
    "build_claims",
]
