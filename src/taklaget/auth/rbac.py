"""Role-based access control enforcement for Taklaget."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from taklaget.auth.models import PermissionLevel, Principal
from taklaget.auth.permissions import (
    at_least,
    can_access_all_branches,
    can_manage_branches,
    can_manage_users,
)
from taklaget.auth.scoping import principal_can_access_branch, record_branch
from taklaget.common.errors import AccessDeniedError

logger = logging.getLogger(__name__)


def record_owned_by(
    record: Mapping[str, Any], customer_id: str | None, company_id: str | None,
) -> bool:
    """True if the record's owner pointer matches one of the given ids."""
    if customer_id and record.get("customerId") == customer_id:
        return True
    if company_id and record.get("companyId") == company_id:
        return True
    return False


def owns_record(principal: Principal, record: Mapping[str, Any]) -> bool:
    """True if the principal is the record's owning party."""
    return record_owned_by(record, principal.customer_id, principal.company_id)


class RBACEnforcer:
    """Enforce level- and branch-based access control."""

    @staticmethod
    def check_level(principal: Principal, required: PermissionLevel) -> bool:
        """Check if a principal is at least as privileged as ``required``."""
        return at_least(principal.permission_level, required)

    @staticmethod
    def require_level(principal: Principal, required: PermissionLevel) -> None:
        """Require a level, raising AccessDeniedError if below it."""
        if not at_least(principal.permission_level, required):
            logger.debug(
                "Level check failed: uid=%s level=%d required=%d",
                principal.uid, principal.permission_level, required,
            )
            raise AccessDeniedError()

    @staticmethod
    def can_manage_users(principal: Principal) -> bool:
        return can_manage_users(principal.permission_level)

    @staticmethod
    def can_manage_branches(principal: Principal) -> bool:
        return can_manage_branches(principal.permission_level)

    @staticmethod
    def can_access_all_branches(principal: Principal) -> bool:
        return can_access_all_branches(principal.permission_level)

    @staticmethod
    def can_read_record(principal: Principal, record: Mapping[str, Any]) -> bool:
        """Internal principals read by branch; anyone reads what they own."""
        if principal.is_internal and principal_can_access_branch(principal, record_branch(record)):
            return True
        return owns_record(principal, record)

    @staticmethod
    def require_read(principal: Principal, record: Mapping[str, Any]) -> None:
        if not RBACEnforcer.can_read_record(principal, record):
            raise AccessDeniedError()

    @staticmethod
    def can_reassign_branch(principal: Principal) -> bool:
        """Only all-branch principals may move a record to another branch."""
        return can_access_all_branches(principal.permission_level)


__all__ = ["RBACEnforcer", "owns_record", "record_owned_by"]
