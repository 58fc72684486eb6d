"""Branch scoping guard.

A single predicate decides whether a principal may touch a record of a
given branch. Listings, single reads and writes all go through it.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from typing import Any, TypeVar

from taklaget.auth.models import Principal
from taklaget.auth.permissions import can_access_all_branches
from taklaget.common.errors import AccessDeniedError

logger = logging.getLogger(__name__)

BRANCH_FIELD = "branchId"

R = TypeVar("R")


def _as_branch_set(branches: str | Iterable[str] | None) -> frozenset[str]:
    if branches is None:
        return frozenset()
    if isinstance(branches, str):
        return frozenset({branches}) if branches else frozenset()
    return frozenset(b for b in branches if b)


def can_access_branch(
    level: int,
    principal_branches: str | Iterable[str] | None,
    target_branch_id: str | None,
) -> bool:
    """Return True if a principal of ``level`` may access ``target_branch_id``.

    ``principal_branches`` is a single branch id, a collection of ids, or
    None. Ids are opaque and compared exactly. A missing target branch is
    only reachable by an all-branch principal.
    """
    if can_access_all_branches(level):
        return True
    if not target_branch_id:
        return False
    return target_branch_id in _as_branch_set(principal_branches)


def principal_can_access_branch(principal: Principal, target_branch_id: str | None) -> bool:
    return can_access_branch(
        principal.permission_level, principal.branch_scope, target_branch_id
    )


def record_branch(record: Any) -> str | None:
    """Branch id of a record given as a mapping or a document snapshot."""
    if isinstance(record, Mapping):
        return record.get(BRANCH_FIELD)
    data = getattr(record, "data", None)
    if isinstance(data, Mapping):
        return data.get(BRANCH_FIELD)
    return getattr(record, "branch_id", None)


def filter_accessible(principal: Principal, records: Iterable[R]) -> list[R]:
    """Keep only the records whose branch the principal may access."""
    return [
        r for r in records if principal_can_access_branch(principal, record_branch(r))
    ]


def require_branch_access(principal: Principal, target_branch_id: str | None) -> None:
    """Raise a generic AccessDeniedError unless the branch is accessible."""
    if not principal_can_access_branch(principal, target_branch_id):
        logger.debug(
            "Branch access denied: uid=%s level=%d", principal.uid, principal.permission_level
        )
        raise AccessDeniedError()


__all__ = [
    "BRANCH_FIELD",
    "can_access_branch",
    "principal_can_access_branch",
    "record_branch",
    "filter_accessible",
    "require_branch_access",
]
