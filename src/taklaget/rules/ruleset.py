"""The canonical authorization rule table and its evaluator.

``DEFAULT_RULESET`` is the single source for backend authorization. It is
evaluated in-process by ``RuleEvaluator`` and rendered to the deployed
security-rules file by ``taklaget.rules.render``. Anything not granted is
denied.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Mapping

from taklaget.auth.models import PermissionLevel
from taklaget.common.constants import (
    CUSTOMER_DECISION_STATUSES,
    OFFER_RESPONSE_FIELDS,
    OPEN_OFFER_STATUSES,
    Collection,
)
from taklaget.common.errors import PermissionDeniedError
from taklaget.rules.expressions import (
    AllBranches,
    AllOf,
    AnyOf,
    BranchAccess,
    BranchUnchanged,
    DocIdMatchesClaim,
    Expr,
    FieldIn,
    FieldMatchesUid,
    FieldPresent,
    IncomingLevelAtMostOwn,
    IsSelf,
    LevelAtLeast,
    Never,
    OnlyFieldsChanged,
    OwnedBy,
    SingleOwner,
    Target,
)
from taklaget.rules.request import Operation, RuleRequest

logger = logging.getLogger(__name__)

DENY: Expr = Never()


@dataclass(frozen=True)
class CollectionRules:
    """Allow conditions for one collection, per operation."""

    collection: str
    allow: Mapping[Operation, Expr] = field(default_factory=dict)

    def condition(self, operation: Operation) -> Expr:
        return self.allow.get(operation, DENY)


@dataclass(frozen=True)
class RuleSet:
    collections: tuple[CollectionRules, ...]

    def for_collection(self, collection: str) -> CollectionRules | None:
        for rules in self.collections:
            if rules.collection == collection:
                return rules
        return None


# --- building blocks ---

INTERNAL = LevelAtLeast(PermissionLevel.INSPECTOR)
MANAGER = LevelAtLeast(PermissionLevel.BRANCH_ADMIN)
SUPERADMIN = LevelAtLeast(PermissionLevel.SUPERADMIN)

BRANCH_READ = AllOf(INTERNAL, BranchAccess(Target.RESOURCE))
BRANCH_CREATE = AllOf(INTERNAL, BranchAccess(Target.INCOMING))
# only an all-branch principal may move a record between branches
BRANCH_UPDATE = AllOf(
    INTERNAL,
    BranchAccess(Target.RESOURCE),
    BranchAccess(Target.INCOMING),
    AnyOf(BranchUnchanged(), AllBranches()),
)
BRANCH_DELETE = AllOf(MANAGER, BranchAccess(Target.RESOURCE))

# unauthenticated answer to an offer through its public link
OFFER_PUBLIC_GET = FieldPresent("publicLink")
OFFER_PUBLIC_RESPONSE = AllOf(
    FieldPresent("publicLink"),
    FieldIn("status", frozenset(OPEN_OFFER_STATUSES), Target.RESOURCE),
    FieldIn("status", frozenset(CUSTOMER_DECISION_STATUSES), Target.INCOMING),
    OnlyFieldsChanged(OFFER_RESPONSE_FIELDS),
)


def branch_scoped(
    collection: Collection,
    owner_readable: bool = False,
    write_guard: Expr | None = None,
    public_get: Expr = DENY,
    public_update: Expr = DENY,
) -> CollectionRules:
    """Rules for a branch-isolated collection."""
    read = AnyOf(BRANCH_READ, OwnedBy(Target.RESOURCE)) if owner_readable else BRANCH_READ
    create: Expr = BRANCH_CREATE
    update: Expr = BRANCH_UPDATE
    if write_guard is not None:
        create = AllOf(create, write_guard)
        update = AllOf(update, write_guard)
    return CollectionRules(
        collection=collection.value,
        allow={
            Operation.GET: AnyOf(read, public_get),
            Operation.LIST: read,
            Operation.CREATE: create,
            Operation.UPDATE: AnyOf(update, public_update),
            Operation.DELETE: BRANCH_DELETE,
        },
    )


def server_only(collection: Collection, read: Expr = DENY) -> CollectionRules:
    """Collections written only by trusted backend code."""
    return CollectionRules(
        collection=collection.value,
        allow={Operation.GET: read, Operation.LIST: read},
    )


USER_MANAGEMENT = AllOf(MANAGER, BranchAccess(Target.INCOMING), IncomingLevelAtMostOwn())

DEFAULT_RULESET = RuleSet(collections=(
    CollectionRules(
        collection=Collection.USERS.value,
        allow={
            Operation.GET: AnyOf(IsSelf(), AllOf(MANAGER, BranchAccess(Target.RESOURCE))),
            Operation.LIST: AllOf(MANAGER, BranchAccess(Target.RESOURCE)),
            Operation.CREATE: USER_MANAGEMENT,
            Operation.UPDATE: AllOf(USER_MANAGEMENT, BranchAccess(Target.RESOURCE)),
            Operation.DELETE: AllOf(MANAGER, BranchAccess(Target.RESOURCE)),
        },
    ),
    CollectionRules(
        collection=Collection.BRANCHES.value,
        allow={
            Operation.GET: INTERNAL,
            Operation.LIST: INTERNAL,
            Operation.CREATE: SUPERADMIN,
            Operation.UPDATE: SUPERADMIN,
            Operation.DELETE: SUPERADMIN,
        },
    ),
    branch_scoped(Collection.REPORTS, owner_readable=True),
    branch_scoped(Collection.CUSTOMERS),
    CollectionRules(
        collection=Collection.COMPANIES.value,
        allow={
            Operation.GET: AnyOf(BRANCH_READ, DocIdMatchesClaim("companyId")),
            Operation.LIST: BRANCH_READ,
            Operation.CREATE: BRANCH_CREATE,
            Operation.UPDATE: BRANCH_UPDATE,
            Operation.DELETE: BRANCH_DELETE,
        },
    ),
    branch_scoped(
        Collection.BUILDINGS,
        owner_readable=True,
        write_guard=SingleOwner(Target.INCOMING),
    ),
    branch_scoped(Collection.APPOINTMENTS),
    branch_scoped(
        Collection.OFFERS,
        owner_readable=True,
        public_get=OFFER_PUBLIC_GET,
        public_update=OFFER_PUBLIC_RESPONSE,
    ),
    branch_scoped(Collection.SERVICE_AGREEMENTS, owner_readable=True),
    CollectionRules(
        collection=Collection.NOTIFICATIONS.value,
        allow={
            Operation.GET: FieldMatchesUid("userId"),
            Operation.LIST: FieldMatchesUid("userId"),
            Operation.UPDATE: AllOf(FieldMatchesUid("userId"), OnlyFieldsChanged(("read",))),
        },
    ),
    server_only(Collection.VALIDATION_ERRORS, read=AllBranches()),
    server_only(Collection.MAIL),
    server_only(Collection.EMAIL_LOGS),
))


class RuleEvaluator:
    """Evaluate requests against a rule set, default deny."""

    def __init__(self, ruleset: RuleSet = DEFAULT_RULESET) -> None:
        self._ruleset = ruleset

    @property
    def ruleset(self) -> RuleSet:
        return self._ruleset

    def allows(self, request: RuleRequest) -> bool:
        rules = self._ruleset.for_collection(request.collection)
        if rules is None:
            return False
        return rules.condition(request.operation).evaluate(request)

    def authorize(self, request: RuleRequest) -> None:
        """Raise PermissionDeniedError unless the request is allowed.

        The error never says which condition failed.
        """
        if not self.allows(request):
            logger.debug(
                "Rules denied %s on %s/%s for uid=%s",
                request.operation, request.collection, request.doc_id, request.uid,
            )
            raise PermissionDeniedError()


__all__ = [
    "CollectionRules",
    "RuleSet",
    "DEFAULT_RULESET",
    "RuleEvaluator",
    "branch_scoped",
    "server_only",
]
