"""Branch-scoped collection access.

Every call applies the client-side guard first and then asks the rule
evaluator, which stands in for the backend and has the final word.
Listings return the intersection.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any

from taklaget.auth.models import PermissionLevel, Principal
from taklaget.auth.rbac import RBACEnforcer
from taklaget.auth.scoping import BRANCH_FIELD, require_branch_access
from taklaget.common.constants import BRANCH_SCOPED_COLLECTIONS, Collection
from taklaget.common.errors import AccessDeniedError, NotFoundError
from taklaget.integrity.ownership import require_single_owner
from taklaget.integrity.references import EXCLUSIVE_OWNER_COLLECTIONS
from taklaget.rules.request import Operation, RuleRequest
from taklaget.rules.ruleset import RuleEvaluator
from taklaget.services.triggers import TriggerBus
from taklaget.storage.store import Document, DocumentStore

logger = logging.getLogger(__name__)


class ScopedCollection:
    """CRUD over one branch-isolated collection on behalf of a principal."""

    def __init__(
        self,
        store: DocumentStore,
        collection: Collection | str,
        evaluator: RuleEvaluator | None = None,
        triggers: TriggerBus | None = None,
    ) -> None:
        if collection not in BRANCH_SCOPED_COLLECTIONS:
            raise ValueError(f"{collection} is not a branch-scoped collection")
        self._store = store
        self._collection = str(collection)
        self._evaluator = evaluator or RuleEvaluator()
        self._triggers = triggers

    @property
    def collection(self) -> str:
        return self._collection

    def _request(
        self,
        principal: Principal | None,
        operation: Operation,
        doc_id: str | None = None,
        resource: dict[str, Any] | None = None,
        incoming: dict[str, Any] | None = None,
    ) -> RuleRequest:
        return RuleRequest.for_principal(
            principal, operation, self._collection, doc_id, resource, incoming,
        )

    @property
    def _owner_exclusive(self) -> bool:
        return self._collection in EXCLUSIVE_OWNER_COLLECTIONS

    # --- reads ---

    def list_visible(self, principal: Principal) -> list[Document]:
        """Documents the principal may see."""
        candidates = [
            doc for doc in self._store.query(self._collection)
            if RBACEnforcer.can_read_record(principal, doc.data)
        ]
        visible = [
            doc for doc in candidates
            if self._evaluator.allows(self._request(principal, Operation.LIST, doc.id, doc.data))
        ]
        if len(visible) != len(candidates):
            logger.warning(
                "Rules filtered %d %s documents the client guard allowed for uid=%s",
                len(candidates) - len(visible), self._collection, principal.uid,
            )
        return visible

    def get(self, principal: Principal | None, doc_id: str) -> Document:
        """Read one document.

        ``principal`` is None for an unauthenticated caller holding the
        document id from a public link.

        Raises:
            AccessDeniedError: denied. A missing document is reported the
                same way unless the caller could have read it.
            NotFoundError: the document does not exist.
        """
        doc = self._store.get(self._collection, doc_id)
        if principal is not None and doc is not None:
            RBACEnforcer.require_read(principal, doc.data)
        # existence is not disclosed to callers who may not read
        self._evaluator.authorize(
            self._request(principal, Operation.GET, doc_id, doc.data if doc else None)
        )
        if doc is None:
            raise NotFoundError(self._collection, doc_id)
        return doc

    # --- writes ---

    def create(
        self,
        principal: Principal,
        data: dict[str, Any],
        doc_id: str | None = None,
    ) -> Document:
        """Create a document owned by the principal's branch.

        Without an explicit ``branchId`` the creator's branch is used.

        Raises:
            ValueError: no branch could be determined.
            OwnershipError: an owner-exclusive document names both or no owner.
            AccessDeniedError: the branch is not accessible to the principal.
        """
        RBACEnforcer.require_level(principal, PermissionLevel.INSPECTOR)
        record = dict(data)
        if not record.get(BRANCH_FIELD) and principal.branch_id:
            record[BRANCH_FIELD] = principal.branch_id
        if not record.get(BRANCH_FIELD):
            raise ValueError("branchId is required for a principal without a home branch")
        if self._owner_exclusive:
            require_single_owner(record)
        require_branch_access(principal, record.get(BRANCH_FIELD))

        now = datetime.now(timezone.utc)
        record.setdefault("createdBy", principal.uid)
        record.setdefault("createdAt", now)
        record["updatedAt"] = now

        self._evaluator.authorize(
            self._request(principal, Operation.CREATE, doc_id, None, record)
        )
        if doc_id is None:
            doc = self._store.add(self._collection, record)
        else:
            doc = self._store.set(self._collection, doc_id, record)
        logger.info("Created %s by uid=%s", doc.path, principal.uid)

        if self._triggers is not None:
            self._triggers.fire_created(self._collection, doc.id)
        return doc

    def update(self, principal: Principal, doc_id: str, changes: dict[str, Any]) -> Document:
        """Apply ``changes`` to a document in an accessible branch.

        Raises:
            AccessDeniedError: denied, or the document does not exist.
            OwnershipError: the result would not have exactly one owner.
        """
        existing = self._store.get(self._collection, doc_id)
        if existing is None:
            raise AccessDeniedError()
        RBACEnforcer.require_level(principal, PermissionLevel.INSPECTOR)
        require_branch_access(principal, existing.get(BRANCH_FIELD))

        incoming = {**existing.data, **changes, "updatedAt": datetime.now(timezone.utc)}
        if incoming.get(BRANCH_FIELD) != existing.get(BRANCH_FIELD):
            if not RBACEnforcer.can_reassign_branch(principal):
                raise AccessDeniedError()
        if self._owner_exclusive:
            require_single_owner(incoming)

        self._evaluator.authorize(
            self._request(principal, Operation.UPDATE, doc_id, existing.data, incoming)
        )
        return self._store.update(
            self._collection, doc_id, {**changes, "updatedAt": incoming["updatedAt"]}
        )

    def reassign_branch(self, principal: Principal, doc_id: str, branch_id: str) -> Document:
        """Move a document to another branch (all-branch principals only)."""
        return self.update(principal, doc_id, {BRANCH_FIELD: branch_id})

    def delete(self, principal: Principal, doc_id: str) -> None:
        existing = self._store.get(self._collection, doc_id)
        if existing is None:
            raise AccessDeniedError()
        RBACEnforcer.require_level(principal, PermissionLevel.BRANCH_ADMIN)
        require_branch_access(principal, existing.get(BRANCH_FIELD))
        self._evaluator.authorize(
            self._request(principal, Operation.DELETE, doc_id, existing.data)
        )
        self._store.delete(self._collection, doc_id)
        logger.info("Deleted %s/%s by uid=%s", self._collection, doc_id, principal.uid)


__all__ = ["ScopedCollection"]
