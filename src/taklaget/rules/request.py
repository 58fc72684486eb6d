"""Request context seen by the authorization rules."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from taklaget.auth.models import Principal


class Operation(StrEnum):
    """Firestore rule operations."""

    GET = "get"
    LIST = "list"
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class RuleRequest:
    """One request as evaluated by the rules.

    ``auth`` is the decoded token (``request.auth.token``) or None for an
    unauthenticated caller. ``resource`` is the stored document before the
    request, ``incoming`` the document as it would be after a write.
    """

    operation: Operation
    collection: str
    doc_id: str | None = None
    auth: Mapping[str, Any] | None = None
    resource: Mapping[str, Any] | None = None
    incoming: Mapping[str, Any] | None = None

    @property
    def uid(self) -> str | None:
        if self.auth is None:
            return None
        return self.auth.get("uid")

    @classmethod
    def for_principal(
        cls,
        principal: Principal | None,
        operation: Operation,
        collection: str,
        doc_id: str | None = None,
        resource: Mapping[str, Any] | None = None,
        incoming: Mapping[str, Any] | None = None,
    ) -> RuleRequest:
        return cls(
            operation=operation,
            collection=collection,
            doc_id=doc_id,
            auth=principal.to_claims() if principal is not None else None,
            resource=resource,
            incoming=incoming,
        )


__all__ = ["Operation", "RuleRequest"]
