"""Document store abstraction over the hosted backend.

Only the handful of operations the access-control and audit code needs:
single-document get/set/update/delete, add with a generated id, and
equality queries.
"""

from __future__ import annotations

import copy
import secrets
from dataclasses import dataclass, field
from typing import Any, Iterable, Protocol

from taklaget.common.errors import NotFoundError


@dataclass(frozen=True)
class Document:
    """A snapshot of a stored document."""

    collection: str
    id: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def path(self) -> str:
        return f"{self.collection}/{self.id}"

    def get(self, key: str, default: Any = None) -> Any:
        return self.data.get(key, default)


class DocumentStore(Protocol):
    """Operations the package needs from the backend."""

    def get(self, collection: str, doc_id: str) -> Document | None: ...

    def exists(self, collection: str, doc_id: str) -> bool: ...

    def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False,
    ) -> Document: ...

    def add(self, collection: str, data: dict[str, Any]) -> Document: ...

    def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> Document: ...

    def delete(self, collection: str, doc_id: str) -> None: ...

    def query(
        self, collection: str, filters: Iterable[tuple[str, str, Any]] = (),
    ) -> list[Document]: ...


def generate_document_id() -> str:
    """Generate an unguessable 20-character document id."""
    return secrets.token_urlsafe(15)


class InMemoryDocumentStore:
    """Dict-backed store used by tests and local tooling."""

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    def _bucket(self, collection: str) -> dict[str, dict[str, Any]]:
        return self._collections.setdefault(collection, {})

    def get(self, collection: str, doc_id: str) -> Document | None:
        data = self._bucket(collection).get(doc_id)
        if data is None:
            return None
        return Document(collection=collection, id=doc_id, data=copy.deepcopy(data))

    def exists(self, collection: str, doc_id: str) -> bool:
        return bool(doc_id) and doc_id in self._bucket(collection)

    def set(
        self, collection: str, doc_id: str, data: dict[str, Any], merge: bool = False,
    ) -> Document:
        bucket = self._bucket(collection)
        if merge and doc_id in bucket:
            bucket[doc_id].update(copy.deepcopy(data))
        else:
            bucket[doc_id] = copy.deepcopy(data)
        return Document(collection=collection, id=doc_id, data=copy.deepcopy(bucket[doc_id]))

    def add(self, collection: str, data: dict[str, Any]) -> Document:
        doc_id = generate_document_id()
        while doc_id in self._bucket(collection):
            doc_id = generate_document_id()
        return self.set(collection, doc_id, data)

    def update(self, collection: str, doc_id: str, changes: dict[str, Any]) -> Document:
        bucket = self._bucket(collection)
        if doc_id not in bucket:
            raise NotFoundError(collection, doc_id)
        bucket[doc_id].update(copy.deepcopy(changes))
        return Document(collection=collection, id=doc_id, data=copy.deepcopy(bucket[doc_id]))

    def delete(self, collection: str, doc_id: str) -> None:
        self._bucket(collection).pop(doc_id, None)

    def query(
        self, collection: str, filters: Iterable[tuple[str, str, Any]] = (),
    ) -> list[Document]:
        """Return documents matching all ``(field, op, value)`` filters.

        Supported operators: ``==``, ``!=``, ``in``, ``array-contains``.
        """
        filters = list(filters)
        results: list[Document] = []
        for doc_id, data in self._bucket(collection).items():
            if all(_matches(data, f, op, value) for f, op, value in filters):
                results.append(
                    Document(collection=collection, id=doc_id, data=copy.deepcopy(data))
                )
        return results

    def count(self, collection: str) -> int:
        return len(self._bucket(collection))


def _matches(data: dict[str, Any], field_name: str, op: str, value: Any) -> bool:
    current = data.get(field_name)
    if op == "==":
        return current == value
    if op == "!=":
        return current != value
    if op == "in":
        return current in value
    if op == "array-contains":
        return isinstance(current, list) and value in current
    raise ValueError(f"Unsupported query operator: {op}")


__all__ = ["Document", "DocumentStore", "InMemoryDocumentStore", "generate_document_id"]
