"""Audit findings: detected, unremediated data-integrity violations.

Findings are keyed deterministically by what they describe, so replaying
an audit for the same document leaves exactly one record per violation.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from taklaget.common.constants import Collection
from taklaget.storage.store import DocumentStore

logger = logging.getLogger(__name__)


class FindingType(StrEnum):
    """Kinds of integrity violation recorded by the audit."""

    INVALID_BUILDING_REFERENCE = "invalid_building_reference"
    INVALID_REPORT_REFERENCE = "invalid_report_reference"
    INVALID_CUSTOMER_REFERENCE = "invalid_customer_reference"
    INVALID_COMPANY_REFERENCE = "invalid_company_reference"
    INVALID_INSPECTOR_REFERENCE = "invalid_inspector_reference"
    BUILDING_MULTIPLE_OWNERS = "building_multiple_owners"
    BUILDING_NO_OWNER = "building_no_owner"


class AuditFinding(BaseModel):
    """A single finding as stored in the findings collection."""

    model_config = ConfigDict(populate_by_name=True)

    type: FindingType
    collection: str
    document_id: str = Field(alias="documentId")
    invalid_field: str = Field(alias="invalidField")
    invalid_value: str = Field(alias="invalidValue")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    resolved: bool = False
    resolved_by: str | None = Field(default=None, alias="resolvedBy")
    resolved_at: datetime | None = Field(default=None, alias="resolvedAt")

    @property
    def finding_id(self) -> str:
        return finding_id_for(self.collection, self.document_id, self.type, self.invalid_field)

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="python")


def finding_id_for(
    collection: str, document_id: str, finding_type: str, invalid_field: str,
) -> str:
    """Deterministic document id for a finding."""
    key = f"{collection}/{document_id}|{finding_type}|{invalid_field}"
    return hashlib.sha256(key.encode()).hexdigest()[:32]


class FindingsLog:
    """Append-once store of audit findings."""

    def __init__(
        self,
        store: DocumentStore,
        collection: str = Collection.VALIDATION_ERRORS.value,
    ) -> None:
        self._store = store
        self._collection = collection

    @property
    def collection(self) -> str:
        return self._collection

    def record(self, finding: AuditFinding) -> bool:
        """Store a finding unless it is already recorded.

        Returns:
            True if a new finding was written.
        """
        finding_id = finding.finding_id
        if self._store.exists(self._collection, finding_id):
            logger.debug("Finding %s already recorded", finding_id)
            return False
        self._store.set(self._collection, finding_id, finding.to_document())
        return True

    def get(self, finding_id: str) -> AuditFinding | None:
        doc = self._store.get(self._collection, finding_id)
        if doc is None:
            return None
        return AuditFinding.model_validate(doc.data)

    def query(
        self,
        finding_type: FindingType | None = None,
        document_id: str | None = None,
        unresolved_only: bool = False,
    ) -> list[AuditFinding]:
        filters: list[tuple[str, str, Any]] = []
        if finding_type is not None:
            filters.append(("type", "==", finding_type.value))
        if document_id is not None:
            filters.append(("documentId", "==", document_id))
        if unresolved_only:
            filters.append(("resolved", "==", False))
        return [
            AuditFinding.model_validate(doc.data)
            for doc in self._store.query(self._collection, filters)
        ]

    def resolve(self, finding_id: str, resolved_by: str) -> AuditFinding | None:
        """Mark a finding as handled by an operator."""
        if not self._store.exists(self._collection, finding_id):
            return None
        doc = self._store.update(
            self._collection,
            finding_id,
            {
                "resolved": True,
                "resolvedBy": resolved_by,
                "resolvedAt": datetime.now(timezone.utc),
            },
        )
        logger.info("Finding %s resolved by %s", finding_id, resolved_by)
        return AuditFinding.model_validate(doc.data)


__all__ = ["FindingType", "AuditFinding", "FindingsLog", "finding_id_for"]
