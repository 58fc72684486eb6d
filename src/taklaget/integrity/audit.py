"""Relationship audit for newly created documents.

The backend cannot enforce cross-document foreign keys, so every created
document is re-checked after the write. Violations are recorded in the
findings log for manual remediation. Nothing is blocked, deleted or
corrected here, and an audit may be replayed any number of times.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from taklaget.common.config import TaklagetConfig
from taklaget.common.errors import NotFoundError, OwnershipCondition
from taklaget.integrity.alerting import AlertConfig, FindingsAlertMonitor
from taklaget.integrity.findings import AuditFinding, FindingsLog, FindingType
from taklaget.integrity.ownership import COMPANY_FIELD, CUSTOMER_FIELD, ownership_of
from taklaget.integrity.references import (
    EXCLUSIVE_OWNER_COLLECTIONS,
    REFERENCE_RULES,
    ReferenceRule,
    audited_collections,
    rules_for,
)
from taklaget.storage.store import Document, DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class AuditResult:
    """Outcome of auditing one document."""

    collection: str
    document_id: str
    findings: list[AuditFinding] = field(default_factory=list)
    recorded: int = 0

    @property
    def is_valid(self) -> bool:
        return not self.findings


@dataclass
class RelationshipReport:
    """Outcome of an on-demand validation; nothing is written."""

    valid: bool
    issues: list[str] = field(default_factory=list)


class RelationshipAuditor:
    """Apply ownership and reference rules to stored documents."""

    def __init__(
        self,
        store: DocumentStore,
        findings: FindingsLog | None = None,
        rules: tuple[ReferenceRule, ...] = REFERENCE_RULES,
        monitor: FindingsAlertMonitor | None = None,
    ) -> None:
        self._store = store
        self._findings = findings or FindingsLog(store)
        self._rules = rules
        self._monitor = monitor

    @classmethod
    def from_settings(cls, store: DocumentStore, settings: TaklagetConfig) -> RelationshipAuditor:
        """Auditor writing to the configured findings collection."""
        return cls(
            store,
            findings=FindingsLog(store, settings.findings_collection),
            monitor=FindingsAlertMonitor(AlertConfig.from_settings(settings)),
        )

    @property
    def findings(self) -> FindingsLog:
        return self._findings

    @property
    def monitor(self) -> FindingsAlertMonitor | None:
        return self._monitor

    @property
    def audited_collections(self) -> frozenset[str]:
        """Collections this auditor's rules cover."""
        return audited_collections(self._rules)

    def handles(self, collection: str) -> bool:
        return collection in self.audited_collections

    def on_document_created(self, collection: str, doc_id: str) -> AuditResult:
        """Trigger entry point: audit a document right after its creation."""
        doc = self._store.get(collection, doc_id)
        if doc is None or not doc.data:
            logger.warning("Audit skipped, %s/%s has no data", collection, doc_id)
            return AuditResult(collection=collection, document_id=doc_id)
        return self.audit(doc)

    def audit(self, doc: Document) -> AuditResult:
        """Check a document and record each violation once."""
        result = AuditResult(collection=doc.collection, document_id=doc.id)
        result.findings = self._check(doc)
        for finding in result.findings:
            if self._findings.record(finding):
                result.recorded += 1
                if self._monitor is not None:
                    self._monitor.observe(finding)
        return result

    def validate_document(self, collection: str, doc_id: str) -> RelationshipReport:
        """Check a document's relationships without recording findings.

        Raises:
            ValueError: collection or doc_id is empty.
            NotFoundError: the document does not exist.
        """
        if not collection or not doc_id:
            raise ValueError("Missing collection or docId")
        doc = self._store.get(collection, doc_id)
        if doc is None or not doc.data:
            raise NotFoundError(collection, doc_id)
        issues = [_describe(f) for f in self._check(doc, stop_at_ownership=False)]
        return RelationshipReport(valid=not issues, issues=issues)

    # --- checks ---

    def _check(self, doc: Document, stop_at_ownership: bool = True) -> list[AuditFinding]:
        findings: list[AuditFinding] = []
        if doc.collection in EXCLUSIVE_OWNER_COLLECTIONS:
            owner_finding = self._check_ownership(doc)
            if owner_finding is not None:
                if stop_at_ownership:
                    return [owner_finding]
                findings.append(owner_finding)


        for rule in rules_for(doc.collection, self._rules):
            finding = self._check_reference(doc, rule)
            if finding is not None:
                findings.append(finding)
        return findings

    def _check_ownership(self, doc: Document) -> AuditFinding | None:
        condition = ownership_of(doc.data)
        if condition == OwnershipCondition.VALID:
            return None
        customer_id = doc.get(CUSTOMER_FIELD)
        company_id = doc.get(COMPANY_FIELD)
        if condition == OwnershipCondition.MULTIPLE_OWNERS:
            logger.warning(
                "%s %s has both customerId and companyId", doc.collection, doc.id
            )
            finding_type = FindingType.BUILDING_MULTIPLE_OWNERS
            value = f"customer: {customer_id}, company: {company_id}"
        else:
            logger.error("%s %s has neither customerId nor companyId", doc.collection, doc.id)
            finding_type = FindingType.BUILDING_NO_OWNER
            value = "both missing"
        return AuditFinding(
            type=finding_type,
            collection=doc.collection,
            document_id=doc.id,
            invalid_field=f"{CUSTOMER_FIELD},{COMPANY_FIELD}",
            invalid_value=value,
        )

    def _check_reference(self, doc: Document, rule: ReferenceRule) -> AuditFinding | None:
        target_id = doc.get(rule.field)
        if not target_id:
            if rule.required:
                # creation rules should have rejected this; nothing to resolve
                logger.error("%s %s created without %s", doc.collection, doc.id, rule.field)
            return None

        target = self._store.get(rule.target, target_id)
        if target is None:
            logger.error(
                "%s %s references non-existent %s: %s",
                doc.collection, doc.id, rule.target, target_id,
            )
            return AuditFinding(
                type=rule.finding_type,
                collection=doc.collection,
                document_id=doc.id,
                invalid_field=rule.field,
                invalid_value=str(target_id),
            )

        if rule.allowed_roles is not None:
            role = target.get("role")
            if role not in {r.value for r in rule.allowed_roles}:
                logger.warning(
                    "%s %s assigned to user with role %s", doc.collection, doc.id, role
                )
        logger.debug("%s %s has valid %s", doc.collection, doc.id, rule.label)
        return None


def _describe(finding: AuditFinding) -> str:
    if finding.type == FindingType.BUILDING_MULTIPLE_OWNERS:
        return "Has both customerId and companyId (should have only one)"
    if finding.type == FindingType.BUILDING_NO_OWNER:
        return "Missing both customerId and companyId (must have one)"
    return f"Invalid {finding.invalid_field}: {finding.invalid_value}"


__all__ = ["AuditResult", "RelationshipReport", "RelationshipAuditor"]
