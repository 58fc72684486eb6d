"""Ownership rule, reference audit and findings."""

from __future__ import annotations

from taklaget.integrity.alerting import AlertConfig, FindingsAlertMonitor, OperatorAlert
from taklaget.integrity.audit import AuditResult, RelationshipAuditor, RelationshipReport
from taklaget.integrity.findings import AuditFinding, FindingsLog, FindingType
from taklaget.integrity.ownership import require_single_owner, validate_ownership
from taklaget.integrity.references import REFERENCE_RULES, ReferenceRule

__all__ = [
    "AlertConfig",
    "FindingsAlertMonitor",
    "OperatorAlert",
    "AuditResult",
    "RelationshipAuditor",
    "RelationshipReport",
    "AuditFinding",
    "FindingsLog",
    "FindingType",
    "require_single_owner",
    "validate_ownership",
    "REFERENCE_RULES",
    "ReferenceRule",
]
