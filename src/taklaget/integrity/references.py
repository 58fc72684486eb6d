"""Parent/child reference rules.

Every foreign-key style pointer in the data model is described by one
``ReferenceRule``. The auditor applies them uniformly: a pointer must
resolve to an existing document, and a dangling one becomes a finding.
"""

from __future__ import annotations

from dataclasses import dataclass

from taklaget.auth.models import INTERNAL_ROLES, UserRole
from taklaget.common.constants import Collection
from taklaget.integrity.findings import FindingType


@dataclass(frozen=True)
class ReferenceRule:
    """A pointer field on ``source`` that must resolve in ``target``."""

    source: Collection
    field: str
    target: Collection
    finding_type: FindingType
    required: bool = False
    # roles the referenced user document may hold; checked only for users
    allowed_roles: frozenset[UserRole] | None = None

    @property
    def label(self) -> str:
        return f"{self.source}.{self.field} -> {self.target}"


REFERENCE_RULES: tuple[ReferenceRule, ...] = (
    ReferenceRule(
        source=Collection.REPORTS,
        field="buildingId",
        target=Collection.BUILDINGS,
        finding_type=FindingType.INVALID_BUILDING_REFERENCE,
        required=True,
    ),
    ReferenceRule(
        source=Collection.OFFERS,
        field="reportId",
        target=Collection.REPORTS,
        finding_type=FindingType.INVALID_REPORT_REFERENCE,
        required=True,
    ),
    ReferenceRule(
        source=Collection.BUILDINGS,
        field="customerId",
        target=Collection.CUSTOMERS,
        finding_type=FindingType.INVALID_CUSTOMER_REFERENCE,
    ),
    ReferenceRule(
        source=Collection.BUILDINGS,
        field="companyId",
        target=Collection.COMPANIES,
        finding_type=FindingType.INVALID_COMPANY_REFERENCE,
    ),
    ReferenceRule(
        source=Collection.APPOINTMENTS,
        field="assignedInspectorId",
        target=Collection.USERS,
        finding_type=FindingType.INVALID_INSPECTOR_REFERENCE,
        required=True,
        allowed_roles=INTERNAL_ROLES,
    ),
    ReferenceRule(
        source=Collection.APPOINTMENTS,
        field="customerId",
        target=Collection.CUSTOMERS,
        finding_type=FindingType.INVALID_CUSTOMER_REFERENCE,
    ),
)

# Collections whose documents must name exactly one owner
EXCLUSIVE_OWNER_COLLECTIONS: frozenset[Collection] = frozenset({Collection.BUILDINGS})


def rules_for(collection: str, rules: tuple[ReferenceRule, ...] = REFERENCE_RULES) -> list[ReferenceRule]:
    return [r for r in rules if r.source == collection]


def audited_collections(rules: tuple[ReferenceRule, ...] = REFERENCE_RULES) -> frozenset[str]:
    return frozenset(r.source.value for r in rules) | {c.value for c in EXCLUSIVE_OWNER_COLLECTIONS}


__all__ = [
    "ReferenceRule",
    "REFERENCE_RULES",
    "EXCLUSIVE_OWNER_COLLECTIONS",
    "rules_for",
    "audited_collections",
]
