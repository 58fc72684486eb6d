"""Single-owner rule for buildings: customerId XOR companyId."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from taklaget.common.errors import OwnershipCondition, OwnershipError

CUSTOMER_FIELD = "customerId"
COMPANY_FIELD = "companyId"


def validate_ownership(customer_id: str | None, company_id: str | None) -> OwnershipCondition:
    """Classify an owner pair; exactly one non-empty id is valid."""
    has_customer = bool(customer_id)
    has_company = bool(company_id)
    if has_customer and has_company:
        return OwnershipCondition.MULTIPLE_OWNERS
    if not has_customer and not has_company:
        return OwnershipCondition.NO_OWNER
    return OwnershipCondition.VALID


def ownership_of(record: Mapping[str, Any]) -> OwnershipCondition:
    return validate_ownership(record.get(CUSTOMER_FIELD), record.get(COMPANY_FIELD))


def require_single_owner(record: Mapping[str, Any]) -> None:
    """Reject a building record before it is persisted.

    Raises:
        OwnershipError: both or neither owner pointer is set.
    """
    condition = ownership_of(record)
    if condition != OwnershipCondition.VALID:
        raise OwnershipError(condition)


__all__ = [
    "CUSTOMER_FIELD",
    "COMPANY_FIELD",
    "validate_ownership",
    "ownership_of",
    "require_single_owner",
]
