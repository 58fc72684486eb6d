"""Exception hierarchy for Taklaget.

Denial messages are fixed strings. Which field, branch or level caused a
denial is never part of the message.
"""

from __future__ import annotations

from enum import StrEnum


class TaklagetError(Exception):
    """Base class for all Taklaget errors."""


class ConfigurationError(TaklagetError, ValueError):
    """Raised when a principal or role mapping is malformed."""


class AccessDeniedError(TaklagetError):
    """Raised when a principal may not touch a resource."""

    default_message = "Access denied"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class PermissionDeniedError(AccessDeniedError):
    """Raised when the authorization rules reject a request."""

    default_message = "Missing or insufficient permissions."


class OwnershipCondition(StrEnum):
    """Outcome of the single-owner check for a building."""

    VALID = "valid"
    MULTIPLE_OWNERS = "multiple_owners"
    NO_OWNER = "no_owner"


class OwnershipError(TaklagetError, ValueError):
    """Raised when a building does not have exactly one owner."""

    def __init__(self, condition: OwnershipCondition) -> None:
        self.condition = condition
        if condition == OwnershipCondition.MULTIPLE_OWNERS:
            message = "Building has multiple owners: set customerId or companyId, not both"
        else:
            message = "Building has no owner: customerId or companyId is required"
        super().__init__(message)


class NotFoundError(TaklagetError, KeyError):
    """Raised when a document does not exist."""

    def __init__(self, collection: str, doc_id: str) -> None:
        self.collection = collection
        self.doc_id = doc_id
        super().__init__(f"Document {collection}/{doc_id} not found")

    def __str__(self) -> str:
        return str(self.args[0])


__all__ = [
    "TaklagetError",
    "ConfigurationError",
    "AccessDeniedError",
    "PermissionDeniedError",
    "OwnershipCondition",
    "OwnershipError",
    "NotFoundError",
]
