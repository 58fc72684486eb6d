"""Constants and enums for Taklaget."""

from enum import StrEnum
from typing import Final


class Collection(StrEnum):
    """Firestore collection names."""

    USERS = "users"
    BRANCHES = "branches"
    CUSTOMERS = "customers"
    COMPANIES = "companies"
    BUILDINGS = "buildings"
    REPORTS = "reports"
    OFFERS = "offers"
    APPOINTMENTS = "appointments"
    SERVICE_AGREEMENTS = "serviceAgreements"
    NOTIFICATIONS = "notifications"
    MAIL = "mail"
    EMAIL_LOGS = "emailLogs"
    VALIDATION_ERRORS = "validation_errors"


class OfferStatus(StrEnum):
    """Offer workflow states."""

    PENDING = "pending"
    AWAITING_RESPONSE = "awaiting_response"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    EXPIRED = "expired"


# Branch-isolated collections; every document carries a branchId
BRANCH_SCOPED_COLLECTIONS: Final[frozenset[Collection]] = frozenset({
    Collection.REPORTS,
    Collection.CUSTOMERS,
    Collection.APPOINTMENTS,
    Collection.OFFERS,
    Collection.SERVICE_AGREEMENTS,
    Collection.BUILDINGS,
})

# States a customer may still answer from
OPEN_OFFER_STATUSES: Final[frozenset[OfferStatus]] = frozenset({
    OfferStatus.PENDING,
    OfferStatus.AWAITING_RESPONSE,
})

# Customer decisions reachable through the public link
CUSTOMER_DECISION_STATUSES: Final[frozenset[OfferStatus]] = frozenset({
    OfferStatus.ACCEPTED,
    OfferStatus.REJECTED,
})

# Fields an unauthenticated customer may touch when answering an offer
OFFER_RESPONSE_FIELDS: Final[tuple[str, ...]] = (
    "status",
    "statusHistory",
    "customerResponse",
    "customerResponseReason",
    "customerResponseAt",
    "respondedAt",
    "updatedAt",
)

SYSTEM_ACTOR: Final[str] = "system"
SYSTEM_ACTOR_NAME: Final[str] = "System"

__all__ = [
    "Collection",
    "OfferStatus",
    "BRANCH_SCOPED_COLLECTIONS",
    "OPEN_OFFER_STATUSES",
    "CUSTOMER_DECISION_STATUSES",
    "OFFER_RESPONSE_FIELDS",
    "SYSTEM_ACTOR",
    "SYSTEM_ACTOR_NAME",
]
