"""Customer answers to offers through the public link.

The caller is unauthenticated; knowing the offer id is the credential.
Every read and write goes through the rule evaluator, which only lets an
open offer move to a customer decision.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from taklaget.common.constants import Collection, OfferStatus
from taklaget.common.errors import PermissionDeniedError
from taklaget.rules.request import Operation, RuleRequest
from taklaget.rules.ruleset import RuleEvaluator
from taklaget.storage.store import Document, DocumentStore

logger = logging.getLogger(__name__)


class OfferDecision(StrEnum):
    """Customer actions on an offer."""

    ACCEPT = "accept"
    REJECT = "reject"


DECISION_STATUS: dict[OfferDecision, OfferStatus] = {
    OfferDecision.ACCEPT: OfferStatus.ACCEPTED,
    OfferDecision.REJECT: OfferStatus.REJECTED,
}


class OfferResponse(BaseModel):
    """Result returned to the public caller."""

    offer_id: str
    status: OfferStatus
    responded_at: datetime
    reason: str | None = Field(default=None, max_length=2000)


def public_offer_link(base_url: str, offer_id: str) -> str:
    return f"{base_url.rstrip('/')}/offer/public/{offer_id}"


class OfferResponseService:
    """Public view of and response to a single offer."""

    def __init__(self, store: DocumentStore, evaluator: RuleEvaluator | None = None) -> None:
        self._store = store
        self._evaluator = evaluator or RuleEvaluator()

    def _load(self, offer_id: str) -> Document:
        doc = self._store.get(Collection.OFFERS, offer_id)
        self._evaluator.authorize(RuleRequest(
            operation=Operation.GET,
            collection=Collection.OFFERS.value,
            doc_id=offer_id,
            resource=doc.data if doc is not None else None,
        ))
        if doc is None:
            # unreachable with the default rules; kept for custom rule sets
            raise PermissionDeniedError()
        return doc

    def view(self, offer_id: str) -> dict[str, Any]:
        """Return the offer data for the public page."""
        return self._load(offer_id).data

    def respond(
        self,
        offer_id: str,
        action: OfferDecision | str,
        reason: str | None = None,
    ) -> OfferResponse:
        """Record the customer's decision on an open offer.

        Raises:
            ValueError: unknown action, or a reason over the length limit
                (pydantic ``ValidationError``). Nothing is written.
            PermissionDeniedError: offer missing, not public, or already decided.
        """
        decision = OfferDecision(action)
        doc = self._load(offer_id)
        now = datetime.now(timezone.utc)
        status = DECISION_STATUS[decision]
        response = OfferResponse(offer_id=offer_id, status=status, responded_at=now, reason=reason)

        history = list(doc.get("statusHistory", []))
        history.append({
            "status": status.value,
            "timestamp": now.isoformat(),
            "changedBy": "customer",
            "changedByName": doc.get("customerName", "Customer"),
            "reason": reason or f"Customer {decision.value}ed the offer",
        })
        changes: dict[str, Any] = {
            "status": status.value,
            "statusHistory": history,
            "customerResponse": decision.value,
            "customerResponseAt": now,
            "respondedAt": now,
            "updatedAt": now,
        }
        if reason:
            changes["customerResponseReason"] = reason

        self._evaluator.authorize(RuleRequest(
            operation=Operation.UPDATE,
            collection=Collection.OFFERS.value,
            doc_id=offer_id,
            resource=doc.data,
            incoming={**doc.data, **changes},
        ))
        self._store.update(Collection.OFFERS, offer_id, changes)
        logger.info("Offer %s %s by customer", offer_id, status)
        return response


__all__ = [
    "OfferDecision",
    "OfferResponse",
    "OfferResponseService",
    "public_offer_link",
]
