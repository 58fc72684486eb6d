"""Offer workflow: public customer response and scheduled follow-up."""

from taklaget.offers.follow_up import FollowUpReport, OfferFollowUpScheduler
from taklaget.offers.response import (
    OfferDecision,
    OfferResponse,
    OfferResponseService,
    public_offer_link,
)

__all__ = [
    "FollowUpReport",
    "OfferFollowUpScheduler",
    "OfferDecision",
    "OfferResponse",
    "OfferResponseService",
    "public_offer_link",
]
