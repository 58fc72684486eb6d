"""Daily follow-up pass over open offers.

For every offer still waiting on the customer:

- after ``follow_up_days`` the creating inspector is reminded (at most
  ``max_follow_up_attempts`` times, once per day) and the offer moves to
  ``awaiting_response``
- after ``escalation_days`` the branch admin is told once
- once ``validUntil`` has passed or ``expiry_days`` have elapsed the offer
  is marked ``expired`` and no further notifications go out
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any

from taklaget.auth.models import UserRole
from taklaget.common.config import TaklagetConfig
from taklaget.common.constants import (
    OPEN_OFFER_STATUSES,
    SYSTEM_ACTOR,
    SYSTEM_ACTOR_NAME,
    Collection,
    OfferStatus,
)
from taklaget.notifications.dispatch import (
    NotificationConfig,
    NotificationDispatcher,
    NotificationEvent,
    NotificationKind,
)
from taklaget.storage.store import Document, DocumentStore

logger = logging.getLogger(__name__)

ONE_DAY = timedelta(days=1)


def as_utc(value: Any) -> datetime | None:
    """Coerce a stored timestamp (datetime or ISO string) to aware UTC."""
    if value is None or value == "":
        return None
    if isinstance(value, str):
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if not isinstance(value, datetime):
        raise TypeError(f"Unsupported timestamp: {value!r}")
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_between(start: datetime, end: datetime) -> int:
    return (end - start) // ONE_DAY


def history_entry(status: OfferStatus, now: datetime, reason: str) -> dict[str, Any]:
    return {
        "status": status.value,
        "timestamp": now.isoformat(),
        "changedBy": SYSTEM_ACTOR,
        "changedByName": SYSTEM_ACTOR_NAME,
        "reason": reason,
    }


@dataclass
class FollowUpReport:
    """Offer ids touched by one scheduler run."""

    run_at: datetime
    followed_up: list[str] = field(default_factory=list)
    escalated: list[str] = field(default_factory=list)
    expired: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": not self.failed,
            "followUpCount": len(self.followed_up),
            "escalationCount": len(self.escalated),
            "expiredCount": len(self.expired),
            "timestamp": self.run_at.isoformat(),
        }


class OfferFollowUpScheduler:
    """Reminds, escalates and expires open offers."""

    def __init__(
        self,
        store: DocumentStore,
        dispatcher: NotificationDispatcher | None = None,
        config: TaklagetConfig | None = None,
    ) -> None:
        self._store = store
        self._config = config or TaklagetConfig()
        self._dispatcher = dispatcher or NotificationDispatcher(
            store, NotificationConfig.from_settings(self._config)
        )

    def open_offers(self) -> list[Document]:
        statuses = sorted(s.value for s in OPEN_OFFER_STATUSES)
        return self._store.query(Collection.OFFERS, [("status", "in", statuses)])

    def run(self, now: datetime | None = None) -> FollowUpReport:
        now = as_utc(now) or datetime.now(timezone.utc)
        report = FollowUpReport(run_at=now)
        logger.info("Checking for offers needing follow-up")

        for offer in self.open_offers():
            try:
                self._process(offer, now, report)
            except Exception:
                logger.exception("Follow-up failed for offer %s", offer.id)
                report.failed.append(offer.id)

        logger.info(
            "Follow-up run: %d followed up, %d escalated, %d expired",
            len(report.followed_up), len(report.escalated), len(report.expired),
        )
        return report

    def _process(self, offer: Document, now: datetime, report: FollowUpReport) -> None:
        sent_at = as_utc(offer.get("sentAt"))
        if sent_at is None:
            return
        days = days_between(sent_at, now)

        valid_until = as_utc(offer.get("validUntil"))
        if (valid_until is not None and valid_until < now) or days >= self._config.expiry_days:
            self._expire(offer, now)
            report.expired.append(offer.id)
            return

        if self._due_for_follow_up(offer, days, now) and self._follow_up(offer, days, now):
            report.followed_up.append(offer.id)

        if days >= self._config.escalation_days and not offer.get("escalatedAt"):
            if self._escalate(offer, days, now):
                report.escalated.append(offer.id)

    def _due_for_follow_up(self, offer: Document, days: int, now: datetime) -> bool:
        if days < self._config.follow_up_days:
            return False
        if int(offer.get("followUpAttempts", 0) or 0) >= self._config.max_follow_up_attempts:
            return False
        last = as_utc(offer.get("lastFollowUpAt"))
        return last is None or now - last >= ONE_DAY

    # --- transitions ---

    def _append_history(self, offer: Document, entry: dict[str, Any]) -> list[dict[str, Any]]:
        # re-read so entries written earlier in this run are kept
        current = self._store.get(Collection.OFFERS, offer.id)
        history = list((current or offer).get("statusHistory", []))
        history.append(entry)
        return history

    def _expire(self, offer: Document, now: datetime) -> None:
        self._store.update(Collection.OFFERS, offer.id, {
            "status": OfferStatus.EXPIRED.value,
            "updatedAt": now,
            "statusHistory": self._append_history(
                offer, history_entry(OfferStatus.EXPIRED, now, "Offer validity period expired"),
            ),
        })
        logger.info("Offer %s expired", offer.id)

    def _follow_up(self, offer: Document, days: int, now: datetime) -> bool:
        inspector_uid = offer.get("createdBy")
        inspector = self._store.get(Collection.USERS, inspector_uid) if inspector_uid else None
        if inspector is None:
            logger.error("Inspector %s not found for offer %s", inspector_uid, offer.id)
            return False

        self._store.update(Collection.OFFERS, offer.id, {
            "followUpAttempts": int(offer.get("followUpAttempts", 0) or 0) + 1,
            "lastFollowUpAt": now,
            "status": OfferStatus.AWAITING_RESPONSE.value,
            "updatedAt": now,
            "statusHistory": self._append_history(offer, history_entry(
                OfferStatus.AWAITING_RESPONSE, now, f"Automatic follow-up after {days} days",
            )),
        })
        self._dispatcher.dispatch(NotificationEvent(
            kind=NotificationKind.OFFER_FOLLOW_UP,
            offer_id=offer.id,
            recipient_uid=inspector.id,
            recipient_email=inspector.get("email"),
            recipient_name=inspector.get("displayName", ""),
            customer_name=offer.get("customerName", ""),
            offer_title=offer.get("title", ""),
            days_since_sent=days,
        ))
        logger.info("Sent follow-up notification for offer %s", offer.id)
        return True

    def branch_admin_for(self, branch_id: str | None) -> Document | None:
        if not branch_id:
            return None
        admins = self._store.query(Collection.USERS, [
            ("branchId", "==", branch_id),
            ("role", "==", UserRole.BRANCH_ADMIN.value),
        ])
        return min(admins, key=lambda d: d.id) if admins else None

    def _escalate(self, offer: Document, days: int, now: datetime) -> bool:
        admin = self.branch_admin_for(offer.get("branchId"))
        if admin is None:
            logger.error("No branch admin found for branch %s", offer.get("branchId"))
            return False

        self._store.update(Collection.OFFERS, offer.id, {"escalatedAt": now, "updatedAt": now})
        self._dispatcher.dispatch(NotificationEvent(
            kind=NotificationKind.OFFER_ESCALATION,
            offer_id=offer.id,
            recipient_uid=admin.id,
            recipient_email=admin.get("email"),
            recipient_name=admin.get("displayName", "Admin"),
            customer_name=offer.get("customerName", ""),
            offer_title=offer.get("title", ""),
            days_since_sent=days,
        ))
        logger.info("Sent escalation notification for offer %s", offer.id)
        return True


__all__ = [
    "FollowUpReport",
    "OfferFollowUpScheduler",
    "as_utc",
    "days_between",
]
