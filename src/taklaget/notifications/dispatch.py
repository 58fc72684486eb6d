"""Notification dispatch for the offer workflow.

Writes in-app notifications for staff and, when email is enabled, queues
templated mail documents for the mail extension to deliver. Every send is
also recorded in the email log collection.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import StrEnum
from typing import Any

from taklaget.common.config import TaklagetConfig
from taklaget.common.constants import SYSTEM_ACTOR, Collection
from taklaget.storage.store import DocumentStore

logger = logging.getLogger(__name__)


# --- Enums ---


class NotificationChannel(StrEnum):
    """Supported notification channels."""

    IN_APP = "in_app"
    EMAIL = "email"


class NotificationKind(StrEnum):
    """Notification types written to the notifications collection."""

    OFFER_FOLLOW_UP = "offer_followup"
    OFFER_ESCALATION = "offer_escalation"


# --- Configuration ---


@dataclass(frozen=True)
class NotificationConfig:
    """Configuration for notification dispatch."""

    email_enabled: bool = False
    app_base_url: str = "https://taklaget.app"

    @classmethod
    def from_settings(cls, settings: TaklagetConfig) -> NotificationConfig:
        return cls(email_enabled=settings.email_enabled, app_base_url=settings.app_base_url)


@dataclass(frozen=True)
class NotificationTemplate:
    """Wording and mail template for one notification kind."""

    kind: NotificationKind
    title: str
    mail_template: str
    log_type: str


TEMPLATES: dict[NotificationKind, NotificationTemplate] = {
    NotificationKind.OFFER_FOLLOW_UP: NotificationTemplate(
        kind=NotificationKind.OFFER_FOLLOW_UP,
        title="Offer Follow-up Required",
        mail_template="offer-reminder",
        log_type="followup_reminder",
    ),
    NotificationKind.OFFER_ESCALATION: NotificationTemplate(
        kind=NotificationKind.OFFER_ESCALATION,
        title="Offer Escalation Required",
        mail_template="offer-escalation",
        log_type="escalation",
    ),
}


# --- Data Models ---


@dataclass(frozen=True)
class NotificationEvent:
    """A staff notification about one offer."""

    kind: NotificationKind
    offer_id: str
    recipient_uid: str
    customer_name: str
    days_since_sent: int
    recipient_email: str | None = None
    recipient_name: str = ""
    offer_title: str = ""
    timestamp: float = field(default_factory=time.time)

    def message(self) -> str:
        if self.kind == NotificationKind.OFFER_ESCALATION:
            return (
                f"Offer for {self.customer_name} has been pending for "
                f"{self.days_since_sent} days and requires your attention."
            )
        return (
            f"Offer for {self.customer_name} has been pending for "
            f"{self.days_since_sent} days. Please follow up with the customer."
        )


@dataclass(frozen=True)
class NotificationResult:
    """Result of sending a notification through one channel."""

    event: NotificationEvent
    channel: NotificationChannel
    delivered: bool
    message_id: str | None = None
    error: str | None = None


# --- Notification Dispatcher ---


class NotificationDispatcher:
    """Deliver offer workflow notifications.

    - In-app notification always
    - Email only when enabled and the recipient has an address
    """

    def __init__(self, store: DocumentStore, config: NotificationConfig | None = None) -> None:
        self._store = store
        self._config = config or NotificationConfig()
        self._results: list[NotificationResult] = []

    @property
    def config(self) -> NotificationConfig:
        return self._config

    def _offer_link(self, offer_id: str, absolute: bool = False) -> str:
        path = f"/offers/{offer_id}"
        return f"{self._config.app_base_url.rstrip('/')}{path}" if absolute else path

    def _send_in_app(self, event: NotificationEvent) -> NotificationResult:
        template = TEMPLATES[event.kind]
        doc = self._store.add(Collection.NOTIFICATIONS, {
            "userId": event.recipient_uid,
            "type": event.kind.value,
            "title": template.title,
            "message": event.message(),
            "link": self._offer_link(event.offer_id),
            "read": False,
            "createdAt": datetime.now(timezone.utc),
        })
        return NotificationResult(
            event=event, channel=NotificationChannel.IN_APP, delivered=True, message_id=doc.id,
        )

    def _send_email(self, event: NotificationEvent) -> NotificationResult:
        template = TEMPLATES[event.kind]
        doc = self._store.add(Collection.MAIL, {
            "to": event.recipient_email,
            "template": {
                "name": template.mail_template,
                "data": {
                    "recipientName": event.recipient_name or "Inspector",
                    "customerName": event.customer_name,
                    "offerTitle": event.offer_title,
                    "daysSinceSent": event.days_since_sent,
                    "offerLink": self._offer_link(event.offer_id, absolute=True),
                },
            },
        })
        self._store.add(Collection.EMAIL_LOGS, {
            "offerId": event.offer_id,
            "type": template.log_type,
            "recipient": event.recipient_email,
            "subject": template.title,
            "status": "sent",
            "sentAt": datetime.now(timezone.utc),
            "sentBy": SYSTEM_ACTOR,
        })
        return NotificationResult(
            event=event, channel=NotificationChannel.EMAIL, delivered=True, message_id=doc.id,
        )

    def dispatch(self, event: NotificationEvent) -> list[NotificationResult]:
        """Send ``event`` on every applicable channel."""
        results = [self._send_in_app(event)]
        if not event.recipient_email:
            logger.info("No email address for %s, in-app only", event.recipient_uid)
        elif not self._config.email_enabled:
            logger.info("Email disabled, skipping %s for offer %s", event.kind, event.offer_id)
        else:
            results.append(self._send_email(event))
        self._results.extend(results)
        return results

    def get_results(self) -> list[NotificationResult]:
        return list(self._results)

    def get_stats(self) -> dict[str, Any]:
        """Get dispatch statistics."""
        by_channel: dict[str, int] = {}
        by_kind: dict[str, int] = {}
        for r in self._results:
            by_channel[r.channel] = by_channel.get(r.channel, 0) + 1
            by_kind[r.event.kind] = by_kind.get(r.event.kind, 0) + 1
        return {
            "total_sent": len(self._results),
            "delivered": sum(1 for r in self._results if r.delivered),
            "by_channel": by_channel,
            "by_kind": by_kind,
        }


__all__ = [
    "NotificationChannel",
    "NotificationKind",
    "NotificationConfig",
    "NotificationTemplate",
    "NotificationEvent",
    "NotificationResult",
    "NotificationDispatcher",
    "TEMPLATES",
]
