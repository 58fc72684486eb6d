"""In-process stand-in for document-created triggers.

Handlers run after the write has committed. A failing handler is logged
and does not affect the write or the other handlers; the hosting
platform's redelivery is what retries it in production.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from typing import Callable

from taklaget.integrity.audit import RelationshipAuditor

logger = logging.getLogger(__name__)

CreatedHandler = Callable[[str, str], object]


class TriggerBus:
    """Dispatch ``(collection, doc_id)`` creation events to handlers."""

    def __init__(self) -> None:
        self._handlers: dict[str, list[CreatedHandler]] = defaultdict(list)

    def on_created(self, collection: str, handler: CreatedHandler) -> None:
        self._handlers[collection].append(handler)

    def fire_created(self, collection: str, doc_id: str) -> int:
        """Run handlers for a created document; return how many succeeded."""
        succeeded = 0
        for handler in self._handlers.get(collection, []):
            try:
                handler(collection, doc_id)
            except Exception:
                logger.exception("Trigger failed for %s/%s", collection, doc_id)
            else:
                succeeded += 1
        return succeeded

    def handlers_for(self, collection: str) -> list[CreatedHandler]:
        return list(self._handlers.get(collection, []))


def audit_triggers(auditor: RelationshipAuditor) -> TriggerBus:
    """Bus with the relationship audit wired to every audited collection."""
    bus = TriggerBus()
    for collection in sorted(auditor.audited_collections):
        bus.on_created(collection, auditor.on_document_created)
    return bus


__all__ = ["TriggerBus", "CreatedHandler", "audit_triggers"]
