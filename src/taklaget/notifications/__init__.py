"""Offer workflow notification dispatch."""

from __future__ import annotations

from taklaget.notifications.dispatch import (
    NotificationChannel,
    NotificationConfig,
    NotificationDispatcher,
    NotificationEvent,
    NotificationKind,
    NotificationResult,
)

__all__ = [
    "NotificationChannel",
    "NotificationConfig",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationKind",
    "NotificationResult",
]
