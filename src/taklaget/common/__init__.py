"""Common configuration, constants and errors for Taklaget."""

from taklaget.common.config import TaklagetConfig, configure_logging
from taklaget.common.constants import Collection, OfferStatus
from taklaget.common.errors import (
    AccessDeniedError,
    ConfigurationError,
    NotFoundError,
    OwnershipCondition,
    OwnershipError,
    PermissionDeniedError,
    TaklagetError,
)

__all__ = [
    "TaklagetConfig",
    "configure_logging",
    "Collection",
    "OfferStatus",
    "TaklagetError",
    "ConfigurationError",
    "AccessDeniedError",
    "PermissionDeniedError",
    "OwnershipCondition",
    "OwnershipError",
    "NotFoundError",
]
