"""Branch-scoped data access and document triggers."""

from taklaget.services.scoped import ScopedCollection
from taklaget.services.triggers import TriggerBus, audit_triggers

__all__ = ["ScopedCollection", "TriggerBus", "audit_triggers"]
