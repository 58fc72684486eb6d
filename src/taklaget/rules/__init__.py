"""Declarative authorization rules evaluated by the storage backend."""

from taklaget.rules.render import render_firestore_rules
from taklaget.rules.request import Operation, RuleRequest
from taklaget.rules.ruleset import DEFAULT_RULESET, CollectionRules, RuleEvaluator, RuleSet

__all__ = [
    "Operation",
    "RuleRequest",
    "CollectionRules",
    "RuleSet",
    "RuleEvaluator",
    "DEFAULT_RULESET",
    "render_firestore_rules",
]
