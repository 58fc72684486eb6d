"""Render a rule set as a Firestore security-rules file."""

from __future__ import annotations

from taklaget.auth.models import PermissionLevel
from taklaget.rules.expressions import NO_LEVEL
from taklaget.rules.request import Operation
from taklaget.rules.ruleset import DEFAULT_RULESET, RuleSet

_INDENT = "  "

# Helpers referenced by Expr.render(); each mirrors one Python predicate
HELPER_FUNCTIONS: tuple[str, ...] = (
    "function isSignedIn() {\n"
    "  return request.auth != null;\n"
    "}",
    "function permissionLevel() {\n"
    f"  return request.auth.token.get('permissionLevel', {NO_LEVEL});\n"
    "}",
    "function hasLevel(level) {\n"
    "  return isSignedIn() && permissionLevel() >= level;\n"
    "}",
    "function canAccessAllBranches() {\n"
    f"  return hasLevel({int(PermissionLevel.SUPERADMIN)});\n"
    "}",
    "function canAccessBranch(branchId) {\n"
    "  return canAccessAllBranches()\n"
    "    || (isSignedIn() && branchId is string && branchId != ''\n"
    "        && request.auth.token.get('branchId', '') == branchId);\n"
    "}",
    "function hasValue(data, field) {\n"
    "  return data.get(field, '') is string && data.get(field, '') != '';\n"
    "}",
    "function hasSingleOwner(data) {\n"
    "  return hasValue(data, 'customerId') != hasValue(data, 'companyId');\n"
    "}",
    "function isOwner(data) {\n"
    "  return isSignedIn() && (\n"
    "    (request.auth.token.get('customerId', '') != ''\n"
    "      && data.get('customerId', null) == request.auth.token.customerId)\n"
    "    || (request.auth.token.get('companyId', '') != ''\n"
    "      && data.get('companyId', null) == request.auth.token.companyId));\n"
    "}",
)


def _indent(text: str, depth: int) -> str:
    prefix = _INDENT * depth
    return "\n".join(prefix + line if line else line for line in text.splitlines())


def render_firestore_rules(ruleset: RuleSet = DEFAULT_RULESET) -> str:
    """Return the rules file text for ``ruleset``."""
    lines: list[str] = [
        "rules_version = '2';",
        "service cloud.firestore {",
        _indent("match /databases/{database}/documents {", 1),
    ]
    for helper in HELPER_FUNCTIONS:
        lines.append(_indent(helper, 2))
        lines.append("")

    for rules in ruleset.collections:
        lines.append(_indent(f"match /{rules.collection}/{{docId}} {{", 2))
        for operation in Operation:
            condition = rules.condition(operation).render()
            lines.append(_indent(f"allow {operation}: if {condition};", 3))
        lines.append(_indent("}", 2))
        lines.append("")

    # default deny for everything else
    lines.append(_indent("match /{document=**} {", 2))
    lines.append(_indent("allow read, write: if false;", 3))
    lines.append(_indent("}", 2))
    lines.append(_indent("}", 1))
    lines.append("}")
    return "\n".join(lines) + "\n"


__all__ = ["HELPER_FUNCTIONS", "render_firestore_rules"]
