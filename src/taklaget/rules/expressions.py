"""Rule expressions.

Each expression evaluates against a ``RuleRequest`` and renders to the
Firestore security-rules language. Evaluation delegates to the same
predicates the services use (``can_access_branch``, ``validate_ownership``,
``record_owned_by``); the rendered text calls the helper functions
emitted by ``taklaget.rules.render``.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from taklaget.auth.permissions import can_access_all_branches
from taklaget.auth.rbac import record_owned_by
from taklaget.auth.scoping import BRANCH_FIELD, can_access_branch
from taklaget.common.errors import OwnershipCondition
from taklaget.integrity.ownership import validate_ownership
from taklaget.rules.request import RuleRequest

# Level read for a token without a permissionLevel claim; below every role
NO_LEVEL = -100


class Target(StrEnum):
    """Which document state an expression inspects."""

    RESOURCE = "resource.data"
    INCOMING = "request.resource.data"


def _data(request: RuleRequest, target: Target) -> Mapping[str, Any]:
    data = request.resource if target == Target.RESOURCE else request.incoming
    return data or {}


def _token_level(request: RuleRequest) -> int:
    if request.auth is None:
        return NO_LEVEL
    return int(request.auth.get("permissionLevel", NO_LEVEL))


def _token_branches(request: RuleRequest) -> list[str]:
    # below the all-branch level only the home branch counts
    if request.auth is None or not request.auth.get("branchId"):
        return []
    return [request.auth["branchId"]]


def _literal(value: Any) -> str:
    if isinstance(value, str):
        return f"'{value}'"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (list, tuple, frozenset, set)):
        items = sorted(value) if isinstance(value, (frozenset, set)) else value
        return "[" + ", ".join(_literal(v) for v in items) + "]"
    return str(value)


class Expr:
    """Base class for rule expressions."""

    def evaluate(self, request: RuleRequest) -> bool:
        raise NotImplementedError

    def render(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Never(Expr):
    def evaluate(self, request: RuleRequest) -> bool:
        return False

    def render(self) -> str:
        return "false"


@dataclass(frozen=True)
class SignedIn(Expr):
    def evaluate(self, request: RuleRequest) -> bool:
        return request.auth is not None

    def render(self) -> str:
        return "isSignedIn()"


@dataclass(frozen=True)
class LevelAtLeast(Expr):
    level: int

    def evaluate(self, request: RuleRequest) -> bool:
        return request.auth is not None and _token_level(request) >= self.level

    def render(self) -> str:
        return f"hasLevel({int(self.level)})"


@dataclass(frozen=True)
class AllBranches(Expr):
    def evaluate(self, request: RuleRequest) -> bool:
        return request.auth is not None and can_access_all_branches(_token_level(request))

    def render(self) -> str:
        return "canAccessAllBranches()"


@dataclass(frozen=True)
class BranchAccess(Expr):
    """The token may access the branch of the target document."""

    target: Target = Target.RESOURCE

    def evaluate(self, request: RuleRequest) -> bool:
        if request.auth is None:
            return False
        branch = _data(request, self.target).get(BRANCH_FIELD)
        if branch is not None and not isinstance(branch, str):
            return False
        return can_access_branch(_token_level(request), _token_branches(request), branch)

    def render(self) -> str:
        return f"canAccessBranch({self.target}.get('{BRANCH_FIELD}', null))"


@dataclass(frozen=True)
class BranchUnchanged(Expr):
    def evaluate(self, request: RuleRequest) -> bool:
        return (
            _data(request, Target.INCOMING).get(BRANCH_FIELD)
            == _data(request, Target.RESOURCE).get(BRANCH_FIELD)
        )

    def render(self) -> str:
        return (
            f"request.resource.data.get('{BRANCH_FIELD}', null) "
            f"== resource.data.get('{BRANCH_FIELD}', null)"
        )


@dataclass(frozen=True)
class OwnedBy(Expr):
    """The token's customerId/companyId owns the target document."""

    target: Target = Target.RESOURCE

    def evaluate(self, request: RuleRequest) -> bool:
        if request.auth is None:
            return False
        return record_owned_by(
            _data(request, self.target),
            request.auth.get("customerId"),
            request.auth.get("companyId"),
        )

    def render(self) -> str:
        return f"isOwner({self.target})"


@dataclass(frozen=True)
class SingleOwner(Expr):
    """Exactly one of customerId/companyId is set on the target."""

    target: Target = Target.INCOMING

    def evaluate(self, request: RuleRequest) -> bool:
        data = _data(request, self.target)
        return (
            validate_ownership(data.get("customerId"), data.get("companyId"))
            == OwnershipCondition.VALID
        )

    def render(self) -> str:
        return f"hasSingleOwner({self.target})"


@dataclass(frozen=True)
class IsSelf(Expr):
    """The request addresses the caller's own document."""

    def evaluate(self, request: RuleRequest) -> bool:
        return request.auth is not None and request.uid is not None and request.uid == request.doc_id

    def render(self) -> str:
        return "isSignedIn() && request.auth.uid == docId"


@dataclass(frozen=True)
class FieldMatchesUid(Expr):
    """A target field holds the caller's uid."""

    field: str
    target: Target = Target.RESOURCE

    def evaluate(self, request: RuleRequest) -> bool:
        if request.auth is None or request.uid is None:
            return False
        return _data(request, self.target).get(self.field) == request.uid

    def render(self) -> str:
        return f"isSignedIn() && {self.target}.get('{self.field}', null) == request.auth.uid"


@dataclass(frozen=True)
class DocIdMatchesClaim(Expr):
    """The addressed document id equals one of the caller's claims."""

    claim: str

    def evaluate(self, request: RuleRequest) -> bool:
        if request.auth is None or not request.doc_id:
            return False
        return request.auth.get(self.claim) == request.doc_id

    def render(self) -> str:
        return f"isSignedIn() && request.auth.token.get('{self.claim}', '') == docId"


@dataclass(frozen=True)
class FieldPresent(Expr):
    field: str
    target: Target = Target.RESOURCE

    def evaluate(self, request: RuleRequest) -> bool:
        return bool(_data(request, self.target).get(self.field))

    def render(self) -> str:
        return f"hasValue({self.target}, '{self.field}')"


@dataclass(frozen=True)
class FieldIn(Expr):
    field: str
    values: frozenset[str]
    target: Target = Target.RESOURCE

    def evaluate(self, request: RuleRequest) -> bool:
        return _data(request, self.target).get(self.field) in self.values

    def render(self) -> str:
        return f"{self.target}.get('{self.field}', null) in {_literal(self.values)}"


@dataclass(frozen=True)
class OnlyFieldsChanged(Expr):
    """The write touches no field outside ``fields``."""

    fields: tuple[str, ...]

    def evaluate(self, request: RuleRequest) -> bool:
        before = _data(request, Target.RESOURCE)
        after = _data(request, Target.INCOMING)
        changed = {
            k for k in set(before) | set(after)
            if k not in before or k not in after or before[k] != after[k]
        }
        return changed <= set(self.fields)

    def render(self) -> str:
        return (
            "request.resource.data.diff(resource.data).affectedKeys()"
            f".hasOnly({_literal(list(self.fields))})"
        )


@dataclass(frozen=True)
class IncomingLevelAtMostOwn(Expr):
    """A written permissionLevel never exceeds the caller's own."""

    def evaluate(self, request: RuleRequest) -> bool:
        if request.auth is None:
            return False
        written = _data(request, Target.INCOMING).get("permissionLevel", NO_LEVEL)
        return isinstance(written, int) and written <= _token_level(request)

    def render(self) -> str:
        return (
            f"request.resource.data.get('permissionLevel', {NO_LEVEL}) "
            f"<= request.auth.token.get('permissionLevel', {NO_LEVEL})"
        )


class AllOf(Expr):
    def __init__(self, *operands: Expr) -> None:
        self.operands = tuple(operands)

    def evaluate(self, request: RuleRequest) -> bool:
        return all(op.evaluate(request) for op in self.operands)

    def render(self) -> str:
        if not self.operands:
            return "true"
        return "(" + " && ".join(op.render() for op in self.operands) + ")"

    def __repr__(self) -> str:
        return f"AllOf{self.operands!r}"


class AnyOf(Expr):
    def __init__(self, *operands: Expr) -> None:
        self.operands = tuple(op for op in operands if not isinstance(op, Never))

    def evaluate(self, request: RuleRequest) -> bool:
        return any(op.evaluate(request) for op in self.operands)

    def render(self) -> str:
        if not self.operands:
            return "false"
        if len(self.operands) == 1:
            return self.operands[0].render()
        return "(" + " || ".join(op.render() for op in self.operands) + ")"

    def __repr__(self) -> str:
        return f"AnyOf{self.operands!r}"


__all__ = [
    "NO_LEVEL",
    "Target",
    "Expr",
    "Never",
    "SignedIn",
    "LevelAtLeast",
    "AllBranches",
    "BranchAccess",
    "BranchUnchanged",
    "OwnedBy",
    "SingleOwner",
    "IsSelf",
    "FieldMatchesUid",
    "DocIdMatchesClaim",
    "FieldPresent",
    "FieldIn",
    "OnlyFieldsChanged",
    "IncomingLevelAtMostOwn",
    "AllOf",
    "AnyOf",
]
