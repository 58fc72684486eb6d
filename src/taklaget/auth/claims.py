"""Custom-claims provisioning.

Claims are the only source of ``request.auth.token.*`` for the rules, so
they are always written with the level derived from the role.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Iterable, Protocol

from taklaget.auth.models import PermissionLevel, Principal, UserRole
from taklaget.auth.permissions import permission_level
from taklaget.auth.rbac import RBACEnforcer
from taklaget.common.constants import Collection
from taklaget.common.errors import ConfigurationError
from taklaget.storage.store import DocumentStore

logger = logging.getLogger(__name__)

CLAIM_KEYS: tuple[str, ...] = ("role", "permissionLevel", "branchId", "branchIds", "companyId")


class ClaimsBackend(Protocol):
    """The identity provider's custom-claims API."""

    def set_custom_user_claims(self, uid: str, claims: dict[str, Any] | None) -> None: ...

    def get_custom_user_claims(self, uid: str) -> dict[str, Any]: ...


@dataclass
class InMemoryClaimsBackend:
    """Claims held in a dict, for tests and local tooling."""

    _claims: dict[str, dict[str, Any]] = field(default_factory=dict)

    def set_custom_user_claims(self, uid: str, claims: dict[str, Any] | None) -> None:
        if claims is None:
            self._claims.pop(uid, None)
        else:
            self._claims[uid] = dict(claims)

    def get_custom_user_claims(self, uid: str) -> dict[str, Any]:
        return dict(self._claims.get(uid, {}))


def build_claims(
    role: UserRole | str,
    branch_id: str | None = None,
    branch_ids: Iterable[str] | None = None,
    company_id: str | None = None,
) -> dict[str, Any]:
    """Build a claims payload with the level derived from ``role``."""
    level = permission_level(role)
    claims: dict[str, Any] = {"role": UserRole(role).value, "permissionLevel": int(level)}
    if branch_id:
        claims["branchId"] = branch_id
    if branch_ids:
        if level < PermissionLevel.SUPERADMIN:
            raise ConfigurationError("branchIds is only assignable to superadmins")
        claims["branchIds"] = sorted(set(branch_ids))
    if company_id:
        claims["companyId"] = company_id
    return claims


class ClaimsProvisioner:
    """Set and revoke custom claims on behalf of a superadmin."""

    def __init__(self, backend: ClaimsBackend, store: DocumentStore) -> None:
        self._backend = backend
        self._store = store

    def set_user_claims(
        self,
        caller: Principal,
        uid: str,
        role: UserRole | str,
        branch_id: str | None = None,
        branch_ids: Iterable[str] | None = None,
        company_id: str | None = None,
    ) -> dict[str, Any]:
        """Write claims for ``uid`` and mirror them onto the user document.

        Raises:
            AccessDeniedError: the caller is not a superadmin.
            ConfigurationError: unknown role or invalid branch assignment.
        """
        RBACEnforcer.require_level(caller, PermissionLevel.SUPERADMIN)
        if not uid:
            raise ConfigurationError("uid is required")

        claims = build_claims(role, branch_id, branch_ids, company_id)
        self._backend.set_custom_user_claims(uid, claims)
        self._store.set(
            Collection.USERS,
            uid,
            {**claims, "updatedAt": datetime.now(timezone.utc)},
            merge=True,
        )
        logger.info("Custom claims set for user %s: role=%s", uid, claims["role"])
        return claims

    def revoke_claims(self, caller: Principal, uid: str) -> None:
        """Remove every derived claim from ``uid``."""
        RBACEnforcer.require_level(caller, PermissionLevel.SUPERADMIN)
        self._backend.set_custom_user_claims(uid, None)
        user = self._store.get(Collection.USERS, uid)
        if user is not None:
            data = {k: v for k, v in user.data.items() if k not in CLAIM_KEYS}
            data["updatedAt"] = datetime.now(timezone.utc)
            self._store.set(Collection.USERS, uid, data)
        logger.info("Custom claims revoked for user %s", uid)

    def principal_for(self, uid: str) -> Principal:
        """Resolve the principal currently provisioned for ``uid``."""
        return Principal.from_claims(uid, self._backend.get_custom_user_claims(uid))


__all__ = [
    "CLAIM_KEYS",
    "ClaimsBackend",
    "InMemoryClaimsBackend",
    "ClaimsProvisioner",
    "build_claims",
]
