"""Authentication models: roles, permission levels and principals."""

from __future__ import annotations

from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from taklaget.common.errors import ConfigurationError


class UserRole(StrEnum):
    """User roles as stored in custom claims."""

    CUSTOMER = "customer"
    INSPECTOR = "inspector"
    BRANCH_ADMIN = "branchAdmin"
    SUPERADMIN = "superadmin"


class PermissionLevel(IntEnum):
    """Totally ordered role seniority; compare with ``>=``."""

    CUSTOMER = -1
    INSPECTOR = 0
    BRANCH_ADMIN = 1
    SUPERADMIN = 2


# The one role -> level table; read-only at runtime
ROLE_PERMISSION_LEVELS: Mapping[UserRole, PermissionLevel] = MappingProxyType({
    UserRole.CUSTOMER: PermissionLevel.CUSTOMER,
    UserRole.INSPECTOR: PermissionLevel.INSPECTOR,
    UserRole.BRANCH_ADMIN: PermissionLevel.BRANCH_ADMIN,
    UserRole.SUPERADMIN: PermissionLevel.SUPERADMIN,
})

INTERNAL_ROLES: frozenset[UserRole] = frozenset({
    UserRole.INSPECTOR,
    UserRole.BRANCH_ADMIN,
    UserRole.SUPERADMIN,
})


class Principal(BaseModel):
    """An authenticated actor.

    ``permission_level`` is derived from ``role``. A payload that carries a
    level disagreeing with its role is rejected, as is a ``branchIds`` list
    on any role below superadmin.

    Direct construction reports these as pydantic ``ValidationError`` (a
    ``ValueError``). Token claims go through :meth:`from_claims`, which
    converts them to ``ConfigurationError``.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    uid: str = Field(min_length=1)
    role: UserRole
    permission_level: PermissionLevel = Field(alias="permissionLevel")
    branch_id: str | None = Field(default=None, alias="branchId")
    branch_ids: frozenset[str] = Field(default_factory=frozenset, alias="branchIds")
    company_id: str | None = Field(default=None, alias="companyId")
    customer_id: str | None = Field(default=None, alias="customerId")
    email: str | None = None

    @model_validator(mode="before")
    @classmethod
    def derive_permission_level(cls, data: Any) -> Any:
        """Set the level from the role; reject a conflicting level or branch list."""
        if not isinstance(data, dict):
            return data
        data = dict(data)
        role = data.get("role")
        try:
            role = UserRole(role)
        except ValueError:
            # left to field validation, which reports the bad role
            return data
        derived = ROLE_PERMISSION_LEVELS[role]
        supplied = data.pop("permissionLevel", data.pop("permission_level", None))
        if supplied is not None and int(supplied) != derived:
            raise ValueError(
                f"permissionLevel {supplied} does not match role {role.value}"
            )
        branch_ids = data.get("branchIds", data.get("branch_ids"))
        if branch_ids and derived < PermissionLevel.SUPERADMIN:
            raise ValueError(
                f"branchIds is only assignable to superadmins, not {role.value}"
            )
        data["permissionLevel"] = derived
        return data

    @property
    def branch_scope(self) -> frozenset[str]:
        """All branches the principal is assigned to."""
        scope = set(self.branch_ids)
        if self.branch_id:
            scope.add(self.branch_id)
        return frozenset(scope)

    @property
    def is_internal(self) -> bool:
        return self.role in INTERNAL_ROLES

    def to_claims(self) -> dict[str, Any]:
        """Custom-claims dict as exposed to the rules (``request.auth.token``)."""
        claims: dict[str, Any] = {
            "uid": self.uid,
            "role": self.role.value,
            "permissionLevel": int(self.permission_level),
        }
        if self.branch_id:
            claims["branchId"] = self.branch_id
        if self.branch_ids:
            claims["branchIds"] = sorted(self.branch_ids)
        if self.company_id:
            claims["companyId"] = self.company_id
        if self.customer_id:
            claims["customerId"] = self.customer_id
        if self.email:
            claims["email"] = self.email
        return claims

    @classmethod
    def from_claims(cls, uid: str, claims: Mapping[str, Any]) -> Principal:
        """Build a principal from decoded token claims.

        Raises:
            ConfigurationError: unknown role or otherwise malformed claims.
        """
        try:
            return cls.model_validate({**claims, "uid": uid})
        except ValidationError as exc:
            raise ConfigurationError(f"Malformed principal {uid!r}: {exc}") from exc


__all__ = [
    "UserRole",
    "PermissionLevel",
    "ROLE_PERMISSION_LEVELS",
    "INTERNAL_ROLES",
    "Principal",
]
