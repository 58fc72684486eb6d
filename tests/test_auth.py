"""Tests for roles, permission levels, principals, RBAC and claims."""

import pytest
from pydantic import ValidationError

from taklaget.auth.claims import ClaimsProvisioner, InMemoryClaimsBackend, build_claims
from taklaget.auth.models import (
    INTERNAL_ROLES,
    ROLE_PERMISSION_LEVELS,
    PermissionLevel,
    Principal,
    UserRole,
)
from taklaget.auth.permissions import (
    at_least,
    can_access_all_branches,
    can_manage_branches,
    can_manage_users,
    permission_level,
)
from taklaget.auth.rbac import RBACEnforcer, owns_record
from taklaget.common.errors import AccessDeniedError, ConfigurationError
from taklaget.storage.store import InMemoryDocumentStore


def _principal(role: str = "inspector", **overrides: object) -> Principal:
    base: dict = {"uid": "user-1", "role": role, "branchId": "B1"}
    base.update(overrides)
    return Principal(**base)


# ── UserRole / PermissionLevel tests ──


class TestUserRole:
    def test_all_roles_exist(self) -> None:
        roles = {r.value for r in UserRole}
        assert roles == {"customer", "inspector", "branchAdmin", "superadmin"}

    def test_role_from_string(self) -> None:
        assert UserRole("branchAdmin") == UserRole.BRANCH_ADMIN

    def test_internal_roles_exclude_customer(self) -> None:
        assert UserRole.CUSTOMER not in INTERNAL_ROLES
        assert len(INTERNAL_ROLES) == 3


class TestPermissionLevel:
    def test_every_role_has_a_level(self) -> None:
        for role in UserRole:
            assert permission_level(role) == ROLE_PERMISSION_LEVELS[role]

    def test_levels_strictly_increase_with_seniority(self) -> None:
        hierarchy = [
            UserRole.CUSTOMER,
            UserRole.INSPECTOR,
            UserRole.BRANCH_ADMIN,
            UserRole.SUPERADMIN,
        ]
        levels = [permission_level(r) for r in hierarchy]
        assert levels == sorted(levels)
        assert len(set(levels)) == len(levels)

    def test_level_values(self) -> None:
        assert permission_level("customer") == -1
        assert permission_level("inspector") == 0
        assert permission_level("branchAdmin") == 1
        assert permission_level("superadmin") == 2

    def test_unknown_role_is_configuration_error(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown role"):
            permission_level("owner")

    def test_role_table_is_read_only(self) -> None:
        with pytest.raises(TypeError):
            ROLE_PERMISSION_LEVELS[UserRole.CUSTOMER] = PermissionLevel.SUPERADMIN  # type: ignore[index]


class TestLevelPredicates:
    def test_at_least(self) -> None:
        assert at_least(PermissionLevel.BRANCH_ADMIN, PermissionLevel.INSPECTOR)
        assert at_least(PermissionLevel.INSPECTOR, PermissionLevel.INSPECTOR)
        assert not at_least(PermissionLevel.CUSTOMER, PermissionLevel.INSPECTOR)

    @pytest.mark.parametrize(
        ("level", "users", "branches", "all_branches"),
        [
            (PermissionLevel.CUSTOMER, False, False, False),
            (PermissionLevel.INSPECTOR, False, False, False),
            (PermissionLevel.BRANCH_ADMIN, True, False, False),
            (PermissionLevel.SUPERADMIN, True, True, True),
        ],
    )
    def test_admin_predicates(
        self, level: PermissionLevel, users: bool, branches: bool, all_branches: bool,
    ) -> None:
        assert can_manage_users(level) is users
        assert can_manage_branches(level) is branches
        assert can_access_all_branches(level) is all_branches


# ── Principal tests ──


class TestPrincipal:
    def test_level_derived_from_role(self) -> None:
        p = _principal("branchAdmin")
        assert p.permission_level == PermissionLevel.BRANCH_ADMIN

    def test_matching_supplied_level_accepted(self) -> None:
        p = _principal("superadmin", permissionLevel=2)
        assert p.permission_level == PermissionLevel.SUPERADMIN

    def test_conflicting_level_rejected(self) -> None:
        with pytest.raises(ValidationError, match="does not match role"):
            _principal("inspector", permissionLevel=2)

    def test_unknown_role_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _principal("owner")

    def test_empty_uid_rejected(self) -> None:
        with pytest.raises(ValidationError):
            _principal(uid="")

    def test_frozen(self) -> None:
        p = _principal()
        with pytest.raises(ValidationError):
            p.role = UserRole.SUPERADMIN  # type: ignore[misc]

    def test_branch_scope_combines_home_and_list(self) -> None:
        p = _principal("superadmin", branchId="B1", branchIds=["B2", "B3"])
        assert p.branch_scope == frozenset({"B1", "B2", "B3"})

    def test_to_claims_uses_wire_names(self) -> None:
        p = _principal("customer", branchId=None, companyId="CO1", customerId="C1")
        claims = p.to_claims()
        assert claims["role"] == "customer"
        assert claims["permissionLevel"] == -1
        assert claims["companyId"] == "CO1"
        assert claims["customerId"] == "C1"
        assert "branchId" not in claims

    def test_from_claims_round_trip(self) -> None:
        p = _principal("superadmin", branchIds=["B2", "B1"])
        restored = Principal.from_claims(p.uid, p.to_claims())
        assert restored == p

    def test_from_claims_malformed(self) -> None:
        with pytest.raises(ConfigurationError, match="Malformed principal"):
            Principal.from_claims("user-1", {"role": "janitor"})

    def test_from_claims_conflicting_level(self) -> None:
        with pytest.raises(ConfigurationError, match="does not match role"):
            Principal.from_claims("user-1", {"role": "inspector", "permissionLevel": 2})

    @pytest.mark.parametrize("role", ["customer", "inspector", "branchAdmin"])
    def test_branch_ids_rejected_below_superadmin(self, role: str) -> None:
        with pytest.raises(ValidationError, match="branchIds is only assignable"):
            _principal(role, branchIds=["B1", "B2"])

    def test_empty_branch_ids_accepted_below_superadmin(self) -> None:
        p = _principal("inspector", branchIds=[])
        assert p.branch_scope == frozenset({"B1"})

    def test_from_claims_branch_ids_rejected_below_superadmin(self) -> None:
        claims = {"role": "inspector", "branchId": "B1", "branchIds": ["B1", "B2"]}
        with pytest.raises(ConfigurationError, match="branchIds"):
            Principal.from_claims("i1", claims)


# ── RBAC tests ──


class TestRBACEnforcer:
    def test_require_level_allows(self) -> None:
        RBACEnforcer.require_level(_principal("branchAdmin"), PermissionLevel.INSPECTOR)

    def test_require_level_denies_generically(self) -> None:
        with pytest.raises(AccessDeniedError, match="^Access denied$"):
            RBACEnforcer.require_level(_principal("inspector"), PermissionLevel.SUPERADMIN)

    def test_check_level(self) -> None:
        assert RBACEnforcer.check_level(_principal("superadmin"), PermissionLevel.BRANCH_ADMIN)
        assert not RBACEnforcer.check_level(_principal("customer"), PermissionLevel.INSPECTOR)

    def test_internal_reads_own_branch_only(self) -> None:
        p = _principal("inspector", branchId="B1")
        assert RBACEnforcer.can_read_record(p, {"branchId": "B1"})
        assert not RBACEnforcer.can_read_record(p, {"branchId": "B2"})

    def test_customer_reads_only_owned(self) -> None:
        p = _principal("customer", branchId="B1", customerId="C1")
        assert RBACEnforcer.can_read_record(p, {"branchId": "B9", "customerId": "C1"})
        assert not RBACEnforcer.can_read_record(p, {"branchId": "B1", "customerId": "C2"})

    def test_company_owner(self) -> None:
        p = _principal("customer", companyId="CO1")
        assert owns_record(p, {"companyId": "CO1"})
        assert not owns_record(p, {"companyId": "CO2"})

    def test_require_read_raises(self) -> None:
        with pytest.raises(AccessDeniedError):
            RBACEnforcer.require_read(_principal(), {"branchId": "B2"})

    def test_only_superadmin_reassigns_branch(self) -> None:
        assert RBACEnforcer.can_reassign_branch(_principal("superadmin"))
        assert not RBACEnforcer.can_reassign_branch(_principal("branchAdmin"))


# ── Claims provisioning tests ──


class TestBuildClaims:
    def test_level_derived(self) -> None:
        claims = build_claims("branchAdmin", branch_id="B1")
        assert claims == {"role": "branchAdmin", "permissionLevel": 1, "branchId": "B1"}

    def test_branch_ids_sorted_for_superadmin(self) -> None:
        claims = build_claims(UserRole.SUPERADMIN, branch_ids=["B2", "B1", "B2"])
        assert claims["branchIds"] == ["B1", "B2"]

    def test_branch_ids_rejected_below_superadmin(self) -> None:
        with pytest.raises(ConfigurationError, match="branchIds"):
            build_claims("inspector", branch_ids=["B1"])

    def test_unknown_role(self) -> None:
        with pytest.raises(ConfigurationError):
            build_claims("owner")


class TestClaimsProvisioner:
    def _provisioner(self) -> tuple[ClaimsProvisioner, InMemoryClaimsBackend, InMemoryDocumentStore]:
        backend = InMemoryClaimsBackend()
        store = InMemoryDocumentStore()
        return ClaimsProvisioner(backend, store), backend, store

    def test_set_claims_requires_superadmin(self) -> None:
        provisioner, _, _ = self._provisioner()
        with pytest.raises(AccessDeniedError):
            provisioner.set_user_claims(_principal("branchAdmin"), "user-2", "inspector", "B1")

    def test_set_claims_writes_backend_and_user_doc(self) -> None:
        provisioner, backend, store = self._provisioner()
        store.set("users", "user-2", {"email": "a@example.com"})
        provisioner.set_user_claims(_principal("superadmin"), "user-2", "inspector", "B1")

        assert backend.get_custom_user_claims("user-2")["permissionLevel"] == 0
        user = store.get("users", "user-2")
        assert user is not None
        assert user.get("role") == "inspector"
        assert user.get("email") == "a@example.com"
        assert "updatedAt" in user.data

    def test_principal_for(self) -> None:
        provisioner, _, _ = self._provisioner()
        provisioner.set_user_claims(_principal("superadmin"), "user-2", "branchAdmin", "B3")
        p = provisioner.principal_for("user-2")
        assert p.role == UserRole.BRANCH_ADMIN
        assert p.branch_id == "B3"

    def test_revoke_claims(self) -> None:
        provisioner, backend, store = self._provisioner()
        caller = _principal("superadmin")
        provisioner.set_user_claims(caller, "user-2", "inspector", "B1")
        provisioner.revoke_claims(caller, "user-2")

        assert backend.get_custom_user_claims("user-2") == {}
        user = store.get("users", "user-2")
        assert user is not None
        assert "role" not in user.data
        assert "branchId" not in user.data
        with pytest.raises(ConfigurationError):
            provisioner.principal_for("user-2")
