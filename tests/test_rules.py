"""Tests for the authorization rule mirror and its rendering."""

from __future__ import annotations

import pytest

from taklaget.auth.models import Principal
from taklaget.common.errors import AccessDeniedError, PermissionDeniedError
from taklaget.rules.expressions import (
    AllOf,
    AnyOf,
    BranchAccess,
    FieldIn,
    LevelAtLeast,
    Never,
    OnlyFieldsChanged,
    SingleOwner,
    Target,
)
from taklaget.rules.render import render_firestore_rules
from taklaget.rules.request import Operation, RuleRequest
from taklaget.rules.ruleset import DEFAULT_RULESET, CollectionRules, RuleEvaluator, RuleSet

INSPECTOR_B1 = Principal(uid="i1", role="inspector", branchId="B1")
MANAGER_B1 = Principal(uid="m1", role="branchAdmin", branchId="B1")
SUPERADMIN = Principal(uid="s1", role="superadmin")
CUSTOMER = Principal(uid="c1", role="customer", customerId="C1", companyId="CO1")


def _request(
    principal: Principal | None,
    operation: Operation,
    collection: str = "reports",
    doc_id: str | None = "doc-1",
    resource: dict | None = None,
    incoming: dict | None = None,
) -> RuleRequest:
    return RuleRequest.for_principal(principal, operation, collection, doc_id, resource, incoming)


@pytest.fixture
def evaluator() -> RuleEvaluator:
    return RuleEvaluator()


# ── Expressions ──


class TestExpressions:
    def test_level_requires_auth(self) -> None:
        expr = LevelAtLeast(-1)
        assert not expr.evaluate(_request(None, Operation.GET))
        assert expr.evaluate(_request(CUSTOMER, Operation.GET))

    def test_branch_access_rejects_non_string(self) -> None:
        request = _request(INSPECTOR_B1, Operation.GET, resource={"branchId": ["B1"]})
        assert not BranchAccess().evaluate(request)

    def test_branch_list_ignored_below_all_branch_level(self) -> None:
        token = {"uid": "i1", "role": "inspector", "permissionLevel": 0,
                 "branchId": "B1", "branchIds": ["B1", "B2"]}
        home = RuleRequest(Operation.GET, "reports", "r1", token, {"branchId": "B1"})
        other = RuleRequest(Operation.GET, "reports", "r2", token, {"branchId": "B2"})
        assert BranchAccess().evaluate(home)
        assert not BranchAccess().evaluate(other)
        assert not RuleEvaluator().allows(other)

    def test_single_owner_on_incoming(self) -> None:
        expr = SingleOwner()
        assert expr.evaluate(_request(INSPECTOR_B1, Operation.CREATE, incoming={"customerId": "C1"}))
        assert not expr.evaluate(
            _request(INSPECTOR_B1, Operation.CREATE, incoming={"customerId": "C1", "companyId": "CO1"})
        )

    def test_field_in_accepts_enum_members(self) -> None:
        expr = FieldIn("status", frozenset({"pending"}))
        assert expr.evaluate(_request(None, Operation.GET, resource={"status": "pending"}))

    def test_only_fields_changed(self) -> None:
        expr = OnlyFieldsChanged(("read",))
        before = {"read": False, "userId": "u1"}
        assert expr.evaluate(_request(None, Operation.UPDATE, resource=before, incoming={**before, "read": True}))
        assert not expr.evaluate(
            _request(None, Operation.UPDATE, resource=before, incoming={**before, "userId": "u2"})
        )
        assert not expr.evaluate(
            _request(None, Operation.UPDATE, resource=before, incoming={**before, "extra": 1})
        )

    def test_any_of_drops_never(self) -> None:
        expr = AnyOf(Never(), LevelAtLeast(0))
        assert expr.render() == "hasLevel(0)"
        assert AnyOf(Never()).render() == "false"

    def test_all_of_render(self) -> None:
        expr = AllOf(LevelAtLeast(1), BranchAccess(Target.INCOMING))
        assert expr.render() == (
            "(hasLevel(1) && canAccessBranch(request.resource.data.get('branchId', null)))"
        )


# ── Branch-scoped collections ──


class TestBranchScopedRules:
    def test_branch_manager_scenario(self, evaluator: RuleEvaluator) -> None:
        other = _request(MANAGER_B1, Operation.GET, resource={"branchId": "B2"})
        own = _request(MANAGER_B1, Operation.GET, resource={"branchId": "B1"})
        assert not evaluator.allows(other)
        assert evaluator.allows(own)

    def test_org_admin_scenario(self, evaluator: RuleEvaluator) -> None:
        admin = Principal(uid="s2", role="superadmin", branchIds=["B1", "B2"])
        for branch in ("B1", "B2", "B7"):
            assert evaluator.allows(_request(admin, Operation.GET, resource={"branchId": branch}))

    def test_create_in_own_branch_only(self, evaluator: RuleEvaluator) -> None:
        assert evaluator.allows(_request(INSPECTOR_B1, Operation.CREATE, incoming={"branchId": "B1"}))
        assert not evaluator.allows(_request(INSPECTOR_B1, Operation.CREATE, incoming={"branchId": "B2"}))
        assert not evaluator.allows(_request(INSPECTOR_B1, Operation.CREATE, incoming={}))

    def test_customer_cannot_create(self, evaluator: RuleEvaluator) -> None:
        customer = Principal(uid="c1", role="customer", branchId="B1")
        assert not evaluator.allows(_request(customer, Operation.CREATE, incoming={"branchId": "B1"}))

    def test_branch_move_requires_all_branches(self, evaluator: RuleEvaluator) -> None:
        before = {"branchId": "B1"}
        move = {"branchId": "B2"}
        manager_both = Principal(uid="m2", role="branchAdmin", branchId="B1")
        assert not evaluator.allows(
            _request(manager_both, Operation.UPDATE, resource=before, incoming=move)
        )
        assert evaluator.allows(_request(SUPERADMIN, Operation.UPDATE, resource=before, incoming=move))
        assert evaluator.allows(
            _request(INSPECTOR_B1, Operation.UPDATE, resource=before, incoming={**before, "title": "x"})
        )

    def test_delete_needs_manager(self, evaluator: RuleEvaluator) -> None:
        resource = {"branchId": "B1"}
        assert not evaluator.allows(_request(INSPECTOR_B1, Operation.DELETE, resource=resource))
        assert evaluator.allows(_request(MANAGER_B1, Operation.DELETE, resource=resource))

    def test_owner_reads_owned_report(self, evaluator: RuleEvaluator) -> None:
        resource = {"branchId": "B9", "customerId": "C1"}
        assert evaluator.allows(_request(CUSTOMER, Operation.GET, resource=resource))
        assert not evaluator.allows(_request(CUSTOMER, Operation.UPDATE, resource=resource, incoming=resource))

    def test_customers_collection_not_owner_readable(self, evaluator: RuleEvaluator) -> None:
        resource = {"branchId": "B1", "customerId": "C1"}
        assert not evaluator.allows(_request(CUSTOMER, Operation.GET, "customers", resource=resource))

    def test_building_write_requires_single_owner(self, evaluator: RuleEvaluator) -> None:
        both = {"branchId": "B1", "customerId": "C1", "companyId": "CO1"}
        one = {"branchId": "B1", "customerId": "C1"}
        assert not evaluator.allows(_request(INSPECTOR_B1, Operation.CREATE, "buildings", incoming=both))
        assert evaluator.allows(_request(INSPECTOR_B1, Operation.CREATE, "buildings", incoming=one))
        assert not evaluator.allows(
            _request(INSPECTOR_B1, Operation.UPDATE, "buildings", resource=one, incoming=both)
        )

    def test_company_readable_by_its_member(self, evaluator: RuleEvaluator) -> None:
        resource = {"branchId": "B1", "name": "Tag A/S"}
        assert evaluator.allows(_request(CUSTOMER, Operation.GET, "companies", "CO1", resource))
        assert not evaluator.allows(_request(CUSTOMER, Operation.GET, "companies", "CO2", resource))
        assert not evaluator.allows(_request(CUSTOMER, Operation.LIST, "companies", "CO1", resource))


# ── Users and other collections ──


class TestOtherCollections:
    def test_user_reads_self(self, evaluator: RuleEvaluator) -> None:
        assert evaluator.allows(_request(CUSTOMER, Operation.GET, "users", "c1", {"role": "customer"}))
        assert not evaluator.allows(_request(CUSTOMER, Operation.GET, "users", "other", {"role": "customer"}))

    def test_manager_creates_users_up_to_own_level(self, evaluator: RuleEvaluator) -> None:
        inspector = {"branchId": "B1", "role": "inspector", "permissionLevel": 0}
        superadmin = {"branchId": "B1", "role": "superadmin", "permissionLevel": 2}
        assert evaluator.allows(_request(MANAGER_B1, Operation.CREATE, "users", "u2", incoming=inspector))
        assert not evaluator.allows(_request(MANAGER_B1, Operation.CREATE, "users", "u2", incoming=superadmin))
        assert not evaluator.allows(
            _request(MANAGER_B1, Operation.CREATE, "users", "u2", incoming={**inspector, "branchId": "B2"})
        )
        assert not evaluator.allows(_request(INSPECTOR_B1, Operation.CREATE, "users", "u2", incoming=inspector))

    def test_branches_written_by_superadmin_only(self, evaluator: RuleEvaluator) -> None:
        assert evaluator.allows(_request(INSPECTOR_B1, Operation.GET, "branches", "B1", {"name": "Aarhus"}))
        assert not evaluator.allows(_request(MANAGER_B1, Operation.UPDATE, "branches", "B1", {}, {}))
        assert evaluator.allows(_request(SUPERADMIN, Operation.CREATE, "branches", "B9", incoming={}))

    def test_notifications_owner_marks_read(self, evaluator: RuleEvaluator) -> None:
        note = {"userId": "i1", "read": False, "title": "Hi"}
        assert evaluator.allows(_request(INSPECTOR_B1, Operation.GET, "notifications", "n1", note))
        assert evaluator.allows(
            _request(INSPECTOR_B1, Operation.UPDATE, "notifications", "n1", note, {**note, "read": True})
        )
        assert not evaluator.allows(
            _request(INSPECTOR_B1, Operation.UPDATE, "notifications", "n1", note, {**note, "title": "x"})
        )
        assert not evaluator.allows(_request(MANAGER_B1, Operation.GET, "notifications", "n1", note))

    def test_findings_readable_by_all_branch_principals(self, evaluator: RuleEvaluator) -> None:
        finding = {"type": "building_no_owner"}
        assert evaluator.allows(_request(SUPERADMIN, Operation.LIST, "validation_errors", "f1", finding))
        assert not evaluator.allows(_request(MANAGER_B1, Operation.LIST, "validation_errors", "f1", finding))
        assert not evaluator.allows(
            _request(SUPERADMIN, Operation.CREATE, "validation_errors", "f1", incoming=finding)
        )

    @pytest.mark.parametrize("collection", ["mail", "emailLogs", "somethingElse"])
    def test_server_only_and_unknown_denied(self, evaluator: RuleEvaluator, collection: str) -> None:
        for operation in Operation:
            assert not evaluator.allows(_request(SUPERADMIN, operation, collection, resource={}, incoming={}))


# ── Public offer link ──


class TestPublicOffer:
    OFFER = {"branchId": "B1", "status": "pending", "publicLink": "https://taklaget.app/offer/public/o1"}

    def test_unauthenticated_get_with_public_link(self, evaluator: RuleEvaluator) -> None:
        assert evaluator.allows(_request(None, Operation.GET, "offers", "o1", self.OFFER))
        private = {k: v for k, v in self.OFFER.items() if k != "publicLink"}
        assert not evaluator.allows(_request(None, Operation.GET, "offers", "o1", private))

    def test_unauthenticated_list_denied(self, evaluator: RuleEvaluator) -> None:
        assert not evaluator.allows(_request(None, Operation.LIST, "offers", "o1", self.OFFER))

    def test_accept_open_offer(self, evaluator: RuleEvaluator) -> None:
        incoming = {**self.OFFER, "status": "accepted", "customerResponse": "accept"}
        assert evaluator.allows(_request(None, Operation.UPDATE, "offers", "o1", self.OFFER, incoming))

    def test_cannot_touch_other_fields(self, evaluator: RuleEvaluator) -> None:
        incoming = {**self.OFFER, "status": "accepted", "totalAmount": 1}
        assert not evaluator.allows(_request(None, Operation.UPDATE, "offers", "o1", self.OFFER, incoming))

    def test_cannot_reopen_decided_offer(self, evaluator: RuleEvaluator) -> None:
        decided = {**self.OFFER, "status": "rejected"}
        incoming = {**decided, "status": "accepted"}
        assert not evaluator.allows(_request(None, Operation.UPDATE, "offers", "o1", decided, incoming))

    def test_cannot_expire_offer(self, evaluator: RuleEvaluator) -> None:
        incoming = {**self.OFFER, "status": "expired"}
        assert not evaluator.allows(_request(None, Operation.UPDATE, "offers", "o1", self.OFFER, incoming))


# ── Evaluator ──


class TestRuleEvaluator:
    def test_authorize_raises_generic_denial(self, evaluator: RuleEvaluator) -> None:
        with pytest.raises(PermissionDeniedError, match="Missing or insufficient permissions"):
            evaluator.authorize(_request(INSPECTOR_B1, Operation.GET, resource={"branchId": "B2"}))

    def test_permission_denied_is_access_denied(self) -> None:
        assert issubclass(PermissionDeniedError, AccessDeniedError)

    def test_missing_operation_denied(self) -> None:
        ruleset = RuleSet(collections=(CollectionRules("things", {Operation.GET: LevelAtLeast(0)}),))
        evaluator = RuleEvaluator(ruleset)
        assert evaluator.allows(_request(INSPECTOR_B1, Operation.GET, "things"))
        assert not evaluator.allows(_request(INSPECTOR_B1, Operation.DELETE, "things"))

    def test_every_collection_ruled_once(self) -> None:
        names = [r.collection for r in DEFAULT_RULESET.collections]
        assert len(names) == len(set(names))


# ── Rendering ──


class TestRenderFirestoreRules:
    def test_header_and_default_deny(self) -> None:
        text = render_firestore_rules()
        assert text.startswith("rules_version = '2';\n")
        assert "match /{document=**} {" in text
        assert "allow read, write: if false;" in text

    def test_every_collection_and_operation_rendered(self) -> None:
        text = render_firestore_rules()
        for rules in DEFAULT_RULESET.collections:
            assert f"match /{rules.collection}/{{docId}} {{" in text
        assert text.count("allow get: if") == len(DEFAULT_RULESET.collections)
        assert text.count("allow delete: if") == len(DEFAULT_RULESET.collections)

    def test_helpers_emitted(self) -> None:
        text = render_firestore_rules()
        for helper in ("isSignedIn", "hasLevel", "canAccessBranch", "hasSingleOwner", "isOwner"):
            assert f"function {helper}(" in text

    def test_server_only_writes_render_false(self) -> None:
        ruleset = RuleSet(collections=(CollectionRules("mail", {}),))
        text = render_firestore_rules(ruleset)
        assert "allow create: if false;" in text
        assert "allow list: if false;" in text

    def test_offer_response_render(self) -> None:
        text = render_firestore_rules()
        assert "affectedKeys().hasOnly(['status', 'statusHistory'" in text
        assert "resource.data.get('status', null) in ['awaiting_response', 'pending']" in text

    def test_deterministic(self) -> None:
        assert render_firestore_rules() == render_firestore_rules()
