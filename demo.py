#!/usr/bin/env python3
"""
Taklaget Demo Script.

This script walks through the access-control core against an in-memory
store. It simulates:
1. Branch-scoped reads for a branch admin and a superadmin.
2. Building creation with the single-owner rule and the relationship audit.
3. A customer answering an offer through its public link.

Usage:
    python demo.py [rules-output-path]
"""

import os
import sys

# Ensure src is in python path
sys.path.append(os.path.join(os.getcwd(), "src"))

from taklaget.auth.models import Principal
from taklaget.common.config import TaklagetConfig, configure_logging
from taklaget.common.errors import AccessDeniedError, OwnershipError
from taklaget.integrity.audit import RelationshipAuditor
from taklaget.offers.response import OfferResponseService, public_offer_link
from taklaget.rules.render import render_firestore_rules
from taklaget.services.scoped import ScopedCollection
from taklaget.services.triggers import audit_triggers
from taklaget.storage.store import InMemoryDocumentStore


def seed(store):
    store.set("customers", "C1", {"name": "Anna Jensen", "branchId": "B1"})
    store.set("reports", "R1", {"branchId": "B1", "buildingId": "BLD1", "customerId": "C1"})
    store.set("reports", "R2", {"branchId": "B2", "buildingId": "BLD2"})


def run_demo(rules_path=None):
    config = TaklagetConfig()
    configure_logging(config)

    print("========================================")
    print("   Taklaget Access Control Demo")
    print("========================================")

    store = InMemoryDocumentStore()
    seed(store)
    auditor = RelationshipAuditor.from_settings(store, config)
    triggers = audit_triggers(auditor)

    manager = Principal(uid="m1", role="branchAdmin", branchId="B1")
    admin = Principal(uid="s1", role="superadmin", branchIds=["B1", "B2"])

    # 1. Branch scoping
    print("\n[1] Branch-scoped reads...")
    reports = ScopedCollection(store, "reports", triggers=triggers)
    print(f"    branchAdmin@B1 sees: {[d.id for d in reports.list_visible(manager)]}")
    print(f"    superadmin sees:     {[d.id for d in reports.list_visible(admin)]}")
    try:
        reports.get(manager, "R2")
    except AccessDeniedError as e:
        print(f"    branchAdmin@B1 reading R2 -> {e}")

    # 2. Ownership rule and audit
    print("\n[2] Creating buildings...")
    buildings = ScopedCollection(store, "buildings", triggers=triggers)
    try:
        buildings.create(manager, {"customerId": "C1", "companyId": "CO1"})
    except OwnershipError as e:
        print(f"    Rejected: {e}")
    building = buildings.create(manager, {"customerId": "C404", "address": "Tagvej 4"})
    print(f"    Created {building.path} pointing at a missing customer")
    for finding in auditor.findings.query():
        print(f"    -> Finding: {finding.type} on {finding.collection}/{finding.document_id}")

    # 3. Public offer response
    print("\n[3] Customer answers an offer...")
    offers = ScopedCollection(store, "offers", triggers=triggers)
    offer = offers.create(manager, {"reportId": "R1", "status": "pending", "customerName": "Anna Jensen"})
    link = public_offer_link(config.app_base_url, offer.id)
    offers.update(manager, offer.id, {"publicLink": link})
    print(f"    Public link: {link}")
    response = OfferResponseService(store).respond(offer.id, "accept")
    print(f"    -> Offer is now {response.status}")

    rules = render_firestore_rules()
    if rules_path:
        with open(rules_path, "w") as f:
            f.write(rules)
        print(f"\nRules written to {rules_path} ({len(rules.splitlines())} lines)")

    print("\n========================================")
    print("Demo complete.")


if __name__ == "__main__":
    run_demo(sys.argv[1] if len(sys.argv) > 1 else None)
