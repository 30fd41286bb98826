"""
Tests for the tenant-scoped store.
"""

from datetime import timedelta

import pytest

from estimate_core.contracts.identity import Claimed, Unclaimed
from estimate_core.persistence.repo import (
    COMPANY_CODE_ALPHABET,
    COMPANY_CODE_LENGTH,
    generate_company_code,
    setup_status,
)


class TestCompanies:
    def test_company_code_format(self):
        code = generate_company_code()
        assert len(code) == COMPANY_CODE_LENGTH
        assert set(code) <= set(COMPANY_CODE_ALPHABET)

    def test_create_company_assigns_unique_codes(self, store, tenants):
        codes = {tenants["co1"]["company"].company_code, tenants["co2"]["company"].company_code}
        assert len(codes) == 2
        assert tenants["co1"]["company"].is_verified is False

    def test_get_company_by_code_is_case_insensitive(self, store, tenants):
        company = tenants["co1"]["company"]
        assert store.get_company_by_code(company.company_code.lower()).id == company.id
        assert store.get_company_by_code("") is None

    def test_get_company_backfills_missing_code(self, db, store, tenants):
        company = tenants["co1"]["company"]
        company.company_code = None
        db.commit()

        fetched = store.get_company_by_id(company.id)
        assert fetched.company_code
        assert len(fetched.company_code) == COMPANY_CODE_LENGTH

    def test_update_company(self, db, store, tenants):
        company = tenants["co1"]["company"]
        updated = store.update_company(company.id, address="1 Main St", tax_id="12-345")
        db.commit()
        assert updated.address == "1 Main St"
        assert store.get_company_by_id(company.id).tax_id == "12-345"

    def test_update_never_creates(self, db, store):
        from estimate_core.persistence.models import Company

        assert store.update_company("no-such-company", name="Ghost") is None
        assert store.update_company("", name="Ghost") is None
        assert db.query(Company).count() == 0

    def test_update_unknown_field_rejected(self, store, tenants):
        with pytest.raises(ValueError):
            store.update_company(tenants["co1"]["company"].id, id="hijack")


class TestSetupStatus:
    def test_missing_company(self):
        status = setup_status(None)
        assert status["is_complete"] is False
        assert status["progress"] == 0
        assert "company_name" in status["missing_fields"]

    def test_partial_and_complete(self, db, store, tenants):
        company = tenants["co1"]["company"]
        status = setup_status(company)
        assert status["progress"] == 20
        assert "company_name" not in status["missing_fields"]

        store.update_company(
            company.id,
            address="1 Main St",
            license_number="LIC-1",
            tax_id="12-345",
            payment_method="card",
        )
        status = setup_status(company)
        assert status == {"is_complete": True, "missing_fields": [], "progress": 100}


class TestContractors:
    def test_email_lookup_is_normalized(self, store, tenants):
        tech = tenants["co1"]["tech"]
        assert store.get_contractor_by_email("  TECH@co1.example.com ").id == tech.id

    def test_contractors_listed_per_company(self, store, tenants):
        co1_ids = {c.id for c in store.get_contractors_by_company_id(tenants["co1"]["company"].id)}
        co2_ids = {c.id for c in store.get_contractors_by_company_id(tenants["co2"]["company"].id)}
        assert len(co1_ids) == 3
        assert co1_ids.isdisjoint(co2_ids)

    def test_empty_company_id_lists_nothing(self, store, tenants):
        assert store.get_contractors_by_company_id(None) == []
        assert store.get_contractors_by_company_id("") == []

    def test_company_claim_variant(self, store, password_hash, tenants):
        loner = store.create_contractor("loner@example.com", password_hash)
        assert isinstance(loner.company, Unclaimed)
        assert tenants["co1"]["tech"].company == Claimed(tenants["co1"]["company"].id)

    def test_update_contractor(self, store, tenants):
        tech = tenants["co1"]["tech"]
        updated = store.update_contractor(tech.id, role="office")
        assert updated.role == "office"
        assert store.update_contractor("missing", role="office") is None


class TestEstimates:
    def test_estimates_isolated_by_company(self, store, tenants, estimates):
        co1 = store.get_estimates_by_company(tenants["co1"]["company"].id)
        assert [e.estimate_id for e in co1] == ["est-co1"]
        assert store.get_estimates_by_company(None) == []

    def test_estimates_newest_first(self, db, store, tenants, estimates):
        company_id = tenants["co1"]["company"].id
        newer = store.save_estimate({"pricing": {}}, company_id=company_id, estimate_id="est-new")
        newer.created_at = estimates["co1"].created_at + timedelta(hours=1)
        db.commit()

        listed = store.get_estimates_by_company(company_id)
        assert [e.estimate_id for e in listed] == ["est-new", "est-co1"]

    def test_homeowner_estimates(self, store, estimates):
        public = store.get_homeowner_estimates()
        assert [e.estimate_id for e in public] == ["est-public"]
        assert isinstance(public[0].company, Unclaimed)

    def test_missing_estimate(self, store):
        assert store.get_estimate_by_id("nope") is None
        assert store.get_estimate_by_id(None) is None
