"""
Tenant-Scoped Store

Repository for companies, contractors and estimates.

The store does not authorize callers; services do that first. It does
enforce the rules that must hold no matter who calls:
- listing methods filter by company_id here, never in the caller
- updates only touch existing rows (a missing target returns None)
- updates lock the target row for the read-modify-write
"""

import logging
import secrets
from typing import Any

from sqlalchemy.orm import Session

from estimate_core.contracts.identity import ContractorRole
from estimate_core.persistence.models import Company, Contractor, Estimate, utcnow

logger = logging.getLogger(__name__)

COMPANY_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O/1/I
COMPANY_CODE_LENGTH = 8
COMPANY_CODE_MAX_ATTEMPTS = 10

COMPANY_UPDATABLE_FIELDS = frozenset({
    "name",
    "address",
    "license_number",
    "tax_id",
    "payment_method",
    "company_code",
    "is_verified",
})
CONTRACTOR_UPDATABLE_FIELDS = frozenset({"email", "password_hash", "company_id", "role"})

# (attribute, label reported to the client)
COMPANY_SETUP_FIELDS = (
    ("name", "company_name"),
    ("address", "address"),
    ("license_number", "license_number"),
    ("tax_id", "tax_id"),
    ("payment_method", "payment_method"),
)


def generate_company_code() -> str:
    return "".join(secrets.choice(COMPANY_CODE_ALPHABET) for _ in range(COMPANY_CODE_LENGTH))


def setup_status(company: Company | None) -> dict[str, Any]:
    """Report which required profile fields are still missing."""
    if company is None:
        return {
            "is_complete": False,
            "missing_fields": [label for _, label in COMPANY_SETUP_FIELDS],
            "progress": 0,
        }

    missing = [label for attr, label in COMPANY_SETUP_FIELDS if not getattr(company, attr)]
    completed = len(COMPANY_SETUP_FIELDS) - len(missing)
    return {
        "is_complete": not missing,
        "missing_fields": missing,
        "progress": round(completed / len(COMPANY_SETUP_FIELDS) * 100),
    }


class TenantScopedStore:
    """Repository for tenant-owned tables."""

    def __init__(self, db: Session):
        self.db = db

    # =========================================================================
    # Companies
    # =========================================================================

    def get_company_by_id(self, company_id: str | None) -> Company | None:
        """Get a company, backfilling its join code if it has none."""
        if not company_id:
            return None
        company = self.db.get(Company, company_id)
        if company is not None and not company.company_code:
            code = self._unique_company_code()
            if code:
                company.company_code = code
                self.db.flush()
        return company

    def get_company_by_code(self, code: str) -> Company | None:
        normalized = (code or "").strip().upper()
        if not normalized:
            return None
        return (
            self.db.query(Company)
            .filter(Company.company_code == normalized)
            .first()
        )

    def _unique_company_code(self) -> str | None:
        for _ in range(COMPANY_CODE_MAX_ATTEMPTS):
            code = generate_company_code()
            if self.get_company_by_code(code) is None:
                return code
        logger.error("Failed to generate unique company code after multiple attempts")
        return None

    def create_company(self, **fields: Any) -> Company:
        """Create an empty (unverified) company with a fresh join code."""
        code = self._unique_company_code()
        if code is None:
            raise RuntimeError("Failed to generate unique company code")
        unknown = set(fields) - COMPANY_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown company fields: {sorted(unknown)}")
        company = Company(company_code=code, is_verified=False, **fields)
        self.db.add(company)
        self.db.flush()
        logger.info("Company created", extra={"company_id": company.id})
        return company

    def update_company(self, company_id: str, **updates: Any) -> Company | None:
        """Mutate an existing company. Never creates one."""
        unknown = set(updates) - COMPANY_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown company fields: {sorted(unknown)}")
        if not company_id:
            return None

        company = (
            self.db.query(Company)
            .filter(Company.id == company_id)
            .with_for_update()
            .first()
        )
        if company is None:
            return None

        for field, value in updates.items():
            setattr(company, field, value)
        company.updated_at = utcnow()
        self.db.flush()
        return company

    # =========================================================================
    # Contractors
    # =========================================================================

    def get_contractor_by_id(self, contractor_id: str | None) -> Contractor | None:
        if not contractor_id:
            return None
        return self.db.get(Contractor, contractor_id)

    def get_contractor_by_email(self, email: str | None) -> Contractor | None:
        if not email:
            return None
        return (
            self.db.query(Contractor)
            .filter(Contractor.email == email.strip().lower())
            .first()
        )

    def get_contractors_by_company_id(self, company_id: str | None) -> list[Contractor]:
        """Members of one company, newest first."""
        if not company_id:
            return []
        return (
            self.db.query(Contractor)
            .filter(Contractor.company_id == company_id)
            .order_by(Contractor.created_at.desc())
            .all()
        )

    def create_contractor(
        self,
        email: str,
        password_hash: str,
        role: ContractorRole = ContractorRole.TECH,
        company_id: str | None = None,
    ) -> Contractor:
        contractor = Contractor(
            email=email.strip().lower(),
            password_hash=password_hash,
            role=ContractorRole(role).value,
            company_id=company_id,
        )
        self.db.add(contractor)
        self.db.flush()
        return contractor

    def update_contractor(self, contractor_id: str, **updates: Any) -> Contractor | None:
        """Mutate an existing contractor. Never creates one."""
        unknown = set(updates) - CONTRACTOR_UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown contractor fields: {sorted(unknown)}")
        if not contractor_id:
            return None

        contractor = (
            self.db.query(Contractor)
            .filter(Contractor.id == contractor_id)
            .with_for_update()
            .first()
        )
        if contractor is None:
            return None

        if "role" in updates:
            updates["role"] = ContractorRole(updates["role"]).value
        if "email" in updates:
            updates["email"] = updates["email"].strip().lower()
        for field, value in updates.items():
            setattr(contractor, field, value)
        self.db.flush()
        return contractor

    # =========================================================================
    # Estimates
    # =========================================================================

    def save_estimate(
        self,
        payload: dict[str, Any],
        company_id: str | None = None,
        contractor_id: str | None = None,
        is_homeowner: bool = False,
        estimate_id: str | None = None,
    ) -> Estimate:
        estimate = Estimate(
            payload=payload,
            company_id=company_id,
            contractor_id=contractor_id,
            is_homeowner=is_homeowner,
        )
        if estimate_id:
            estimate.estimate_id = estimate_id
        self.db.add(estimate)
        self.db.flush()
        return estimate

    def get_estimate_by_id(self, estimate_id: str | None) -> Estimate | None:
        if not estimate_id:
            return None
        return self.db.get(Estimate, estimate_id)

    def get_estimates_by_company(self, company_id: str | None) -> list[Estimate]:
        """Estimates claimed by one company, newest first."""
        if not company_id:
            return []
        return (
            self.db.query(Estimate)
            .filter(Estimate.company_id == company_id)
            .order_by(Estimate.created_at.desc())
            .all()
        )

    def get_homeowner_estimates(self) -> list[Estimate]:
        """Public estimates nobody has claimed."""
        return (
            self.db.query(Estimate)
            .filter(
                Estimate.is_homeowner == True,  # noqa: E712
                Estimate.company_id.is_(None),
            )
            .order_by(Estimate.created_at.desc())
            .all()
        )
