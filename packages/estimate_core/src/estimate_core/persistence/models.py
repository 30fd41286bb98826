"""
Estimate Core Database Models

Tables:
- companies: the tenants
- contractors: company members (owner_admin, office, tech)
- estimates: computed estimates, either claimed by a company or public (homeowner)

Handoffs and pricing overrides live in the key-value store, keyed by estimate id.
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import JSON, Boolean, Column, DateTime, ForeignKey, Index, String

from basecore.db import Base
from estimate_core.contracts.identity import CompanyClaim, ContractorRole, claim_for


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid4())


class Company(Base):
    """A tenant. Every other record is isolated by company id."""

    __tablename__ = "companies"

    id = Column(String(36), primary_key=True, default=new_id)
    name = Column(String(255), nullable=True)
    address = Column(String(500), nullable=True)
    license_number = Column(String(100), nullable=True)
    tax_id = Column(String(50), nullable=True)
    payment_method = Column(String(100), nullable=True)
    company_code = Column(String(8), unique=True, nullable=True, index=True)
    is_verified = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "address": self.address,
            "license_number": self.license_number,
            "tax_id": self.tax_id,
            "payment_method": self.payment_method,
            "company_code": self.company_code,
            "is_verified": self.is_verified,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class Contractor(Base):
    """A company member. company_id stays null until onboarding completes."""

    __tablename__ = "contractors"

    id = Column(String(36), primary_key=True, default=new_id)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ContractorRole.TECH.value)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    @property
    def company(self) -> CompanyClaim:
        return claim_for(self.company_id)

    @property
    def contractor_role(self) -> ContractorRole:
        return ContractorRole(self.role)

    def to_public_dict(self) -> dict:
        """Profile without the password hash."""
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "company_id": self.company_id,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }


class Estimate(Base):
    """
    A stored estimate.

    company_id null means homeowner/public origin, not claimed by any company.
    The pricing payload is opaque to this package.
    """

    __tablename__ = "estimates"

    estimate_id = Column(String(64), primary_key=True, default=new_id)
    company_id = Column(String(36), ForeignKey("companies.id"), nullable=True)
    contractor_id = Column(String(36), nullable=True)
    is_homeowner = Column(Boolean, nullable=False, default=False)
    payload = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_estimates_company_created", "company_id", "created_at"),
    )

    @property
    def company(self) -> CompanyClaim:
        return claim_for(self.company_id)

    def to_dict(self) -> dict:
        return {
            "estimate_id": self.estimate_id,
            "company_id": self.company_id,
            "contractor_id": self.contractor_id,
            "is_homeowner": self.is_homeowner,
            "payload": self.payload or {},
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
