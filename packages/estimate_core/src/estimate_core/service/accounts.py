"""
Account Service

Registration, sign-in/out, own profile, company profile and team listing.
"""

import logging
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from estimate_core.authorization import ExecutionContext, require_capability
from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import ContractorRole, Identity, claim_for
from estimate_core.errors import (
    ConflictError,
    InvalidInputError,
    NotFoundError,
    UnauthenticatedError,
)
from estimate_core.persistence.models import Company, Contractor
from estimate_core.persistence.repo import TenantScopedStore, setup_status
from estimate_core.security import get_password_hash, verify_password
from estimate_core.service.base import ensure_visible
from estimate_core.session import SessionAuthority
from estimate_core.telemetry import track_event

logger = logging.getLogger(__name__)

COMPANY_PROFILE_FIELDS = ("name", "address", "license_number", "tax_id", "payment_method")


def identity_of(contractor: Contractor) -> Identity:
    return Identity(
        contractor_id=contractor.id,
        company=claim_for(contractor.company_id),
        role=contractor.contractor_role,
        email=contractor.email,
    )


def company_payload(company: Company) -> dict[str, Any]:
    return {**company.to_dict(), "setup": setup_status(company)}


class AccountService:
    """Contractor accounts and company administration."""

    def __init__(self, db: Session, sessions: SessionAuthority):
        self.db = db
        self.store = TenantScopedStore(db)
        self.sessions = sessions

    # =========================================================================
    # Authentication
    # =========================================================================

    def register(
        self,
        email: str | None,
        password: str | None,
        role: str | None = None,
        company_code: str | None = None,
    ) -> tuple[Contractor, str]:
        """
        Create a contractor and sign them in.

        Without a company_code a new company is created and the contractor
        becomes its owner_admin; no other role may found a company. With a
        code the contractor joins that company as office or tech.
        """
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        try:
            requested_role = ContractorRole(role) if role else None
        except ValueError:
            raise InvalidInputError(f"Invalid role: {role}")

        if self.store.get_contractor_by_email(email) is not None:
            raise ConflictError("Email already registered")

        if company_code:
            company = self.store.get_company_by_code(company_code)
            if company is None:
                raise InvalidInputError("Invalid company code")
            if requested_role is ContractorRole.OWNER_ADMIN:
                raise InvalidInputError("Cannot join an existing company as owner_admin")
            contractor_role = requested_role or ContractorRole.TECH
        else:
            if requested_role not in (None, ContractorRole.OWNER_ADMIN):
                raise InvalidInputError("A new company must be registered by an owner_admin")
            company = self.store.create_company()
            contractor_role = ContractorRole.OWNER_ADMIN

        try:
            contractor = self.store.create_contractor(
                email=email,
                password_hash=get_password_hash(password),
                role=contractor_role,
                company_id=company.id,
            )
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            raise ConflictError("Email already registered")

        logger.info(
            "Contractor registered",
            extra={"contractor_id": contractor.id, "company_id": company.id},
        )
        track_event("contractor_registered", {"role": contractor.role, "joined": bool(company_code)})

        token = self.sessions.create_session(identity_of(contractor))
        return contractor, token

    def sign_in(self, email: str | None, password: str | None) -> tuple[Contractor, str]:
        """Verify credentials and issue a session."""
        if not email or not password:
            raise InvalidInputError("Email and password are required")

        contractor = self.store.get_contractor_by_email(email)
        if contractor is None or not verify_password(password, contractor.password_hash):
            logger.info("Sign-in rejected")
            raise UnauthenticatedError("Invalid credentials")

        token = self.sessions.create_session(identity_of(contractor))
        track_event("contractor_signed_in", {"role": contractor.role})
        return contractor, token

    def sign_out(self, token: str | None) -> None:
        self.sessions.destroy_session(token)

    # =========================================================================
    # Profiles
    # =========================================================================

    def get_profile(self, context: ExecutionContext) -> dict[str, Any]:
        """The caller's own contractor record."""
        require_capability(Action.CONTRACTOR_VIEW_PROFILE, context)
        contractor = self.store.get_contractor_by_id(context.identity.contractor_id)
        if contractor is None:
            raise NotFoundError("Contractor not found")
        return contractor.to_public_dict()

    def get_company(self, context: ExecutionContext) -> dict[str, Any]:
        require_capability(Action.COMPANY_VIEW_PROFILE, context)
        company = self.store.get_company_by_id(context.identity.company_id)
        if company is None:
            raise NotFoundError("Company not found")
        # get_company_by_id may have backfilled the join code
        self.db.commit()
        return company_payload(company)

    def update_company(
        self,
        context: ExecutionContext,
        updates: dict[str, Any],
        company_id: str | None = None,
    ) -> dict[str, Any]:
        """
        Update profile fields of the caller's company.

        Empty values leave the stored value in place. company_id, when given,
        must name the caller's own company.
        """
        require_capability(Action.COMPANY_UPDATE_PROFILE, context)
        target = company_id or context.identity.company_id
        ensure_visible(
            Action.COMPANY_UPDATE_PROFILE,
            context,
            claim_for(target),
            "Company not found",
        )

        unknown = set(updates) - set(COMPANY_PROFILE_FIELDS)
        if unknown:
            raise InvalidInputError(f"Unknown company fields: {', '.join(sorted(unknown))}")

        changes = {field: value for field, value in updates.items() if value}
        company = self.store.update_company(target, **changes)
        if company is None:
            raise NotFoundError("Company not found")
        self.db.commit()

        track_event("company_profile_updated", {"fields": sorted(changes)})
        return company_payload(company)

    def list_team(self, context: ExecutionContext) -> list[dict[str, Any]]:
        """Members of the caller's company, without password hashes."""
        require_capability(Action.TEAM_LIST, context)
        members = self.store.get_contractors_by_company_id(context.identity.company_id)
        return [member.to_public_dict() for member in members]
