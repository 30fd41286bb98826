"""
Contractor and homeowner API routes.

Every success answers {"success": true, ...}; failures are rendered by the
exception handlers in main.py as {"error": "..."}.
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Body, Depends, Response
from pydantic import BaseModel, ConfigDict, Field

from basecore.settings import get_settings
from estimate_core.authorization import ExecutionContext
from estimate_core.service import (
    AccountService,
    EstimateService,
    HandoffService,
    PricingService,
)
from estimate_api.deps import (
    get_account_service,
    get_estimate_service,
    get_execution_context,
    get_handoff_service,
    get_pricing_service,
    get_session_token,
    limit_contractor_estimates,
    limit_homeowner_estimates,
)

logger = logging.getLogger(__name__)

contractor_router = APIRouter(prefix="/api/contractor", tags=["contractor"])
homeowner_router = APIRouter(prefix="/api/homeowner", tags=["homeowner"])


# =============================================================================
# Request bodies
# =============================================================================


class RegisterRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None
    company_code: Optional[str] = Field(None, description="Join an existing company")


class SignInRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class CompanyUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    company_id: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None
    license_number: Optional[str] = None
    tax_id: Optional[str] = None
    payment_method: Optional[str] = None


class HandoffRequest(BaseModel):
    tech_id: Optional[str] = None


class HandoffStatusRequest(BaseModel):
    status: Optional[str] = None


class CustomPricingRequest(BaseModel):
    custom_pricing: Optional[dict[str, Any]] = None
    pricing_variance_notes: Optional[str] = None


def set_session_cookie(response: Response, token: str, max_age: int) -> None:
    settings = get_settings()
    response.set_cookie(
        key=settings.SESSION_COOKIE_NAME,
        value=token,
        max_age=max_age,
        httponly=True,
        secure=not settings.is_development,
        samesite="lax",
        path="/",
    )


# =============================================================================
# Authentication
# =============================================================================


@contractor_router.post("/register")
def register(
    body: RegisterRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
):
    """Create a contractor (and a company unless joining one) and sign in."""
    contractor, token = accounts.register(
        email=body.email,
        password=body.password,
        role=body.role,
        company_code=body.company_code,
    )
    set_session_cookie(response, token, accounts.sessions.max_age_seconds)
    return {"success": True, "contractor": contractor.to_public_dict()}


@contractor_router.post("/signin")
def sign_in(
    body: SignInRequest,
    response: Response,
    accounts: AccountService = Depends(get_account_service),
):
    contractor, token = accounts.sign_in(body.email, body.password)
    set_session_cookie(response, token, accounts.sessions.max_age_seconds)
    return {"success": True, "contractor": contractor.to_public_dict()}


@contractor_router.post("/signout")
def sign_out(
    response: Response,
    token: Optional[str] = Depends(get_session_token),
    accounts: AccountService = Depends(get_account_service),
):
    accounts.sign_out(token)
    response.delete_cookie(get_settings().SESSION_COOKIE_NAME, path="/")
    return {"success": True}


# =============================================================================
# Profile, company and team
# =============================================================================


@contractor_router.get("/me")
def me(
    context: ExecutionContext = Depends(get_execution_context),
    accounts: AccountService = Depends(get_account_service),
):
    return {"success": True, "contractor": accounts.get_profile(context)}


@contractor_router.get("/company")
def get_company(
    context: ExecutionContext = Depends(get_execution_context),
    accounts: AccountService = Depends(get_account_service),
):
    """Company profile with its setup status."""
    return {"success": True, "company": accounts.get_company(context)}


@contractor_router.post("/company")
def update_company(
    body: CompanyUpdateRequest,
    context: ExecutionContext = Depends(get_execution_context),
    accounts: AccountService = Depends(get_account_service),
):
    updates = body.model_dump(exclude={"company_id"}, exclude_unset=True)
    company = accounts.update_company(context, updates, company_id=body.company_id)
    return {"success": True, "company": company}


@contractor_router.get("/team")
def list_team(
    context: ExecutionContext = Depends(get_execution_context),
    accounts: AccountService = Depends(get_account_service),
):
    team = accounts.list_team(context)
    return {"success": True, "team": team, "count": len(team)}


# =============================================================================
# Estimates
# =============================================================================


@contractor_router.get("/estimates")
def list_estimates(
    context: ExecutionContext = Depends(get_execution_context),
    estimates: EstimateService = Depends(get_estimate_service),
):
    items = estimates.list_estimates(context)
    return {"success": True, "estimates": items, "count": len(items)}


@contractor_router.get("/estimates/{estimate_id}")
def get_estimate(
    estimate_id: str,
    context: ExecutionContext = Depends(get_execution_context),
    estimates: EstimateService = Depends(get_estimate_service),
):
    return {"success": True, "estimate": estimates.get_estimate(context, estimate_id)}


@contractor_router.post("/estimate", dependencies=[Depends(limit_contractor_estimates)])
def create_estimate(
    payload: dict[str, Any] = Body(...),
    context: ExecutionContext = Depends(get_execution_context),
    estimates: EstimateService = Depends(get_estimate_service),
):
    """Save an estimate for the caller's company. The body is the estimate payload."""
    return {"success": True, "estimate": estimates.create_estimate(context, payload)}


# =============================================================================
# Handoffs
# =============================================================================


@contractor_router.post("/estimates/{estimate_id}/handoff")
def initiate_handoff(
    estimate_id: str,
    body: HandoffRequest,
    context: ExecutionContext = Depends(get_execution_context),
    handoffs: HandoffService = Depends(get_handoff_service),
):
    handoff = handoffs.initiate_handoff(context, estimate_id, body.tech_id)
    return {"success": True, "handoff": handoff.to_dict()}


@contractor_router.get("/estimates/{estimate_id}/handoff")
def get_handoff(
    estimate_id: str,
    context: ExecutionContext = Depends(get_execution_context),
    handoffs: HandoffService = Depends(get_handoff_service),
):
    handoff = handoffs.get_handoff(context, estimate_id)
    return {"success": True, "handoff": handoff.to_dict() if handoff else None}


@contractor_router.get("/tech/handoffs")
def list_own_handoffs(
    context: ExecutionContext = Depends(get_execution_context),
    handoffs: HandoffService = Depends(get_handoff_service),
):
    """Handoffs assigned to the calling technician, newest first."""
    items = [h.to_dict() for h in handoffs.list_own_handoffs(context)]
    return {"success": True, "handoffs": items, "count": len(items)}


@contractor_router.patch("/tech/handoffs/{estimate_id}/status")
def update_handoff_status(
    estimate_id: str,
    body: HandoffStatusRequest,
    context: ExecutionContext = Depends(get_execution_context),
    handoffs: HandoffService = Depends(get_handoff_service),
):
    handoff = handoffs.update_status(context, estimate_id, body.status)
    return {"success": True, "handoff": handoff.to_dict()}


# =============================================================================
# Pricing overrides
# =============================================================================


@contractor_router.get("/estimates/{estimate_id}/custom-pricing")
def get_custom_pricing(
    estimate_id: str,
    context: ExecutionContext = Depends(get_execution_context),
    pricing: PricingService = Depends(get_pricing_service),
):
    return {"success": True, **pricing.get_custom_pricing(context, estimate_id)}


@contractor_router.post("/estimates/{estimate_id}/custom-pricing")
def set_custom_pricing(
    estimate_id: str,
    body: CustomPricingRequest,
    context: ExecutionContext = Depends(get_execution_context),
    pricing: PricingService = Depends(get_pricing_service),
):
    """Save an override; an empty custom_pricing clears it."""
    estimate = pricing.set_custom_pricing(
        context,
        estimate_id,
        body.custom_pricing,
        body.pricing_variance_notes,
    )
    return {"success": True, "estimate": estimate}


@contractor_router.delete("/estimates/{estimate_id}/custom-pricing")
def delete_custom_pricing(
    estimate_id: str,
    context: ExecutionContext = Depends(get_execution_context),
    pricing: PricingService = Depends(get_pricing_service),
):
    pricing.delete_custom_pricing(context, estimate_id)
    return {"success": True}


# =============================================================================
# Homeowner
# =============================================================================


@homeowner_router.get("/estimate/{estimate_id}")
def get_public_estimate(
    estimate_id: str,
    estimates: EstimateService = Depends(get_estimate_service),
):
    """Public estimate, readable only while no company has claimed it."""
    estimate = estimates.get_public_estimate(ExecutionContext.anonymous(), estimate_id)
    return {"success": True, "estimate": estimate}


@homeowner_router.post("/estimate", dependencies=[Depends(limit_homeowner_estimates)])
def create_public_estimate(
    payload: dict[str, Any] = Body(...),
    estimates: EstimateService = Depends(get_estimate_service),
):
    """Save a homeowner estimate; it stays public until a company claims it."""
    estimate = estimates.create_public_estimate(ExecutionContext.anonymous(), payload)
    return {"success": True, "estimate": estimate}
