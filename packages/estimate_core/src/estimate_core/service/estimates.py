"""
Estimate Service

Estimate creation for contractors and homeowners, company estimate listing
and detail, public (homeowner) estimate access, and the effective price
of an estimate once handoffs and overrides apply.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from estimate_core.authorization import ExecutionContext, require_capability
from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import Claimed
from estimate_core.errors import InvalidInputError, NotFoundError
from estimate_core.persistence.models import Estimate
from estimate_core.persistence.repo import TenantScopedStore
from estimate_core.service.base import load_company_estimate
from estimate_core.telemetry import track_event
from estimate_core.workflow.handoff import HandoffStateMachine
from estimate_core.workflow.pricing import PricingOverrideStore

logger = logging.getLogger(__name__)


def effective_pricing(
    estimate: Estimate,
    handoffs: HandoffStateMachine,
    overrides: PricingOverrideStore,
) -> dict[str, Any]:
    """
    The price a customer will be quoted.

    Precedence: an attributed override, then the pricing locked into the
    handoff snapshot, then the estimate's own computed pricing.
    """
    override = overrides.get_custom_pricing(estimate.estimate_id)
    if override is not None and override.custom_pricing:
        return {
            "source": "override",
            "pricing": {tier: r.to_dict() for tier, r in override.custom_pricing.items()},
            "updated_by": override.updated_by,
        }

    handoff = handoffs.get_handoff(estimate.estimate_id)
    if handoff is not None and handoff.locked_pricing:
        snapshot = handoff.estimate.get("payload") or {}
        return {"source": "handoff", "pricing": snapshot.get("pricing")}

    return {"source": "estimate", "pricing": (estimate.payload or {}).get("pricing")}


class EstimateService:
    def __init__(
        self,
        db: Session,
        handoffs: HandoffStateMachine,
        overrides: PricingOverrideStore,
    ):
        self.db = db
        self.store = TenantScopedStore(db)
        self.handoffs = handoffs
        self.overrides = overrides

    def list_estimates(self, context: ExecutionContext) -> list[dict[str, Any]]:
        """Estimates of the caller's company, newest first."""
        require_capability(Action.CONTRACTOR_VIEW_ESTIMATES, context)
        estimates = self.store.get_estimates_by_company(context.identity.company_id)
        return [estimate.to_dict() for estimate in estimates]

    def get_estimate(self, context: ExecutionContext, estimate_id: str) -> dict[str, Any]:
        """One company estimate with any pricing override applied."""
        require_capability(Action.CONTRACTOR_VIEW_ESTIMATES, context)
        estimate = load_company_estimate(
            self.store, Action.CONTRACTOR_VIEW_ESTIMATES, context, estimate_id
        )

        override = self.overrides.get_custom_pricing(estimate_id)
        return {
            **estimate.to_dict(),
            "custom_pricing": override.to_dict()["custom_pricing"] if override else None,
            "pricing_variance_notes": override.pricing_variance_notes if override else None,
            "effective_pricing": effective_pricing(estimate, self.handoffs, self.overrides),
        }

    def get_public_estimate(self, context: ExecutionContext, estimate_id: str) -> dict[str, Any]:
        """
        Estimate readable without a session.

        Only estimates no company has claimed are public; anything claimed
        is reported as not found.
        """
        require_capability(Action.HOMEOWNER_VIEW_ESTIMATE, context)
        estimate = self.store.get_estimate_by_id(estimate_id)
        if estimate is None or isinstance(estimate.company, Claimed):
            raise NotFoundError("Estimate not found")
        return estimate.to_dict()

    # =========================================================================
    # Creation
    # =========================================================================

    def _save(
        self,
        payload: dict[str, Any] | None,
        company_id: str | None,
        contractor_id: str | None,
        is_homeowner: bool,
    ) -> dict[str, Any]:
        if not payload or not isinstance(payload, dict):
            raise InvalidInputError("Estimate payload is required")

        estimate = self.store.save_estimate(
            payload,
            company_id=company_id,
            contractor_id=contractor_id,
            is_homeowner=is_homeowner,
        )
        self.db.commit()

        logger.info(
            "Estimate saved",
            extra={
                "estimate_id": estimate.estimate_id,
                "company_id": company_id,
                "is_homeowner": is_homeowner,
            },
        )
        track_event(
            "estimate_generated",
            {"estimate_id": estimate.estimate_id, "is_homeowner": is_homeowner},
        )
        return estimate.to_dict()

    def create_estimate(
        self,
        context: ExecutionContext,
        payload: dict[str, Any] | None,
    ) -> dict[str, Any]:
        """
        Save an estimate under the caller's company.

        The payload is stored as given; company and contractor come from the
        session, never from the request.
        """
        require_capability(Action.CONTRACTOR_EDIT_ESTIMATES, context)
        identity = context.identity
        return self._save(
            payload,
            company_id=identity.company_id,
            contractor_id=identity.contractor_id,
            is_homeowner=False,
        )

    def create_public_estimate(
        self,
        context: ExecutionContext,
        payload: dict[str, Any] | None,
    ) -> dict[str, Any]:
        """Save an unclaimed homeowner estimate."""
        require_capability(Action.HOMEOWNER_CREATE_ESTIMATE, context)
        return self._save(payload, company_id=None, contractor_id=None, is_homeowner=True)
