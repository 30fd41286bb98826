"""
Pricing Service

Set, read and clear the pricing override of a company estimate.
"""

import logging
from typing import Any

from sqlalchemy.orm import Session

from estimate_core.authorization import ExecutionContext, require_capability
from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import claim_for
from estimate_core.persistence.repo import TenantScopedStore
from estimate_core.service.base import ensure_visible, load_company_estimate
from estimate_core.telemetry import track_event
from estimate_core.workflow.pricing import PricingOverrideStore, new_override

logger = logging.getLogger(__name__)


class PricingService:
    def __init__(self, db: Session, overrides: PricingOverrideStore):
        self.db = db
        self.store = TenantScopedStore(db)
        self.overrides = overrides

    def get_custom_pricing(self, context: ExecutionContext, estimate_id: str) -> dict[str, Any]:
        require_capability(Action.PRICING_VIEW, context)
        load_company_estimate(self.store, Action.PRICING_VIEW, context, estimate_id)

        override = self.overrides.get_custom_pricing(estimate_id)
        if override is None:
            return {"custom_pricing": None, "pricing_variance_notes": None}

        ensure_visible(Action.PRICING_VIEW, context, claim_for(override.company_id))
        data = override.to_dict()
        return {
            "custom_pricing": data["custom_pricing"],
            "pricing_variance_notes": data["pricing_variance_notes"],
            "updated_at": data["updated_at"],
            "updated_by": data["updated_by"],
        }

    def set_custom_pricing(
        self,
        context: ExecutionContext,
        estimate_id: str,
        custom_pricing: Any,
        pricing_variance_notes: str | None = None,
    ) -> dict[str, Any]:
        """
        Replace the override for an estimate.

        An empty custom_pricing clears the override, reverting to the
        computed ranges. Returns the estimate with the override applied.
        """
        require_capability(Action.PRICING_EDIT, context)
        estimate = load_company_estimate(self.store, Action.PRICING_EDIT, context, estimate_id)

        override = new_override(
            estimate_id=estimate_id,
            company_id=estimate.company_id,
            custom_pricing=custom_pricing,
            pricing_variance_notes=pricing_variance_notes,
            updated_by=context.identity.contractor_id,
        )

        if override.custom_pricing is None:
            self.overrides.delete_custom_pricing(estimate_id)
            saved = None
        else:
            saved = self.overrides.set_custom_pricing(estimate_id, override).to_dict()

        track_event(
            "custom_pricing_saved",
            {"estimate_id": estimate_id, "cleared": saved is None},
        )
        return {
            **estimate.to_dict(),
            "custom_pricing": saved["custom_pricing"] if saved else None,
            "pricing_variance_notes": saved["pricing_variance_notes"] if saved else None,
        }

    def delete_custom_pricing(self, context: ExecutionContext, estimate_id: str) -> None:
        require_capability(Action.PRICING_EDIT, context)
        load_company_estimate(self.store, Action.PRICING_EDIT, context, estimate_id)
        self.overrides.delete_custom_pricing(estimate_id)
        track_event("custom_pricing_cleared", {"estimate_id": estimate_id})
