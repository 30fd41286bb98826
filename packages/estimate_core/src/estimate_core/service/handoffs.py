"""
Handoff Service

Office staff hand estimates to technicians; technicians list and advance
the handoffs assigned to them.
"""

import logging

from sqlalchemy.orm import Session

from estimate_core.authorization import ExecutionContext, require_capability
from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import ContractorRole, claim_for
from estimate_core.errors import InvalidInputError, NotFoundError
from estimate_core.persistence.repo import TenantScopedStore
from estimate_core.service.base import ensure_visible, load_company_estimate
from estimate_core.telemetry import track_event
from estimate_core.workflow.handoff import (
    ADVANCE_STATUSES,
    Handoff,
    HandoffStateMachine,
    HandoffStatus,
)

logger = logging.getLogger(__name__)


class HandoffService:
    def __init__(self, db: Session, handoffs: HandoffStateMachine):
        self.db = db
        self.store = TenantScopedStore(db)
        self.handoffs = handoffs

    def initiate_handoff(
        self,
        context: ExecutionContext,
        estimate_id: str,
        tech_id: str | None,
    ) -> Handoff:
        """
        Hand a company estimate to one of the company's technicians.

        An existing handoff for the estimate is replaced (reassignment).
        """
        require_capability(Action.ESTIMATE_HANDOFF, context)
        if not tech_id:
            raise InvalidInputError("Tech ID is required")

        estimate = load_company_estimate(self.store, Action.ESTIMATE_HANDOFF, context, estimate_id)

        tech = self.store.get_contractor_by_id(tech_id)
        if (
            tech is None
            or tech.contractor_role is not ContractorRole.TECH
            or tech.company_id != estimate.company_id
        ):
            raise InvalidInputError("Invalid tech")

        previous = self.handoffs.get_handoff(estimate_id)
        if previous is not None:
            logger.info(
                "Replacing existing handoff",
                extra={
                    "estimate_id": estimate_id,
                    "previous_tech": previous.handed_off_to,
                    "previous_status": previous.status.value,
                },
            )

        handoff = Handoff.initiate(
            estimate_id=estimate_id,
            company_id=estimate.company_id,
            handed_off_by=context.identity.contractor_id,
            handed_off_to=tech.id,
            estimate=estimate.to_dict(),
            now=self.handoffs.clock(),
        )
        self.handoffs.set_handoff(estimate_id, handoff)

        track_event("handoff_created", {"estimate_id": estimate_id})
        return handoff

    def get_handoff(self, context: ExecutionContext, estimate_id: str) -> Handoff | None:
        """The handoff of a company estimate, or None if it was never handed off."""
        require_capability(Action.ESTIMATE_VIEW_HANDOFF, context)
        load_company_estimate(self.store, Action.ESTIMATE_VIEW_HANDOFF, context, estimate_id)

        handoff = self.handoffs.get_handoff(estimate_id)
        if handoff is None:
            return None
        ensure_visible(
            Action.ESTIMATE_VIEW_HANDOFF,
            context,
            claim_for(handoff.company_id),
            "Handoff not found",
        )
        return handoff

    def list_own_handoffs(self, context: ExecutionContext) -> list[Handoff]:
        """Handoffs assigned to the calling technician, newest first."""
        require_capability(Action.HANDOFF_LIST_OWN, context)
        identity = context.identity
        return self.handoffs.get_all_handoffs_for_tech(identity.contractor_id, identity.company_id)

    def update_status(
        self,
        context: ExecutionContext,
        estimate_id: str,
        status: str | None,
    ) -> Handoff:
        """Advance a handoff assigned to the calling technician."""
        identity = context.identity
        require_capability(
            Action.HANDOFF_UPDATE_STATUS,
            context.targeting(contractor_id=identity.contractor_id if identity else None),
        )

        valid = {s.value for s in ADVANCE_STATUSES}
        if status not in valid:
            raise InvalidInputError(
                f"Invalid status. Must be one of: {', '.join(sorted(valid))}"
            )

        def assigned_to_caller(handoff: Handoff) -> None:
            # Evaluated on the record read under the handoff key lock.
            ensure_visible(
                Action.ESTIMATE_VIEW_HANDOFF,
                context,
                claim_for(handoff.company_id),
                "Handoff not found",
            )
            require_capability(
                Action.HANDOFF_UPDATE_STATUS,
                context.targeting(
                    company_id=handoff.company_id,
                    contractor_id=handoff.handed_off_to,
                ),
            )

        updated = self.handoffs.update_handoff_status(
            estimate_id,
            HandoffStatus(status),
            guard=assigned_to_caller,
        )
        if updated is None:
            raise NotFoundError("Handoff not found")

        track_event(
            "handoff_status_changed",
            {"estimate_id": estimate_id, "status": updated.status.value},
        )
        return updated
