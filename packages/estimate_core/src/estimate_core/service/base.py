"""
Helpers shared by the services.

Tenant checks go through the capability layer with the resource's company
as the target. A resource outside the caller's tenant is reported as not
found, the same as a missing id.
"""

from estimate_core.authorization import ExecutionContext, can_execute
from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import Claimed, CompanyClaim
from estimate_core.errors import NotFoundError
from estimate_core.persistence.models import Estimate
from estimate_core.persistence.repo import TenantScopedStore


def ensure_visible(
    action: Action,
    context: ExecutionContext,
    claim: CompanyClaim,
    message: str = "Not found",
) -> None:
    """Raise NotFoundError unless the resource belongs to the caller's company."""
    if not isinstance(claim, Claimed):
        raise NotFoundError(message)
    if not can_execute(action, context.targeting(company_id=claim.company_id)):
        raise NotFoundError(message)


def load_company_estimate(
    store: TenantScopedStore,
    action: Action,
    context: ExecutionContext,
    estimate_id: str,
) -> Estimate:
    """Fetch an estimate the caller's company owns."""
    estimate = store.get_estimate_by_id(estimate_id)
    if estimate is None:
        raise NotFoundError("Estimate not found")
    ensure_visible(action, context, estimate.company, "Estimate not found")
    return estimate
