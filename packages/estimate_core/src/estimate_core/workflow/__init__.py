"""
Estimate workflow: handoffs between technicians and pricing overrides.
"""

from estimate_core.workflow.handoff import Handoff, HandoffStateMachine, HandoffStatus
from estimate_core.workflow.pricing import (
    PRICING_TIERS,
    PriceRange,
    PricingOverride,
    PricingOverrideStore,
    new_override,
    parse_custom_pricing,
)

__all__ = [
    "Handoff",
    "HandoffStateMachine",
    "HandoffStatus",
    "PRICING_TIERS",
    "PriceRange",
    "PricingOverride",
    "PricingOverrideStore",
    "new_override",
    "parse_custom_pricing",
]
