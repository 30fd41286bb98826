"""
Estimate Core Services

One method per contractor/homeowner operation. Every method takes an
ExecutionContext, asks the capability layer first and touches storage after.
"""

from estimate_core.service.accounts import AccountService
from estimate_core.service.estimates import EstimateService, effective_pricing
from estimate_core.service.handoffs import HandoffService
from estimate_core.service.pricing import PricingService

__all__ = [
    "AccountService",
    "EstimateService",
    "HandoffService",
    "PricingService",
    "effective_pricing",
]
