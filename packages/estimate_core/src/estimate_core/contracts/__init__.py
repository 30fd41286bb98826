"""
Contracts shared by every layer of the estimate core.
"""

from estimate_core.contracts.actions import Action
from estimate_core.contracts.identity import (
    Claimed,
    CompanyClaim,
    ContractorRole,
    Identity,
    Unclaimed,
    claim_for,
)

__all__ = [
    "Action",
    "Claimed",
    "CompanyClaim",
    "ContractorRole",
    "Identity",
    "Unclaimed",
    "claim_for",
]
