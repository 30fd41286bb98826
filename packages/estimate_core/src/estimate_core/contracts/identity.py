"""
Identity contracts.

A contractor's company association is either Unclaimed (sign-up finished but
onboarding not yet, or a homeowner estimate nobody has claimed) or
Claimed(company_id). Code branches on the variant, never on a None id.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class ContractorRole(str, Enum):
    """Roles inside a company, highest privilege first."""

    OWNER_ADMIN = "owner_admin"
    OFFICE = "office"
    TECH = "tech"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Unclaimed:
    """No company association yet."""

    @property
    def company_id(self) -> None:
        return None


@dataclass(frozen=True)
class Claimed:
    """Associated with a company (the tenant)."""

    company_id: str

    def __post_init__(self):
        if not self.company_id:
            raise ValueError("Claimed requires a non-empty company_id")


CompanyClaim = Union[Unclaimed, Claimed]


def claim_for(company_id: str | None) -> CompanyClaim:
    """Build the claim variant for a nullable stored company id."""
    if company_id:
        return Claimed(company_id)
    return Unclaimed()


@dataclass(frozen=True)
class Identity:
    """
    Authenticated contractor identity.

    A snapshot taken at sign-in; later role or company changes on the
    contractor record do not alter an identity that was already issued.
    """

    contractor_id: str
    company: CompanyClaim
    role: ContractorRole
    email: str

    @property
    def company_id(self) -> str | None:
        return self.company.company_id

    @property
    def is_claimed(self) -> bool:
        return isinstance(self.company, Claimed)

    def to_claims(self) -> dict[str, Any]:
        """Serialize for a session token."""
        return {
            "sub": self.contractor_id,
            "company_id": self.company_id,
            "role": self.role.value,
            "email": self.email,
        }

    @classmethod
    def from_claims(cls, claims: dict[str, Any]) -> "Identity":
        """Rebuild from session token claims. Raises ValueError/KeyError on bad data."""
        return cls(
            contractor_id=claims["sub"],
            company=claim_for(claims.get("company_id")),
            role=ContractorRole(claims["role"]),
            email=claims["email"],
        )
