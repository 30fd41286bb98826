"""
Pricing Override Store

Contractor-entered final pricing that supersedes the computed ranges of an
estimate. One override per estimate, scoped to the estimate's company.
Overrides are validated when they are built, so the store never holds a
range with min > max or an unknown tier.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from numbers import Real
from typing import Any

from estimate_core.errors import InvalidInputError
from estimate_core.persistence.kv import KeyValueStore

logger = logging.getLogger(__name__)

PRICING_TIERS = ("good", "better", "best")


@dataclass(frozen=True)
class PriceRange:
    """Inclusive price range for one tier."""

    min: float
    max: float

    @classmethod
    def from_dict(cls, tier: str, data: Any) -> "PriceRange":
        if not isinstance(data, dict):
            raise InvalidInputError(f"Invalid pricing for tier {tier}")
        low, high = data.get("min"), data.get("max")
        for value in (low, high):
            # bool is a Real subclass but never a price
            if isinstance(value, bool) or not isinstance(value, Real):
                raise InvalidInputError(f"Invalid pricing for tier {tier}")
        if low > high:
            raise InvalidInputError(f"Min price must be less than max price for tier {tier}")
        return cls(min=low, max=high)

    def to_dict(self) -> dict[str, float]:
        return {"min": self.min, "max": self.max}


def parse_custom_pricing(raw: Any) -> dict[str, PriceRange] | None:
    """
    Validate a {tier: {min, max}} mapping.

    Returns None for an empty or missing mapping, meaning "no override".
    """
    if not raw:
        return None
    if not isinstance(raw, dict):
        raise InvalidInputError("custom_pricing must be an object")

    tiers: dict[str, PriceRange] = {}
    for tier, value in raw.items():
        if tier not in PRICING_TIERS:
            raise InvalidInputError(f"Invalid tier: {tier}")
        if value is None:
            continue
        tiers[tier] = PriceRange.from_dict(tier, value)
    return tiers or None


@dataclass(frozen=True)
class PricingOverride:
    estimate_id: str
    company_id: str
    custom_pricing: dict[str, PriceRange] | None
    pricing_variance_notes: str | None
    updated_at: datetime
    updated_by: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimate_id": self.estimate_id,
            "company_id": self.company_id,
            "custom_pricing": (
                {tier: r.to_dict() for tier, r in self.custom_pricing.items()}
                if self.custom_pricing
                else None
            ),
            "pricing_variance_notes": self.pricing_variance_notes,
            "updated_at": self.updated_at.isoformat(),
            "updated_by": self.updated_by,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "PricingOverride":
        return cls(
            estimate_id=data["estimate_id"],
            company_id=data["company_id"],
            custom_pricing=parse_custom_pricing(data.get("custom_pricing")),
            pricing_variance_notes=data.get("pricing_variance_notes"),
            updated_at=datetime.fromisoformat(data["updated_at"]),
            updated_by=data["updated_by"],
        )


class PricingOverrideStore:
    """Keyed container of overrides, one per estimate."""

    KEY_PREFIX = "pricing_override:"

    def __init__(self, store: KeyValueStore):
        self.store = store

    def _key(self, estimate_id: str) -> str:
        return f"{self.KEY_PREFIX}{estimate_id}"

    def get_custom_pricing(self, estimate_id: str) -> PricingOverride | None:
        data = self.store.get(self._key(estimate_id))
        return PricingOverride.from_dict(data) if data else None

    def set_custom_pricing(self, estimate_id: str, override: PricingOverride) -> PricingOverride:
        """Create or fully replace the override for an estimate."""
        if override.estimate_id != estimate_id:
            raise ValueError("Override estimate_id does not match key")
        key = self._key(estimate_id)
        with self.store.lock(key):
            self.store.set(key, override.to_dict())

        logger.info(
            "Custom pricing saved",
            extra={
                "estimate_id": estimate_id,
                "company_id": override.company_id,
                "updated_by": override.updated_by,
            },
        )
        return override

    def delete_custom_pricing(self, estimate_id: str) -> None:
        """Remove the override. Deleting a missing override is not an error."""
        key = self._key(estimate_id)
        with self.store.lock(key):
            removed = self.store.delete(key)
        if removed:
            logger.info("Custom pricing cleared", extra={"estimate_id": estimate_id})


def new_override(
    estimate_id: str,
    company_id: str,
    custom_pricing: Any,
    pricing_variance_notes: str | None,
    updated_by: str,
) -> PricingOverride:
    """Build a validated override stamped with the current time."""
    return PricingOverride(
        estimate_id=estimate_id,
        company_id=company_id,
        custom_pricing=parse_custom_pricing(custom_pricing),
        pricing_variance_notes=pricing_variance_notes or None,
        updated_at=datetime.now(timezone.utc),
        updated_by=updated_by,
    )
