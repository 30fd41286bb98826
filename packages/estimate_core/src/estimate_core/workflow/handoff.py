"""
Handoff State Machine

Tracks an estimate being handed from the office to a technician:

    handed_off -> in_progress -> completed

Pricing is locked when the handoff is created and no status change unlocks
it or touches the estimate snapshot. Changing the final price while locked
goes through the pricing override store.

Transition checking is controlled by one flag:
- strict: only the next state is allowed
- permissive: any of in_progress/completed may be set from any state
"""

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable

from basecore.settings import get_settings
from estimate_core.errors import InvalidTransitionError
from estimate_core.persistence.kv import KeyValueStore

logger = logging.getLogger(__name__)


class HandoffStatus(str, Enum):
    HANDED_OFF = "handed_off"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    def __str__(self) -> str:
        return self.value

    @property
    def is_terminal(self) -> bool:
        return self is HandoffStatus.COMPLETED


STRICT_TRANSITIONS: dict[HandoffStatus, frozenset[HandoffStatus]] = {
    HandoffStatus.HANDED_OFF: frozenset({HandoffStatus.IN_PROGRESS}),
    HandoffStatus.IN_PROGRESS: frozenset({HandoffStatus.COMPLETED}),
    HandoffStatus.COMPLETED: frozenset(),
}

# Statuses a caller may request; handed_off is only ever set at creation
ADVANCE_STATUSES = frozenset({HandoffStatus.IN_PROGRESS, HandoffStatus.COMPLETED})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _parse_dt(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


@dataclass(frozen=True)
class Handoff:
    """One handoff record per estimate."""

    estimate_id: str
    company_id: str
    handed_off_by: str
    handed_off_to: str
    handed_off_at: datetime
    status: HandoffStatus = HandoffStatus.HANDED_OFF
    locked_pricing: bool = True
    estimate: dict[str, Any] = field(default_factory=dict)
    updated_at: datetime | None = None

    @classmethod
    def initiate(
        cls,
        estimate_id: str,
        company_id: str,
        handed_off_by: str,
        handed_off_to: str,
        estimate: dict[str, Any],
        now: datetime | None = None,
    ) -> "Handoff":
        """New handoff in the initial state with pricing locked."""
        snapshot = dict(estimate)
        snapshot.setdefault("selected_tier", None)
        snapshot.setdefault("selected_add_ons", [])
        return cls(
            estimate_id=estimate_id,
            company_id=company_id,
            handed_off_by=handed_off_by,
            handed_off_to=handed_off_to,
            handed_off_at=now or utcnow(),
            status=HandoffStatus.HANDED_OFF,
            locked_pricing=True,
            estimate=snapshot,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "estimate_id": self.estimate_id,
            "company_id": self.company_id,
            "handed_off_by": self.handed_off_by,
            "handed_off_to": self.handed_off_to,
            "handed_off_at": self.handed_off_at.isoformat(),
            "status": self.status.value,
            "locked_pricing": self.locked_pricing,
            "estimate": self.estimate,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Handoff":
        return cls(
            estimate_id=data["estimate_id"],
            company_id=data["company_id"],
            handed_off_by=data["handed_off_by"],
            handed_off_to=data["handed_off_to"],
            handed_off_at=_parse_dt(data["handed_off_at"]),
            status=HandoffStatus(data.get("status", HandoffStatus.HANDED_OFF.value)),
            locked_pricing=bool(data.get("locked_pricing", True)),
            estimate=data.get("estimate") or {},
            updated_at=_parse_dt(data.get("updated_at")),
        )


class HandoffStateMachine:
    """
    Stores handoffs in a key-value store and applies status transitions.

    Each read-modify-write on a handoff runs under that estimate's key lock.
    """

    KEY_PREFIX = "handoff:"

    def __init__(
        self,
        store: KeyValueStore,
        strict: bool | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.store = store
        self.strict = get_settings().HANDOFF_STRICT_TRANSITIONS if strict is None else strict
        self.clock = clock

    def _key(self, estimate_id: str) -> str:
        return f"{self.KEY_PREFIX}{estimate_id}"

    def can_transition(self, current: HandoffStatus, new: HandoffStatus) -> bool:
        if new not in ADVANCE_STATUSES:
            return False
        if self.strict:
            return new in STRICT_TRANSITIONS[current]
        return True

    def get_handoff(self, estimate_id: str) -> Handoff | None:
        data = self.store.get(self._key(estimate_id))
        return Handoff.from_dict(data) if data else None

    def set_handoff(self, estimate_id: str, handoff: Handoff) -> Handoff:
        """Create or fully replace the handoff for an estimate."""
        if handoff.estimate_id != estimate_id:
            raise ValueError("Handoff estimate_id does not match key")
        key = self._key(estimate_id)
        with self.store.lock(key):
            self.store.set(key, handoff.to_dict())

        logger.info(
            "Handoff saved",
            extra={
                "estimate_id": estimate_id,
                "company_id": handoff.company_id,
                "handed_off_to": handoff.handed_off_to,
                "status": handoff.status.value,
            },
        )
        return handoff

    def update_handoff_status(
        self,
        estimate_id: str,
        new_status: HandoffStatus | str,
        guard: Callable[[Handoff], None] | None = None,
    ) -> Handoff | None:
        """
        Move a handoff to a new status.

        Returns None when no handoff exists for the estimate (nothing is
        written). Raises InvalidTransitionError when the state machine does
        not allow the move.

        guard, when given, is called with the record as read under the key
        lock; anything it raises aborts the update before it is written.
        """
        new_status = HandoffStatus(new_status)
        key = self._key(estimate_id)

        with self.store.lock(key):
            data = self.store.get(key)
            if not data:
                return None

            current = Handoff.from_dict(data)
            if guard is not None:
                guard(current)
            if not self.can_transition(current.status, new_status):
                raise InvalidTransitionError(current.status.value, new_status.value)

            updated = replace(current, status=new_status, updated_at=self.clock())
            self.store.set(key, updated.to_dict())

        logger.info(
            "Handoff status changed",
            extra={
                "estimate_id": estimate_id,
                "old_status": current.status.value,
                "new_status": new_status.value,
            },
        )
        return updated

    def get_all_handoffs_for_tech(self, tech_id: str, company_id: str) -> list[Handoff]:
        """Handoffs assigned to one tech within one company, newest first."""
        handoffs = [
            Handoff.from_dict(data)
            for _key, data in self.store.scan(self.KEY_PREFIX)
            if data.get("handed_off_to") == tech_id and data.get("company_id") == company_id
        ]
        handoffs.sort(key=lambda h: h.handed_off_at, reverse=True)
        return handoffs
