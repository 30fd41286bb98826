"""
Request dependencies.

Resolves the caller's session (cookie or bearer token) into an
ExecutionContext and builds services bound to the request's DB session.
"""

import functools
import logging
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from basecore.db import get_db
from basecore.settings import get_settings
from estimate_core.authorization import ExecutionContext
from estimate_core.persistence.kv import KeyValueStore, build_kv_store
from estimate_core.ratelimit import RateLimiter
from estimate_core.service import (
    AccountService,
    EstimateService,
    HandoffService,
    PricingService,
)
from estimate_core.session import SessionAuthority
from estimate_core.workflow.handoff import HandoffStateMachine
from estimate_core.workflow.pricing import PricingOverrideStore

logger = logging.getLogger(__name__)


@functools.lru_cache()
def get_kv_store() -> KeyValueStore:
    """Process-wide key-value store (cached)."""
    return build_kv_store()


def get_session_authority(store: KeyValueStore = Depends(get_kv_store)) -> SessionAuthority:
    return SessionAuthority(store)


def get_handoff_machine(store: KeyValueStore = Depends(get_kv_store)) -> HandoffStateMachine:
    return HandoffStateMachine(store)


def get_pricing_store(store: KeyValueStore = Depends(get_kv_store)) -> PricingOverrideStore:
    return PricingOverrideStore(store)


def get_session_token(request: Request) -> Optional[str]:
    """
    Session token from the session cookie, falling back to a bearer token.
    """
    token = request.cookies.get(get_settings().SESSION_COOKIE_NAME)
    if token:
        return token

    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


def get_execution_context(
    token: Optional[str] = Depends(get_session_token),
    sessions: SessionAuthority = Depends(get_session_authority),
) -> ExecutionContext:
    """
    Context for the current request.

    A missing or unreadable session yields the anonymous (homeowner) context;
    contractor operations then fail the capability check with 401.
    """
    identity = sessions.read_session(token)
    if identity is None:
        return ExecutionContext.anonymous()
    return ExecutionContext.for_identity(identity)


def get_account_service(
    db: Session = Depends(get_db),
    sessions: SessionAuthority = Depends(get_session_authority),
) -> AccountService:
    return AccountService(db, sessions)


def get_estimate_service(
    db: Session = Depends(get_db),
    handoffs: HandoffStateMachine = Depends(get_handoff_machine),
    overrides: PricingOverrideStore = Depends(get_pricing_store),
) -> EstimateService:
    return EstimateService(db, handoffs, overrides)


def get_handoff_service(
    db: Session = Depends(get_db),
    handoffs: HandoffStateMachine = Depends(get_handoff_machine),
) -> HandoffService:
    return HandoffService(db, handoffs)


def get_pricing_service(
    db: Session = Depends(get_db),
    overrides: PricingOverrideStore = Depends(get_pricing_store),
) -> PricingService:
    return PricingService(db, overrides)


# =============================================================================
# Rate limiting
# =============================================================================


def get_client_identifier(request: Request) -> str:
    """Client IP, preferring the first X-Forwarded-For hop behind a proxy."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def limit_contractor_estimates(
    client: str = Depends(get_client_identifier),
    store: KeyValueStore = Depends(get_kv_store),
) -> None:
    settings = get_settings()
    RateLimiter(
        store,
        "contractor_estimate",
        settings.RATE_LIMIT_CONTRACTOR_ESTIMATES,
        settings.RATE_LIMIT_WINDOW_SECONDS,
    ).check(client)


def limit_homeowner_estimates(
    client: str = Depends(get_client_identifier),
    store: KeyValueStore = Depends(get_kv_store),
) -> None:
    settings = get_settings()
    RateLimiter(
        store,
        "homeowner_estimate",
        settings.RATE_LIMIT_HOMEOWNER_ESTIMATES,
        settings.RATE_LIMIT_WINDOW_SECONDS,
    ).check(client)
