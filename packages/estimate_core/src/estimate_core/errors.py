"""
Error taxonomy for the estimate core.

Each error carries the HTTP status the transport layer should answer with.
Cross-tenant lookups raise NotFoundError, identical to a missing id, so a
caller cannot enumerate another company's records.
"""

from typing import Any


class EstimateCoreError(Exception):
    """Base error. Unexpected failures map to 500."""

    status_code = 500

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class UnauthenticatedError(EstimateCoreError):
    """No session, or the session could not be read."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class ForbiddenError(EstimateCoreError):
    """Authenticated, but the role or capability does not allow the action."""

    status_code = 403

    def __init__(self, message: str = "Forbidden", details: dict[str, Any] | None = None):
        super().__init__(message, details)


class NotFoundError(EstimateCoreError):
    status_code = 404


class InvalidInputError(EstimateCoreError):
    status_code = 400


class ConflictError(EstimateCoreError):
    status_code = 409


class InvalidTransitionError(ConflictError):
    """A handoff status change that the state machine does not allow."""

    def __init__(self, current: str, requested: str):
        super().__init__(
            f"Cannot move handoff from '{current}' to '{requested}'",
            {"current_status": current, "requested_status": requested},
        )
        self.current = current
        self.requested = requested


class RateLimitedError(EstimateCoreError):
    status_code = 429
