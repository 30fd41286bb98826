"""
Session Authority

Issues, reads and invalidates contractor sessions.

Tokens are signed JWTs carrying an Identity snapshot. Signing alone cannot
revoke a token, so destroy_session() records the token id in the key-value
store until the token would have expired anyway.
"""

import logging
from datetime import datetime, timedelta, timezone
from uuid import uuid4

from basecore.settings import Settings, get_settings
from estimate_core.contracts.identity import Identity
from estimate_core.persistence.kv import KeyValueStore
from estimate_core.security import create_access_token, decode_access_token

logger = logging.getLogger(__name__)

REVOKED_PREFIX = "session:revoked:"


class SessionAuthority:
    """Creates and resolves session tokens."""

    def __init__(self, store: KeyValueStore, settings: Settings | None = None):
        self.store = store
        self.settings = settings or get_settings()

    @property
    def max_age_seconds(self) -> int:
        return self.settings.SESSION_MAX_AGE_SECONDS

    def create_session(self, identity: Identity) -> str:
        """Issue a token for an identity."""
        claims = identity.to_claims()
        claims["jti"] = uuid4().hex
        token = create_access_token(
            claims,
            expires_delta=timedelta(seconds=self.max_age_seconds),
            secret_key=self.settings.SECRET_KEY,
            algorithm=self.settings.ALGORITHM,
        )
        logger.debug(
            "Session created",
            extra={"contractor_id": identity.contractor_id, "role": identity.role.value},
        )
        return token

    def _decode(self, token: str | None) -> dict | None:
        if not token:
            return None
        return decode_access_token(
            token,
            secret_key=self.settings.SECRET_KEY,
            algorithm=self.settings.ALGORITHM,
        )

    def read_session(self, token: str | None) -> Identity | None:
        """
        Resolve a token to an Identity.

        Returns None (never raises) for missing, malformed, expired or
        revoked tokens.
        """
        payload = self._decode(token)
        if payload is None:
            return None

        jti = payload.get("jti")
        if not jti or self.store.get(f"{REVOKED_PREFIX}{jti}") is not None:
            return None

        try:
            return Identity.from_claims(payload)
        except (KeyError, ValueError):
            logger.warning("Session token carried invalid claims")
            return None

    def destroy_session(self, token: str | None) -> None:
        """Revoke a token. Unknown or already invalid tokens are ignored."""
        payload = self._decode(token)
        if payload is None or not payload.get("jti"):
            return

        expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
        remaining = int((expires_at - datetime.now(timezone.utc)).total_seconds())
        if remaining <= 0:
            return

        self.store.set(
            f"{REVOKED_PREFIX}{payload['jti']}",
            {"contractor_id": payload.get("sub")},
            ttl_seconds=remaining,
        )
        logger.debug("Session destroyed", extra={"contractor_id": payload.get("sub")})

    def refresh_session(self, token: str | None, identity: Identity) -> str:
        """Replace a session with one carrying a fresh identity snapshot."""
        self.destroy_session(token)
        return self.create_session(identity)
