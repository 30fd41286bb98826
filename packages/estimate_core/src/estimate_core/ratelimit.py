"""
Fixed-window request limiting on top of the key-value store.

Counters live under "ratelimit:<bucket>:<identifier>" and expire with their
window, so the same limits hold across replicas when the store is Redis.
"""

import logging
import math
import time
from typing import Callable

from estimate_core.errors import RateLimitedError
from estimate_core.persistence.kv import KeyValueStore

logger = logging.getLogger(__name__)

DEFAULT_RATE_WINDOW = 60  # seconds


class RateLimiter:
    KEY_PREFIX = "ratelimit:"

    def __init__(
        self,
        store: KeyValueStore,
        bucket: str,
        limit: int,
        window_seconds: int = DEFAULT_RATE_WINDOW,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.bucket = bucket
        self.limit = limit
        self.window_seconds = window_seconds
        self.clock = clock

    def _key(self, identifier: str) -> str:
        return f"{self.KEY_PREFIX}{self.bucket}:{identifier}"

    def hit(self, identifier: str) -> tuple[bool, int, int]:
        """
        Count one request for identifier.

        Returns:
            Tuple of (allowed, remaining, reset_seconds)
        """
        key = self._key(identifier)
        now = self.clock()

        with self.store.lock(key):
            entry = self.store.get(key)
            if entry is None or entry["reset_at"] <= now:
                entry = {"count": 0, "reset_at": now + self.window_seconds}
            entry["count"] += 1
            reset_seconds = max(1, math.ceil(entry["reset_at"] - now))
            self.store.set(key, entry, ttl_seconds=reset_seconds)

        remaining = max(0, self.limit - entry["count"])
        return entry["count"] <= self.limit, remaining, reset_seconds

    def check(self, identifier: str) -> int:
        """Count a request and raise RateLimitedError over the limit. Returns remaining."""
        allowed, remaining, reset_seconds = self.hit(identifier)
        if not allowed:
            logger.warning(
                "Rate limit exceeded",
                extra={"bucket": self.bucket, "identifier": identifier},
            )
            raise RateLimitedError(
                "Rate limit exceeded",
                {"limit": self.limit, "reset_seconds": reset_seconds},
            )
        return remaining
