"""
Key-Value Store

Keyed JSON storage used by the handoff state machine, the pricing override
store and the session revocation list. Components receive a store instance;
they never reach for a module-level dict.

Implementations:
- InMemoryKeyValueStore: single-process (development, tests)
- RedisKeyValueStore: shared across replicas
"""

import json
import logging
import threading
import time
import weakref
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator

import redis

from basecore.redis import get_redis_client, key_lock
from basecore.settings import get_settings

logger = logging.getLogger(__name__)


class KeyValueStore(ABC):
    """
    Abstract keyed store of JSON-serializable dicts.

    lock(key) serializes read-modify-write sequences on one key; it does not
    guard any other key.
    """

    @abstractmethod
    def get(self, key: str) -> dict[str, Any] | None:
        """Return the value stored at key, or None."""

    @abstractmethod
    def set(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        """Store value at key, replacing anything there."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove key. Returns True if something was removed."""

    @abstractmethod
    def scan(self, prefix: str) -> Iterator[tuple[str, dict[str, Any]]]:
        """Iterate (key, value) pairs whose key starts with prefix."""

    @abstractmethod
    def lock(self, key: str):
        """Context manager holding an exclusive lock on key."""


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store. Values are copied in and out through JSON."""

    def __init__(self):
        self._data: dict[str, str] = {}
        self._expires: dict[str, float] = {}
        self._guard = threading.Lock()
        # Entries disappear once no caller holds or waits on the lock.
        self._key_locks: weakref.WeakValueDictionary[str, threading.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _expired(self, key: str) -> bool:
        expires_at = self._expires.get(key)
        return expires_at is not None and expires_at <= time.monotonic()

    def get(self, key: str) -> dict[str, Any] | None:
        with self._guard:
            if self._expired(key):
                self._data.pop(key, None)
                self._expires.pop(key, None)
            raw = self._data.get(key)
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        raw = json.dumps(value, default=str)
        with self._guard:
            self._data[key] = raw
            if ttl_seconds:
                self._expires[key] = time.monotonic() + ttl_seconds
            else:
                self._expires.pop(key, None)

    def delete(self, key: str) -> bool:
        with self._guard:
            self._expires.pop(key, None)
            return self._data.pop(key, None) is not None

    def scan(self, prefix: str) -> Iterator[tuple[str, dict[str, Any]]]:
        with self._guard:
            keys = [k for k in self._data if k.startswith(prefix)]
        for key in keys:
            value = self.get(key)
            if value is not None:
                yield key, value

    @contextmanager
    def lock(self, key: str):
        with self._guard:
            key_lock_ = self._key_locks.setdefault(key, threading.Lock())
        with key_lock_:
            yield


class RedisKeyValueStore(KeyValueStore):
    """Redis-backed store. Keys are namespaced with a prefix."""

    def __init__(self, client: redis.Redis, namespace: str = "estimates"):
        self.client = client
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> dict[str, Any] | None:
        raw = self.client.get(self._key(key))
        return json.loads(raw) if raw is not None else None

    def set(self, key: str, value: dict[str, Any], ttl_seconds: int | None = None) -> None:
        self.client.set(self._key(key), json.dumps(value, default=str), ex=ttl_seconds)

    def delete(self, key: str) -> bool:
        return bool(self.client.delete(self._key(key)))

    def scan(self, prefix: str) -> Iterator[tuple[str, dict[str, Any]]]:
        strip = len(self.namespace) + 1
        for full_key in self.client.scan_iter(match=f"{self._key(prefix)}*", count=500):
            raw = self.client.get(full_key)
            if raw is not None:
                yield full_key[strip:], json.loads(raw)

    @contextmanager
    def lock(self, key: str):
        lock = key_lock(self._key(key), client=self.client)
        if not lock.acquire():
            logger.warning("Timed out acquiring key lock", extra={"key": key})
            raise TimeoutError(f"Could not lock key: {key}")
        try:
            yield
        finally:
            lock.release()


def build_kv_store(backend: str | None = None) -> KeyValueStore:
    """Create the store selected by KV_BACKEND ("memory" or "redis")."""
    backend = (backend or get_settings().KV_BACKEND).lower()
    if backend == "redis":
        return RedisKeyValueStore(get_redis_client())
    if backend == "memory":
        return InMemoryKeyValueStore()
    raise ValueError(f"Unknown KV_BACKEND: {backend}")
