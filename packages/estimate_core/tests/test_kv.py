"""
Tests for the in-memory key-value store.
"""

import gc
import threading

import pytest

from estimate_core.persistence.kv import InMemoryKeyValueStore, build_kv_store


class TestInMemoryKeyValueStore:
    def test_values_are_copies(self, kv):
        value = {"items": [1]}
        kv.set("k", value)
        value["items"].append(2)
        fetched = kv.get("k")
        fetched["items"].append(3)
        assert kv.get("k") == {"items": [1]}

    def test_delete_reports_removal(self, kv):
        kv.set("k", {})
        assert kv.delete("k") is True
        assert kv.delete("k") is False

    def test_scan_by_prefix(self, kv):
        kv.set("handoff:1", {"n": 1})
        kv.set("handoff:2", {"n": 2})
        kv.set("pricing_override:1", {"n": 3})
        assert sorted(key for key, _ in kv.scan("handoff:")) == ["handoff:1", "handoff:2"]

    def test_ttl_expiry(self, kv, monkeypatch):
        now = [1000.0]
        monkeypatch.setattr("estimate_core.persistence.kv.time.monotonic", lambda: now[0])
        kv.set("session:revoked:abc", {"x": 1}, ttl_seconds=60)
        assert kv.get("session:revoked:abc") is not None

        now[0] += 61
        assert kv.get("session:revoked:abc") is None
        assert list(kv.scan("session:")) == []

    def test_lock_serializes_read_modify_write(self, kv):
        kv.set("counter", {"value": 0})

        def bump():
            for _ in range(50):
                with kv.lock("counter"):
                    current = kv.get("counter")["value"]
                    kv.set("counter", {"value": current + 1})

        threads = [threading.Thread(target=bump) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert kv.get("counter") == {"value": 400}

    def test_key_locks_released_after_use(self, kv):
        for i in range(100):
            with kv.lock(f"ratelimit:client:{i}"):
                assert f"ratelimit:client:{i}" in kv._key_locks
        gc.collect()
        assert len(kv._key_locks) == 0

    def test_held_lock_shared_between_callers(self, kv):
        with kv.lock("k"):
            held = kv._key_locks["k"]
            assert held.locked()
            acquired = threading.Event()

            def contend():
                with kv.lock("k"):
                    acquired.set()

            thread = threading.Thread(target=contend)
            thread.start()
            assert not acquired.wait(0.05)
        thread.join()
        assert acquired.is_set()


class TestBuildKvStore:
    def test_memory_backend(self):
        assert isinstance(build_kv_store("memory"), InMemoryKeyValueStore)

    def test_unknown_backend(self):
        with pytest.raises(ValueError):
            build_kv_store("etcd")
