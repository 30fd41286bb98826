"""
Estimate Core Persistence

SQLAlchemy models and the tenant-scoped repository, plus the key-value store
used for handoffs, pricing overrides and session revocations.
"""

from basecore.db import Base, get_engine
from estimate_core.persistence.kv import (
    InMemoryKeyValueStore,
    KeyValueStore,
    RedisKeyValueStore,
    build_kv_store,
)
from estimate_core.persistence.models import Company, Contractor, Estimate
from estimate_core.persistence.repo import TenantScopedStore, setup_status


def init_db(engine=None) -> None:
    """Create all tables registered on Base."""
    Base.metadata.create_all(bind=engine or get_engine())


__all__ = [
    "Company",
    "Contractor",
    "Estimate",
    "InMemoryKeyValueStore",
    "KeyValueStore",
    "RedisKeyValueStore",
    "TenantScopedStore",
    "build_kv_store",
    "init_db",
    "setup_status",
]
