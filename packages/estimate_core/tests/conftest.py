"""
Pytest fixtures for estimate core tests.
"""

import os

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("KV_BACKEND", "memory")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from basecore.db import Base
from estimate_core.authorization import ExecutionContext
from estimate_core.contracts.identity import ContractorRole
from estimate_core.persistence import init_db
from estimate_core.persistence.kv import InMemoryKeyValueStore
from estimate_core.persistence.repo import TenantScopedStore
from estimate_core.security import get_password_hash
from estimate_core.service.accounts import identity_of
from estimate_core.session import SessionAuthority
from estimate_core.workflow.handoff import HandoffStateMachine
from estimate_core.workflow.pricing import PricingOverrideStore

PASSWORD = "correct horse battery"


class StepClock:
    """Clock that advances one minute per call."""

    def __init__(self, start: datetime | None = None):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.current += timedelta(minutes=1)
        return self.current


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture
def store(db):
    return TenantScopedStore(db)


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def sessions(kv):
    return SessionAuthority(kv)


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def handoffs(kv, clock):
    return HandoffStateMachine(kv, strict=True, clock=clock)


@pytest.fixture
def overrides(kv):
    return PricingOverrideStore(kv)


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def password_hash():
    return get_password_hash(PASSWORD)


@pytest.fixture
def tenants(db, store, password_hash):
    """
    Two companies with one contractor per role each.

    Returns {"co1": {"company": ..., "owner_admin": ..., "office": ..., "tech": ...}, "co2": {...}}.
    """
    result = {}
    for key, name in (("co1", "Acme Heating"), ("co2", "Zenith Air")):
        company = store.create_company(name=name)
        members = {"company": company}
        for role in ContractorRole:
            members[role.value] = store.create_contractor(
                email=f"{role.value}@{key}.example.com",
                password_hash=password_hash,
                role=role,
                company_id=company.id,
            )
        result[key] = members
    db.commit()
    return result


@pytest.fixture
def estimates(db, store, tenants):
    """One estimate per company plus one public homeowner estimate."""
    co1 = store.save_estimate(
        {"pricing": {"good": {"min": 5000, "max": 6000}}, "system": "heat pump"},
        company_id=tenants["co1"]["company"].id,
        contractor_id=tenants["co1"]["office"].id,
        estimate_id="est-co1",
    )
    co2 = store.save_estimate(
        {"pricing": {"good": {"min": 7000, "max": 8000}}},
        company_id=tenants["co2"]["company"].id,
        contractor_id=tenants["co2"]["office"].id,
        estimate_id="est-co2",
    )
    public = store.save_estimate(
        {"pricing": {"better": {"min": 9000, "max": 9500}}},
        is_homeowner=True,
        estimate_id="est-public",
    )
    db.commit()
    return {"co1": co1, "co2": co2, "public": public}


@pytest.fixture
def context_for():
    """Build the ExecutionContext of a signed-in contractor."""

    def build(contractor) -> ExecutionContext:
        return ExecutionContext.for_identity(identity_of(contractor))

    return build

