"""
Pytest configuration for integration tests.

Runs the FastAPI app against an in-memory SQLite database and the
in-memory key-value store.
"""

import os

# Set environment variables for tests
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("KV_BACKEND", "memory")

from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from basecore.db import Base, get_db
from estimate_api.deps import get_handoff_machine, get_kv_store
from estimate_api.main import app
from estimate_core.contracts.identity import ContractorRole
from estimate_core.persistence import init_db
from estimate_core.persistence.kv import InMemoryKeyValueStore
from estimate_core.persistence.repo import TenantScopedStore
from estimate_core.security import get_password_hash
from estimate_core.workflow.handoff import HandoffStateMachine

PASSWORD = "integration-pass"
BASE_URL = "https://testserver"


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def kv():
    return InMemoryKeyValueStore()


@pytest.fixture
def api(session_factory, kv):
    """The app wired to the test database, store and a stepping clock."""
    start = datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)
    ticks = iter(start + timedelta(minutes=i) for i in range(1, 10_000))

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_kv_store] = lambda: kv
    app.dependency_overrides[get_handoff_machine] = lambda: HandoffStateMachine(
        kv, strict=True, clock=lambda: next(ticks)
    )
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
def seeded(session_factory):
    """
    Two companies, a contractor per role in each, one estimate per company
    and one public homeowner estimate.
    """
    db = session_factory()
    store = TenantScopedStore(db)
    password_hash = get_password_hash(PASSWORD)
    data = {}
    try:
        for key in ("co1", "co2"):
            company = store.create_company(name=f"Company {key}")
            members = {"company_id": company.id}
            for role in ContractorRole:
                contractor = store.create_contractor(
                    email=f"{role.value}@{key}.example.com",
                    password_hash=password_hash,
                    role=role,
                    company_id=company.id,
                )
                members[role.value] = contractor.id
            for suffix in ("a", "b"):
                store.save_estimate(
                    {"pricing": {"good": {"min": 3000, "max": 4000}}},
                    company_id=company.id,
                    contractor_id=members["office"],
                    estimate_id=f"est-{key}-{suffix}",
                )
            data[key] = members
        store.save_estimate({"pricing": {}}, is_homeowner=True, estimate_id="est-public")
        db.commit()
    finally:
        db.close()
    return data


@pytest.fixture
def anonymous(api):
    return TestClient(api, base_url=BASE_URL)


@pytest.fixture
def client_for(api, seeded):
    """Signed-in client for "<role>@<company>", e.g. client_for("tech", "co1")."""

    def sign_in(role: str, company: str = "co1") -> TestClient:
        client = TestClient(api, base_url=BASE_URL)
        response = client.post(
            "/api/contractor/signin",
            json={"email": f"{role}@{company}.example.com", "password": PASSWORD},
        )
        assert response.status_code == 200, response.text
        return client

    return sign_in
