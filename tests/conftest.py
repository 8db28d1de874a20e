"""
Pytest configuration and shared fixtures for MDB_AUTHZ tests.

This module provides:
- Model and enforcer fixtures over an in-memory adapter
- Mock Motor collection and client fixtures
- Testcontainers fixtures for integration tests
"""

import os
from collections.abc import Sequence
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection

from mdb_authz.adapters.base import Adapter, MemoryAdapter
from mdb_authz.core.enforcer import Enforcer
from mdb_authz.core.store import PolicyRule
from mdb_authz.exceptions import PersistenceError
from mdb_authz.models import (DEFAULT_RBAC_MODEL, RBAC_WITH_DENY_MODEL, RBAC_WITH_DOMAINS_MODEL,
                              SIMPLE_ACL_MODEL)
from mdb_authz.observability.metrics import get_metrics_collector


def pytest_configure(config):
    config.addinivalue_line("markers", "integration: tests that need a real MongoDB container")


# ============================================================================
# MODEL / ENFORCER FIXTURES
# ============================================================================


@pytest.fixture
def acl_model_text() -> str:
    return SIMPLE_ACL_MODEL


@pytest.fixture
def rbac_model_text() -> str:
    return DEFAULT_RBAC_MODEL


@pytest.fixture
def domain_model_text() -> str:
    return RBAC_WITH_DOMAINS_MODEL


@pytest.fixture
def deny_model_text() -> str:
    return RBAC_WITH_DENY_MODEL


@pytest.fixture
def memory_adapter() -> MemoryAdapter:
    return MemoryAdapter()


@pytest.fixture
def rbac_enforcer(memory_adapter: MemoryAdapter) -> Enforcer:
    """RBAC enforcer (no domains) with an empty in-memory adapter."""
    return Enforcer(DEFAULT_RBAC_MODEL, memory_adapter)


@pytest.fixture
def domain_enforcer(memory_adapter: MemoryAdapter) -> Enforcer:
    """RBAC-with-domains enforcer with an empty in-memory adapter."""
    return Enforcer(RBAC_WITH_DOMAINS_MODEL, memory_adapter)


class FailingAdapter(Adapter):
    """Adapter whose every operation fails, for error-path tests."""

    def __init__(self, rules: Sequence[PolicyRule] | None = None, fail_load: bool = True):
        self._rules = list(rules or [])
        self.fail_load = fail_load
        self.save_calls = 0

    async def load_all_rules(self) -> list[PolicyRule]:
        if self.fail_load:
            raise PersistenceError("backend unavailable", operation="load", adapter="FailingAdapter")
        return list(self._rules)

    async def save_all_rules(self, rules: Sequence[PolicyRule]) -> None:
        self.save_calls += 1
        raise PersistenceError("backend unavailable", operation="save", adapter="FailingAdapter")


@pytest.fixture
def failing_adapter() -> FailingAdapter:
    return FailingAdapter()


# ============================================================================
# MOCK MONGODB FIXTURES
# ============================================================================


def make_mock_collection(docs: list | None = None, name: str = "authz_policies") -> MagicMock:
    """Create a mock Motor collection whose ``find`` yields ``docs``."""
    collection = MagicMock(spec=AsyncIOMotorCollection)
    collection.name = name
    cursor = MagicMock()
    cursor.to_list = AsyncMock(return_value=list(docs or []))
    collection.find = MagicMock(return_value=cursor)
    collection.insert_many = AsyncMock(return_value=MagicMock(inserted_ids=["id1", "id2"]))
    collection.replace_one = AsyncMock(return_value=MagicMock(modified_count=0, upserted_id="id"))
    collection.delete_one = AsyncMock(return_value=MagicMock(deleted_count=1))
    collection.delete_many = AsyncMock(return_value=MagicMock(deleted_count=2))
    collection.create_index = AsyncMock(return_value="ptype_1")
    return collection


@pytest.fixture
def mock_collection_factory():
    """Factory for mock rule collections pre-loaded with documents."""
    return make_mock_collection


@pytest.fixture
def mock_policies_collection() -> MagicMock:
    """Create a mock rule collection with no documents."""
    return make_mock_collection()


@pytest.fixture
def mock_mongo_client() -> MagicMock:
    """Create a mock Motor client that can open transaction sessions."""
    client = MagicMock(spec=AsyncIOMotorClient)

    session = MagicMock()
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=False)
    transaction = MagicMock()
    transaction.__aenter__ = AsyncMock(return_value=transaction)
    transaction.__aexit__ = AsyncMock(return_value=False)
    session.start_transaction = MagicMock(return_value=transaction)

    client.start_session = AsyncMock(return_value=session)
    client.session = session
    return client


# ============================================================================
# ENVIRONMENT / GLOBAL STATE
# ============================================================================


@pytest.fixture(autouse=True)
def reset_environment(monkeypatch):
    """Reset environment variables before each test."""
    env_vars_to_clear = [
        "MONGO_URI",
        "DB_NAME",
        "AUTHZ_MODEL",
        "AUTHZ_POLICIES_COLLECTION",
        "AUTHZ_CACHE_TTL",
        "AUTHZ_USE_TRANSACTIONS",
        "AUTHZ_AUTO_SAVE",
    ]
    for var in env_vars_to_clear:
        monkeypatch.delenv(var, raising=False)
    yield


@pytest.fixture(autouse=True)
def reset_metrics():
    """Start every test with an empty global metrics collector."""
    get_metrics_collector().reset()
    yield


# ============================================================================
# TESTCONTAINERS FIXTURES (Real MongoDB for Integration Tests)
# ============================================================================


@pytest.fixture(scope="session")
def mongodb_container():
    """
    Start MongoDB Atlas Local container for integration tests.

    Atlas Local runs as a single-node replica set, so transactions work.
    Session-scoped: container starts once and is reused for all integration tests.
    """
    try:
        from testcontainers.mongodb import MongoDbContainer
    except ImportError:
        pytest.skip("testcontainers not installed. Install with: pip install -e '.[test]'")

    with MongoDbContainer(image="mongodb/mongodb-atlas-local:latest") as container:
        yield container


@pytest.fixture
def mongodb_connection_string(mongodb_container):
    """Connection string using localhost with the container's exposed port."""
    exposed_port = mongodb_container.get_exposed_port(27017)
    return f"mongodb://localhost:{exposed_port}/?directConnection=true"


@pytest_asyncio.fixture
async def real_mongo_client(mongodb_connection_string):
    """Real Motor client connected to the test container."""
    client = AsyncIOMotorClient(mongodb_connection_string)
    try:
        await client.admin.command("ping")
    except (RuntimeError, OSError) as e:
        pytest.fail(f"Failed to connect to MongoDB container: {e}")

    yield client

    client.close()


@pytest_asyncio.fixture
async def real_mongo_db(real_mongo_client):
    """Per-test database, dropped afterwards."""
    db_name = f"test_authz_{os.getpid()}_{id(real_mongo_client)}"
    db = real_mongo_client[db_name]

    yield db

    await real_mongo_client.drop_database(db_name)
