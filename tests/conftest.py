import asyncio
import os
import tempfile

# Settings are read once at import time, so the environment is fixed before
# anything from shopsync is imported.
TEST_ENCRYPTION_KEY = "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA="
TEST_SHOPIFY_SECRET = "test-shopify-secret"
_DB_DIR = tempfile.mkdtemp(prefix="shopsync-tests-")

os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'shopsync.db')}"
os.environ["ENCRYPTION_KEY"] = TEST_ENCRYPTION_KEY
os.environ["API_KEY_HASH_SECRET"] = "test-hash-secret"
os.environ["SECRET_KEY"] = "test-session-secret"
os.environ["SHOPIFY_API_KEY"] = "test-client-id"
os.environ["SHOPIFY_API_SECRET"] = TEST_SHOPIFY_SECRET
os.environ["APP_URL"] = "https://sync.example.com"

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from shopsync.core.config import get_settings  # noqa: E402
from shopsync.core.exceptions import UpstreamError  # noqa: E402
from shopsync.core.nonce import nonce_cache  # noqa: E402
from shopsync.core.rate_limit import api_limiter  # noqa: E402
from shopsync.core.security import create_session_token  # noqa: E402
from shopsync.crud.api_key import create_api_key  # noqa: E402
from shopsync.crud.store import upsert_store  # noqa: E402
from shopsync.db.base import Base, get_db  # noqa: E402
import shopsync.db.models  # noqa: E402,F401
from shopsync.server import app  # noqa: E402
from shopsync.services.platform_connector import get_shopify_connector  # noqa: E402
from shopsync.services.platform_connector.base import EcommercePlatformConnector  # noqa: E402

SHOP = "portal-test.myshopify.com"
SHOP_TOKEN = "shpat_0123456789abcdef"
SHOP_SCOPES = "read_orders,write_orders,read_customers,read_products,write_products,read_inventory,write_inventory"

# NullPool: every session opens its own connection, so the same database can
# be used from the TestClient loop and from asyncio.run() in the test body.
test_engine = create_async_engine(get_settings().DATABASE_URL, poolclass=NullPool)
TestSessionLocal = sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@event.listens_for(test_engine.sync_engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


async def reset_schema():
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def override_get_db():
    session = TestSessionLocal()
    try:
        yield session
    finally:
        await session.close()


class FakeConnector(EcommercePlatformConnector):
    """Records every call; answers from canned responses keyed by (method, path)."""

    def __init__(self):
        self.calls = []
        self.responses = {}
        self.errors = {}
        self.graphql_calls = []
        self.graphql_data = {}
        self.graphql_error = None
        self.token_data = {"access_token": SHOP_TOKEN, "scope": SHOP_SCOPES}
        self.exchanged = []
        self.webhooks = []
        self.failing_topics = set()

    async def get_platform_name(self) -> str:
        return "shopify"

    async def exchange_code_for_token(self, params: dict):
        self.exchanged.append(params)
        return dict(self.token_data)

    async def register_webhook(self, shop_domain, access_token, topic, address):
        if topic in self.failing_topics:
            raise UpstreamError(f"Webhook {topic} was rejected", details=["address is invalid"])
        self.webhooks.append({"shop": shop_domain, "token": access_token, "topic": topic, "address": address})
        return {"id": 9000 + len(self.webhooks), "topic": topic, "address": address}

    async def request(self, shop_domain, access_token, method, path, params=None, json=None):
        self.calls.append({
            "shop": shop_domain,
            "token": access_token,
            "method": method,
            "path": path,
            "params": params,
            "json": json,
        })
        error = self.errors.get((method, path))
        if error is not None:
            raise error
        return self.responses.get((method, path), {})

    async def graphql(self, shop_domain, access_token, query, variables=None):
        self.graphql_calls.append({"shop": shop_domain, "query": query, "variables": variables})
        if self.graphql_error is not None:
            raise self.graphql_error
        return self.graphql_data


@pytest.fixture(autouse=True)
def _reset_in_process_state():
    api_limiter.reset()
    nonce_cache.clear()
    yield
    api_limiter.reset()
    nonce_cache.clear()


@pytest_asyncio.fixture
async def db():
    """A fresh schema and a session on it, for coroutine tests."""
    await reset_schema()
    async with TestSessionLocal() as session:
        yield session


@pytest.fixture
def fake_connector():
    return FakeConnector()


@pytest.fixture
def with_db():
    """Run ``fn(session)`` to completion from a synchronous test."""
    def run(fn):
        async def _call():
            async with TestSessionLocal() as session:
                return await fn(session)
        return asyncio.run(_call())
    return run


@pytest.fixture
def client(fake_connector):
    asyncio.run(reset_schema())
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_shopify_connector] = lambda: fake_connector
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def installed_store(client, with_db):
    return with_db(lambda session: upsert_store(session, SHOP, SHOP_TOKEN, SHOP_SCOPES))


@pytest.fixture
def issue_key(installed_store, with_db):
    """Issue a credential for the installed store and return its request headers."""
    def issue(scopes, name="Portal"):
        issued = with_db(lambda session: create_api_key(session, installed_store, name, scopes))
        return {"X-API-Key": issued.api_key, "X-API-Secret": issued.api_secret}
    return issue


@pytest.fixture
def owner_headers(installed_store):
    token = create_session_token(installed_store.id, installed_store.shop_domain)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def session_factory():
    return TestSessionLocal
