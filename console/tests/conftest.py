"""
Shared fixtures: a throwaway state store, a session bound to a navigator and a
gateway talking to the in-process fake backend.
"""
import httpx
import pytest
import pytest_asyncio

from console.gateway import HttpGateway
from console.navigation import Navigator
from console.session import SessionStore
from console.storage import MemoryStore, SqliteStore
from console.tests.fake_backend import BASE_URL, TOKEN, BackendState, create_app


@pytest.fixture
def state_db(tmp_path):
    return str(tmp_path / "state" / "console.db")


@pytest.fixture
def navigator():
    return Navigator()


@pytest.fixture
def memory_store():
    return MemoryStore({"token": TOKEN})


@pytest.fixture
def session(memory_store, navigator):
    return SessionStore(memory_store, navigator)


@pytest.fixture
def anonymous_session(navigator):
    return SessionStore(MemoryStore(), navigator)


@pytest.fixture
def backend():
    return BackendState()


@pytest.fixture
def transport(backend):
    return httpx.ASGITransport(app=create_app(backend))


@pytest_asyncio.fixture
async def gateway(session, transport):
    async with HttpGateway(session, BASE_URL, transport=transport) as client:
        yield client


@pytest.fixture
def settings(state_db):
    return {
        "api": {"base_url": BASE_URL, "timeout_seconds": 5.0},
        "session": {"state_path": state_db, "token_key": "token"},
        "query": {"page_size": 10, "debounce_ms": 0},
        "logging": {"level": "DEBUG"},
    }


@pytest.fixture
def sqlite_store(state_db):
    return SqliteStore(state_db)
