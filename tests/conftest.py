"""
Shared fixtures for the HoneyBadger client tests.
"""

import httpx
import pytest

from honeybadger.client import ApiClient
from honeybadger.config import Settings
from honeybadger.tokens import MemoryTokenStorage, TokenStore

from fake_api import FakeApi
from fake_backend import FakeBackend

BASE_URL = "http://test"


@pytest.fixture
def settings(tmp_path):
    """Settings pointing at the mocked backend with a throwaway session db."""
    return Settings(base_url=BASE_URL, token_db_path=tmp_path / "session.db")


@pytest.fixture
def token_store():
    return TokenStore(MemoryTokenStorage())


@pytest.fixture
async def api(settings, token_store):
    """ApiClient on the default transport, for use with respx_mock."""
    client = ApiClient(settings=settings, token_store=token_store, event_hooks={})
    yield client
    await client.close()


@pytest.fixture
def backend():
    """Fake backend with one registered user."""
    backend = FakeBackend()
    backend.add_user("Honey Badger", "badger@example.com", "s3cret-pass", phone="+15550100")
    return backend


@pytest.fixture
async def backend_api(settings, token_store, backend):
    """ApiClient wired to the fake backend over ASGI."""
    client = ApiClient(
        settings=settings,
        token_store=token_store,
        transport=httpx.ASGITransport(app=backend.app),
    )
    yield client
    await client.close()


@pytest.fixture
def fake_api():
    return FakeApi()
