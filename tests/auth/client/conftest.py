from unittest.mock import AsyncMock

import pytest

from encore.auth.client.models.config import LinkConfig
from encore.auth.client.primitives.capabilities import MemoryStorage
from encore.auth.client.services.state_store import RedirectStateStore
from encore.auth.client.services.tokens import OAuth2TokenManager
from tests.auth.client.helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def config(tmp_path) -> LinkConfig:
    return LinkConfig(
        client_id="client-456",
        redirect_uri="https://encore.example.com/",
        scopes=["playlist-read-private", "user-read-email"],
        storage_path=tmp_path / "pending.json",
    )


@pytest.fixture
def state_store(storage: MemoryStorage, clock: FakeClock) -> RedirectStateStore:
    return RedirectStateStore(storage, max_age=600, clock=clock)


@pytest.fixture
def token_manager() -> OAuth2TokenManager:
    return OAuth2TokenManager(http_client=AsyncMock())
