# ABOUTME: Shared fixtures for RxNorm client and service tests.
# ABOUTME: Wires the fake RxNav upstream into pooled clients and lookup services.

import httpx
import pytest

from src.clients.rxnorm import RxNormClient
from src.services.cache import InMemoryCache
from src.services.http import HTTPClientManager
from src.services.rxnorm import RxNormService
from tests.fakes import BASE_URL, FakeRxNav


@pytest.fixture
def rxnav() -> FakeRxNav:
    return FakeRxNav()


@pytest.fixture
async def rxnorm_client(rxnav):
    manager = HTTPClientManager(transport=httpx.MockTransport(rxnav.handler))
    yield RxNormClient(base_url=BASE_URL, timeout=10.0, http_manager=manager)
    await manager.close()


@pytest.fixture
def make_service(rxnorm_client):
    """Factory for RxNormService instances sharing the fake upstream."""

    def _make(**overrides) -> RxNormService:
        options = {
            "client": rxnorm_client,
            "cache": InMemoryCache(),
            "ttl": 86400,
            "validation_mode": "status",
            "cache_failures": False,
        }
        options.update(overrides)
        return RxNormService(**options)

    return _make


@pytest.fixture
def rxnorm_service(make_service) -> RxNormService:
    return make_service()
