from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from libs.auth.dependencies import get_current_user
from libs.auth.models import AuthUser
from services.marketplace_service.container import MarketplaceServices, build_services
from services.marketplace_service.jobs import RetryPolicy
from tests.fakes import (
    FakeCacheBackend,
    FakeGateway,
    FakeNotifier,
    FakeQueue,
    InMemoryDatabase,
)


@pytest.fixture
def db() -> InMemoryDatabase:
    return InMemoryDatabase()


@pytest.fixture
def cache_backend() -> FakeCacheBackend:
    return FakeCacheBackend()


@pytest.fixture
def queue() -> FakeQueue:
    return FakeQueue()


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def notifier() -> FakeNotifier:
    return FakeNotifier()


@pytest.fixture
def services(db, cache_backend, queue, gateway, notifier) -> MarketplaceServices:
    return build_services(
        db=db,
        cache_backend=cache_backend,
        queue=queue,
        gateway=gateway,
        notifier=notifier,
        retry_policy=RetryPolicy(attempts=3, initial_delay_ms=1000),
        callback_url="http://testserver/payments/webhook",
    )


@pytest.fixture
def store(db):
    return db.add_store(owner_id="seller-1")


@pytest.fixture
def current_user() -> AuthUser:
    return AuthUser(sub="buyer-1", email="buyer@example.com", role="shopper")


@pytest_asyncio.fixture
async def client(services, current_user) -> AsyncGenerator[AsyncClient, None]:
    """
    Yield an AsyncClient against the app with fake collaborators wired in.

    Tests can swap the authenticated user by mutating ``current_user`` fields
    or by overriding ``get_current_user`` again.
    """
    from services.marketplace_service.app.main import app
    from services.marketplace_service.dependencies import get_marketplace_services

    app.dependency_overrides[get_marketplace_services] = lambda: services
    app.dependency_overrides[get_current_user] = lambda: current_user

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()
