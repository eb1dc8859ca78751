from __future__ import annotations

import pytest

from webhook_service.main import create_app
from webhook_service.services.dependencies import build_components
from webhook_service.settings import Settings

from tests.utils import FakeClock, SubscriberStub


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app_settings():
    return Settings(
        env="development",
        storage_backend="memory",
        webhook_request_timeout_seconds=2.0,
        webhook_dispatch_interval_seconds=3600.0,
    )


@pytest.fixture
async def components(app_settings, clock):
    built = build_components(app_settings, clock=clock)
    yield built
    await built.sender.close()


@pytest.fixture
def registry(components):
    return components.registry


@pytest.fixture
def publisher(components):
    return components.publisher


@pytest.fixture
def queue(components):
    return components.queue


@pytest.fixture
def scheduler(components):
    return components.scheduler


@pytest.fixture
async def subscriber(aiohttp_server):
    stub = SubscriberStub()
    server = await aiohttp_server(stub.app)
    stub.url = str(server.make_url("/hook"))
    return stub


@pytest.fixture
async def service_client(aiohttp_client, app_settings, components):
    """Client for the registry API; deliveries run only when a test drives the scheduler."""
    app = create_app(app_settings, components, run_scheduler=False)
    return await aiohttp_client(app)
