"""Test fixtures — a fresh app per test with a scripted push delivery.

Learn: Nothing here talks to a real push service. FakeDelivery stands in
for pywebpush: tests set per-endpoint outcomes (a status code, or a
DeliveryError to raise) and inspect the recorded calls afterwards.

Each test gets its own create_app() instance, so the in-memory registry
starts empty every time. httpx's ASGITransport does not run the lifespan,
which is fine: everything the handlers need is built in create_app().
"""

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from pushrelay.config import Settings
from pushrelay.main import create_app
from pushrelay.push.delivery import PushDelivery
from pushrelay.push.models import Subscription, SubscriptionKeys
from pushrelay.push.registry import SubscriptionRegistry
from pushrelay.push.vapid import VapidKeys


class FakeDelivery(PushDelivery):
    """Scripted delivery: endpoint → status code or exception."""

    def __init__(self):
        self.outcomes: dict = {}
        self.calls: list[tuple[str, bytes]] = []
        self.closed = False

    async def deliver(self, subscription, payload):
        self.calls.append((subscription.endpoint, payload))
        outcome = self.outcomes.get(subscription.endpoint, 201)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome

    def close(self):
        self.closed = True


@pytest.fixture()
def delivery():
    return FakeDelivery()


@pytest.fixture()
def vapid_keys():
    return VapidKeys(public_key="BTestPublicKey", private_key="test-private-key")


@pytest.fixture()
def test_settings(tmp_path):
    return Settings(
        environment="development",
        vapid_keys_file=str(tmp_path / "vapid-keys.json"),
    )


@pytest.fixture()
def app(test_settings, delivery, vapid_keys):
    return create_app(settings=test_settings, delivery=delivery, vapid_keys=vapid_keys)


@pytest.fixture()
def registry(app) -> SubscriptionRegistry:
    return app.state.registry


@pytest.fixture()
def make_subscription():
    """Factory for Subscription records with throwaway keys."""

    def _make(endpoint: str, p256dh: str = "p256dh-key", auth: str = "auth-secret"):
        return Subscription(
            endpoint=endpoint,
            keys=SubscriptionKeys(p256dh=p256dh, auth=auth),
        )

    return _make


@pytest_asyncio.fixture()
async def client(app):
    """HTTP client bound to the per-test app."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
