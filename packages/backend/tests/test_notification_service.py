"""Notification service tests — the subscribe → broadcast → prune loop."""

import json

import pytest

from pushrelay.push.delivery import DeliveryError, SubscriptionGoneError
from pushrelay.push.dispatcher import PushDispatcher
from pushrelay.push.registry import SubscriptionRegistry
from pushrelay.services.notification_service import NotificationService


@pytest.fixture()
def service(delivery):
    registry = SubscriptionRegistry()
    return NotificationService(registry, PushDispatcher(delivery))


@pytest.mark.asyncio
async def test_order_ready_scenario(service, delivery, make_subscription):
    """E1 succeeds, E2 is gone → 1 sent, 1 failed, E2 pruned."""
    await service.subscribe(make_subscription("E1"))
    await service.subscribe(make_subscription("E2"))
    delivery.outcomes["E1"] = 200
    delivery.outcomes["E2"] = SubscriptionGoneError("Push failed: 410 Gone", 410)

    report = await service.broadcast("Table 5 order ready")

    assert report.success_count == 1
    assert report.failure_count == 1
    assert report.total_subscriptions == 1
    assert report.pruned == ["E2"]
    assert [s.endpoint for s in await service.registry.snapshot()] == ["E1"]


@pytest.mark.asyncio
async def test_broadcast_n_with_k_gone(service, delivery, make_subscription):
    n, gone = 8, {"e2", "e5", "e7"}
    for i in range(n):
        await service.subscribe(make_subscription(f"e{i}"))
    for endpoint in gone:
        delivery.outcomes[endpoint] = SubscriptionGoneError("gone", 410)

    report = await service.broadcast("hi")

    assert report.success_count == n - len(gone)
    assert report.failure_count == len(gone)
    assert await service.registry.count() == n - len(gone)


@pytest.mark.asyncio
async def test_broadcast_empty_registry_short_circuits(service, delivery):
    report = await service.broadcast("anyone?")

    assert (report.success_count, report.failure_count, report.total_subscriptions) == (0, 0, 0)
    assert report.empty
    assert delivery.calls == []


@pytest.mark.asyncio
async def test_broadcast_transient_failure_keeps_subscription(service, delivery, make_subscription):
    await service.subscribe(make_subscription("e1"))
    delivery.outcomes["e1"] = DeliveryError("Service Unavailable", 503)

    report = await service.broadcast("hi")

    assert report.failure_count == 1
    assert report.total_subscriptions == 1


@pytest.mark.asyncio
async def test_send_wraps_plain_text_once(service, delivery, make_subscription):
    status = await service.send(make_subscription("e1"), "Hello")

    assert status == 201
    [(endpoint, payload)] = delivery.calls
    assert endpoint == "e1"
    assert json.loads(payload)["body"] == "Hello"


@pytest.mark.asyncio
async def test_send_gone_prunes_and_reraises(service, delivery, make_subscription):
    sub = make_subscription("e1")
    await service.subscribe(sub)
    delivery.outcomes["e1"] = SubscriptionGoneError("gone", 410)

    with pytest.raises(SubscriptionGoneError):
        await service.send(sub, "Hello")
    assert await service.registry.count() == 0


@pytest.mark.asyncio
async def test_send_to_unregistered_subscription(service, delivery, make_subscription):
    """Direct sends don't require the subscription to be registered."""
    status = await service.send(make_subscription("not-registered"), {"title": "x"})
    assert status == 201
    assert await service.registry.count() == 0


@pytest.mark.asyncio
async def test_unsubscribe_without_endpoint_is_noop(service, make_subscription):
    await service.subscribe(make_subscription("e1"))
    assert await service.unsubscribe(None) == 1
    assert await service.unsubscribe("e1") == 0
    assert await service.unsubscribe("e1") == 0
