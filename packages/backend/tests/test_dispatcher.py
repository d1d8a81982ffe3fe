"""Push dispatcher tests — send_one, broadcast aggregation, failure isolation."""

import asyncio
import json

import pytest

from pushrelay.push.delivery import DeliveryError, PushDelivery, SubscriptionGoneError
from pushrelay.push.dispatcher import PushDispatcher


# ═══════════════════════════════════════════════════════════
# send_one
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_send_one_returns_status_code(delivery, make_subscription):
    dispatcher = PushDispatcher(delivery)
    sub = make_subscription("https://push.example/e1")

    status = await dispatcher.send_one(sub, b"payload")

    assert status == 201
    assert delivery.calls == [("https://push.example/e1", b"payload")]


@pytest.mark.asyncio
async def test_send_one_raises_delivery_error(delivery, make_subscription):
    delivery.outcomes["https://push.example/e1"] = SubscriptionGoneError("gone", 410)
    dispatcher = PushDispatcher(delivery)

    with pytest.raises(SubscriptionGoneError) as exc_info:
        await dispatcher.send_one(make_subscription("https://push.example/e1"), b"x")
    assert exc_info.value.status_code == 410
    assert exc_info.value.is_gone


# ═══════════════════════════════════════════════════════════
# broadcast
# ═══════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_broadcast_empty_targets_makes_no_calls(delivery):
    dispatcher = PushDispatcher(delivery)

    summary = await dispatcher.broadcast(b"x", [])

    assert summary.success_count == 0
    assert summary.failure_count == 0
    assert summary.gone_endpoints == []
    assert delivery.calls == []


@pytest.mark.asyncio
async def test_broadcast_counts_successes_and_failures(delivery, make_subscription):
    targets = [make_subscription(f"https://push.example/e{i}") for i in range(5)]
    delivery.outcomes["https://push.example/e1"] = SubscriptionGoneError("gone", 410)
    delivery.outcomes["https://push.example/e3"] = SubscriptionGoneError("not found", 404)
    delivery.outcomes["https://push.example/e4"] = DeliveryError("rate limited", 429)
    dispatcher = PushDispatcher(delivery)

    summary = await dispatcher.broadcast(b"x", targets)

    assert summary.attempted == 5
    assert summary.success_count == 2
    assert summary.failure_count == 3
    assert sorted(summary.gone_endpoints) == [
        "https://push.example/e1",
        "https://push.example/e3",
    ]


@pytest.mark.asyncio
async def test_broadcast_sends_same_bytes_to_every_target(delivery, make_subscription):
    dispatcher = PushDispatcher(delivery)
    payload = dispatcher.prepare("Table 5 order ready")
    targets = [make_subscription(f"https://push.example/e{i}") for i in range(3)]

    await dispatcher.broadcast(payload, targets)

    assert {p for _, p in delivery.calls} == {payload}
    assert json.loads(payload)["body"] == "Table 5 order ready"


@pytest.mark.asyncio
async def test_broadcast_network_failure_has_no_status(delivery, make_subscription):
    delivery.outcomes["https://push.example/e0"] = DeliveryError("connection reset")
    dispatcher = PushDispatcher(delivery)

    summary = await dispatcher.broadcast(b"x", [make_subscription("https://push.example/e0")])

    [result] = summary.results
    assert result.ok is False
    assert result.status_code is None
    assert result.reason == "connection reset"
    assert summary.gone_endpoints == []


@pytest.mark.asyncio
async def test_broadcast_isolates_unexpected_exceptions(delivery, make_subscription):
    """A delivery binding that blows up only fails its own target."""
    delivery.outcomes["https://push.example/bad"] = RuntimeError("boom")
    dispatcher = PushDispatcher(delivery)
    targets = [
        make_subscription("https://push.example/bad"),
        make_subscription("https://push.example/good"),
    ]

    summary = await dispatcher.broadcast(b"x", targets)

    assert summary.success_count == 1
    assert summary.failure_count == 1


class BarrierDelivery(PushDelivery):
    """Every send waits until all expected sends have started."""

    def __init__(self, expected: int):
        self.expected = expected
        self.started = 0
        self.all_started = asyncio.Event()
        self.max_in_flight = 0
        self.in_flight = 0

    async def deliver(self, subscription, payload):
        self.started += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        if self.started >= self.expected:
            self.all_started.set()
        await self.all_started.wait()
        self.in_flight -= 1
        return 201


@pytest.mark.asyncio
async def test_broadcast_is_concurrent(make_subscription):
    """Sequential sends would deadlock on the barrier; concurrent ones finish."""
    delivery = BarrierDelivery(expected=20)
    dispatcher = PushDispatcher(delivery)
    targets = [make_subscription(f"https://push.example/e{i}") for i in range(20)]

    summary = await asyncio.wait_for(dispatcher.broadcast(b"x", targets), timeout=2)

    assert summary.success_count == 20
    assert delivery.max_in_flight == 20


class SlowDelivery(PushDelivery):
    def __init__(self):
        self.in_flight = 0
        self.max_in_flight = 0

    async def deliver(self, subscription, payload):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0.01)
        self.in_flight -= 1
        return 201


@pytest.mark.asyncio
async def test_broadcast_respects_concurrency_bound(make_subscription):
    delivery = SlowDelivery()
    dispatcher = PushDispatcher(delivery, max_concurrency=3)
    targets = [make_subscription(f"https://push.example/e{i}") for i in range(10)]

    summary = await dispatcher.broadcast(b"x", targets)

    assert summary.success_count == 10
    assert delivery.max_in_flight == 3
