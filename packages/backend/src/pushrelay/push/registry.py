"""In-memory subscription registry, keyed by endpoint.

Learn: The registry is the only place that mutates the subscription set.
Everything else reads through snapshot(), which copies the values under
the lock, so a broadcast can iterate while subscribe/unsubscribe calls
keep coming in.

No persistence: empty at process start, gone at process end. One
instance is created per app in create_app() and reached through
app.state, never through a module global.
"""

import asyncio

from pushrelay.push.models import Subscription


class SubscriptionRegistry:
    def __init__(self):
        self._lock = asyncio.Lock()
        self._subscriptions: dict[str, Subscription] = {}

    async def upsert(self, subscription: Subscription) -> bool:
        """Insert or fully replace the record for this endpoint. Returns True if new."""
        async with self._lock:
            is_new = subscription.endpoint not in self._subscriptions
            self._subscriptions[subscription.endpoint] = subscription
            return is_new

    async def remove(self, endpoint: str) -> bool:
        """Drop a subscription. Idempotent; returns True if it was present."""
        async with self._lock:
            return self._subscriptions.pop(endpoint, None) is not None

    async def snapshot(self) -> list[Subscription]:
        """Point-in-time copy of all subscriptions."""
        async with self._lock:
            return list(self._subscriptions.values())

    async def count(self) -> int:
        async with self._lock:
            return len(self._subscriptions)

    async def clear(self) -> None:
        async with self._lock:
            self._subscriptions.clear()
