"""Notification service — subscription lifecycle + send orchestration.

Learn: The API layer stays thin; this service ties the push core together:

    subscribe    → registry.upsert
    unsubscribe  → registry.remove
    send         → dispatcher.prepare → send_one → reconcile_failure on error
    broadcast    → registry.snapshot → dispatcher.broadcast → reconcile

The broadcast total is the registry count *after* pruning, so a caller
sees how many subscriptions are still alive.
"""

from dataclasses import dataclass
from typing import Optional, Union

import structlog

from pushrelay.push.delivery import DeliveryError
from pushrelay.push.dispatcher import PushDispatcher
from pushrelay.push.models import Subscription
from pushrelay.push.reconciler import ExpiryReconciler
from pushrelay.push.registry import SubscriptionRegistry

logger = structlog.get_logger()

Payload = Union[str, bytes, dict]


@dataclass
class BroadcastReport:
    success_count: int
    failure_count: int
    total_subscriptions: int
    pruned: list[str]

    @property
    def empty(self) -> bool:
        return self.success_count == 0 and self.failure_count == 0


class NotificationService:
    def __init__(
        self,
        registry: SubscriptionRegistry,
        dispatcher: PushDispatcher,
        reconciler: Optional[ExpiryReconciler] = None,
    ):
        self.registry = registry
        self.dispatcher = dispatcher
        self.reconciler = reconciler or ExpiryReconciler(registry)

    # ─── Subscription lifecycle ─────────────────────────────

    async def subscribe(self, subscription: Subscription) -> int:
        """Store (or replace) a subscription. Returns the new total."""
        is_new = await self.registry.upsert(subscription)
        total = await self.registry.count()
        logger.info(
            "push.subscribed" if is_new else "push.subscription_updated",
            endpoint=subscription.short_endpoint(),
            total=total,
        )
        return total

    async def unsubscribe(self, endpoint: Optional[str]) -> int:
        """Forget a subscription if we have it. Returns the new total."""
        if endpoint:
            await self.registry.remove(endpoint)
        total = await self.registry.count()
        logger.info("push.unsubscribed", total=total)
        return total

    # ─── Sending ────────────────────────────────────────────

    async def send(self, subscription: Subscription, payload: Payload) -> int:
        """Send to one subscription. Returns the push service status code.

        Raises DeliveryError; a gone endpoint is pruned before re-raising.
        """
        data = self.dispatcher.prepare(payload)
        try:
            status_code = await self.dispatcher.send_one(subscription, data)
        except DeliveryError as e:
            logger.warning(
                "push.send_failed",
                endpoint=subscription.short_endpoint(),
                status_code=e.status_code,
                error=e.message,
            )
            await self.reconciler.reconcile_failure(subscription.endpoint, e)
            raise

        logger.info(
            "push.sent",
            endpoint=subscription.short_endpoint(),
            status_code=status_code,
        )
        return status_code

    async def broadcast(self, payload: Payload) -> BroadcastReport:
        """Send one payload to every registered subscription."""
        targets = await self.registry.snapshot()
        if not targets:
            return BroadcastReport(
                success_count=0, failure_count=0, total_subscriptions=0, pruned=[]
            )

        data = self.dispatcher.prepare(payload)
        summary = await self.dispatcher.broadcast(data, targets)
        pruned = await self.reconciler.reconcile(summary)

        return BroadcastReport(
            success_count=summary.success_count,
            failure_count=summary.failure_count,
            total_subscriptions=await self.registry.count(),
            pruned=pruned,
        )
