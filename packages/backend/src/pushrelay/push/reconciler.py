"""Expiry reconciler — prune subscriptions the push service reports gone.

Learn: Browsers revoke subscriptions without telling us (site data
cleared, permission withdrawn, profile deleted). The push service
answers 404 or 410 the next time we try. This is the only path by
which the registry heals itself from those stale entries.

Removal is idempotent, so racing an explicit unsubscribe is harmless.
"""

import structlog

from pushrelay.push.delivery import DeliveryError
from pushrelay.push.dispatcher import BroadcastSummary
from pushrelay.push.models import truncate_endpoint
from pushrelay.push.registry import SubscriptionRegistry

logger = structlog.get_logger()


class ExpiryReconciler:
    def __init__(self, registry: SubscriptionRegistry):
        self.registry = registry

    async def reconcile(self, summary: BroadcastSummary) -> list[str]:
        """Remove every gone endpoint in a broadcast summary."""
        pruned = []
        for endpoint in summary.gone_endpoints:
            await self.registry.remove(endpoint)
            pruned.append(endpoint)

        if pruned:
            logger.info("push.expired_pruned", count=len(pruned))
        return pruned

    async def reconcile_failure(self, endpoint: str, error: DeliveryError) -> bool:
        """Remove a single endpoint if its send failed with a gone status."""
        if not error.is_gone:
            return False
        await self.registry.remove(endpoint)
        logger.info(
            "push.expired_pruned",
            count=1,
            endpoint=truncate_endpoint(endpoint),
            status_code=error.status_code,
        )
        return True
