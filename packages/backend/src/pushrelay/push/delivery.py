"""Push delivery — the wire-level encrypted push exchange.

Learn: Push Relay doesn't implement RFC 8291 encryption or VAPID (RFC 8292)
signing itself. It hands a subscription and payload bytes to a delivery
capability and gets back a status code, or a DeliveryError carrying the
status the push service answered with (None for network failures).

    delivery = WebPushDelivery(private_key, subject, max_workers=100)
    status = await delivery.deliver(subscription, payload)
    delivery.close()

WebPushDelivery binds to pywebpush, which is synchronous (requests), so
each call runs on the binding's own thread pool. The pool is sized to the
broadcast concurrency bound; the loop's default executor is much smaller
and would cap in-flight sends below it. Tests plug in their own
PushDelivery to script per-endpoint outcomes.
"""

import asyncio
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from typing import Optional

import requests
import structlog
from pywebpush import WebPushException, webpush

from pushrelay.push.models import Subscription

logger = structlog.get_logger()

# Push service answers meaning "this endpoint is permanently invalid"
GONE_STATUS_CODES = frozenset({404, 410})


class DeliveryError(Exception):
    """The push service (or the network on the way to it) refused a push."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code

    @property
    def is_gone(self) -> bool:
        return self.status_code in GONE_STATUS_CODES


class SubscriptionGoneError(DeliveryError):
    """404/410 — the browser revoked the subscription; prune it."""


def delivery_error(message: str, status_code: Optional[int] = None) -> DeliveryError:
    """Build the right DeliveryError subclass for a status code."""
    if status_code in GONE_STATUS_CODES:
        return SubscriptionGoneError(message, status_code)
    return DeliveryError(message, status_code)


class PushDelivery(ABC):
    """Abstract push-send capability."""

    @abstractmethod
    async def deliver(self, subscription: Subscription, payload: bytes) -> int:
        """Send one encrypted push. Returns the push service's status code.

        Raises DeliveryError (SubscriptionGoneError for 404/410).
        """

    def close(self) -> None:
        """Release resources held by the binding. Called at shutdown."""


class WebPushDelivery(PushDelivery):
    """pywebpush binding with the server's VAPID credentials.

    Single attempt per call; retry policy, if any, belongs to the caller.
    max_workers caps concurrent blocking sends and should be at least the
    dispatcher's concurrency bound.
    """

    def __init__(
        self,
        private_key: str,
        subject: str,
        *,
        ttl: int = 2419200,
        timeout: Optional[float] = 10.0,
        max_workers: int = 100,
    ):
        self.private_key = private_key
        self.subject = subject
        self.ttl = ttl
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="webpush"
        )

    async def deliver(self, subscription: Subscription, payload: bytes) -> int:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            self._executor, self._send, subscription, payload
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def _send(self, subscription: Subscription, payload: bytes) -> int:
        try:
            response = webpush(
                subscription_info=subscription.to_subscription_info(),
                data=payload,
                vapid_private_key=self.private_key,
                # pywebpush fills in aud/exp on this dict, so build a fresh one
                vapid_claims={"sub": self.subject},
                ttl=self.ttl,
                timeout=self.timeout,
            )
        except WebPushException as e:
            status_code = getattr(e.response, "status_code", None)
            raise delivery_error(e.message, status_code) from e
        except requests.RequestException as e:
            raise DeliveryError(f"Push service unreachable: {e}") from e
        except ValueError as e:
            # Malformed subscription keys or VAPID key
            raise DeliveryError(f"Invalid push credentials: {e}") from e

        logger.debug(
            "push.delivered",
            endpoint=subscription.short_endpoint(),
            status_code=response.status_code,
        )
        return response.status_code
