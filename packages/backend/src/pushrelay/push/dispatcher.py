"""Push dispatcher — single sends and concurrent broadcast fan-out.

Learn: broadcast() spawns one coroutine per target, gathers them all,
and folds the per-target DispatchResults into a BroadcastSummary.
No counters are shared between the concurrent sends; each send returns
its own result and the summary is computed after the join.

Key design decisions:
- Failure isolation — every send catches its own error, so one bad
  endpoint never aborts the rest of the broadcast
- Semaphore bounds in-flight sends across all concurrent broadcasts
- The plain-text/JSON wrapping decision happens once in prepare(),
  not once per target
"""

import asyncio
from dataclasses import dataclass, field
from typing import Optional, Sequence, Union

import structlog

from pushrelay.push.delivery import GONE_STATUS_CODES, DeliveryError, PushDelivery
from pushrelay.push.models import Subscription
from pushrelay.push.payload import EnvelopeDefaults, parse_payload, to_envelope

logger = structlog.get_logger()


@dataclass
class DispatchResult:
    """Outcome of one send."""
    endpoint: str
    ok: bool
    status_code: Optional[int] = None
    reason: Optional[str] = None

    @property
    def gone(self) -> bool:
        return not self.ok and self.status_code in GONE_STATUS_CODES


@dataclass
class BroadcastSummary:
    """Aggregate of a broadcast; partial failure is the normal case."""
    results: list[DispatchResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.ok)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.ok)

    @property
    def gone_endpoints(self) -> list[str]:
        return [r.endpoint for r in self.results if r.gone]

    @property
    def attempted(self) -> int:
        return len(self.results)


class PushDispatcher:
    def __init__(
        self,
        delivery: PushDelivery,
        *,
        max_concurrency: int = 100,
        envelope: EnvelopeDefaults = EnvelopeDefaults(),
    ):
        self.delivery = delivery
        self.envelope = envelope
        self.semaphore = asyncio.Semaphore(max_concurrency)

    def prepare(self, payload: Union[str, bytes, dict, None]) -> bytes:
        """Turn a request payload into the bytes every target receives."""
        return to_envelope(parse_payload(payload), self.envelope)

    async def send_one(self, subscription: Subscription, payload: bytes) -> int:
        """Send to one subscription. Returns the status code or raises DeliveryError."""
        async with self.semaphore:
            return await self.delivery.deliver(subscription, payload)

    async def broadcast(
        self, payload: bytes, targets: Sequence[Subscription]
    ) -> BroadcastSummary:
        """Send the same payload to every target concurrently."""
        if not targets:
            return BroadcastSummary()

        results = await asyncio.gather(
            *(self._send_isolated(sub, payload) for sub in targets)
        )
        summary = BroadcastSummary(results=list(results))

        logger.info(
            "push.broadcast_complete",
            targets=summary.attempted,
            success=summary.success_count,
            failure=summary.failure_count,
            gone=len(summary.gone_endpoints),
        )
        return summary

    async def _send_isolated(
        self, subscription: Subscription, payload: bytes
    ) -> DispatchResult:
        try:
            status_code = await self.send_one(subscription, payload)
        except DeliveryError as e:
            logger.warning(
                "push.send_failed",
                endpoint=subscription.short_endpoint(),
                status_code=e.status_code,
                error=e.message,
            )
            return DispatchResult(
                endpoint=subscription.endpoint,
                ok=False,
                status_code=e.status_code,
                reason=e.message,
            )
        except Exception as e:
            # A misbehaving delivery binding still only fails its own target
            logger.exception(
                "push.send_crashed", endpoint=subscription.short_endpoint()
            )
            return DispatchResult(
                endpoint=subscription.endpoint, ok=False, reason=str(e)
            )
        return DispatchResult(
            endpoint=subscription.endpoint, ok=True, status_code=status_code
        )
