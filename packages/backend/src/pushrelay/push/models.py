"""Subscription record — one browser's push endpoint and encryption keys."""

from dataclasses import dataclass
from typing import Any, Optional, Union


@dataclass(frozen=True)
class SubscriptionKeys:
    p256dh: str
    auth: str


@dataclass(frozen=True)
class Subscription:
    """A push subscription as issued by the browser's PushManager.

    Identity is the endpoint: two records with the same endpoint describe
    the same installed client, even if the keys have rotated.
    """

    endpoint: str
    keys: SubscriptionKeys
    expiration_time: Optional[Union[int, float]] = None

    def to_subscription_info(self) -> dict[str, Any]:
        """Return dict in the format expected by pywebpush."""
        return {
            "endpoint": self.endpoint,
            "keys": {
                "p256dh": self.keys.p256dh,
                "auth": self.keys.auth,
            },
        }

    def short_endpoint(self) -> str:
        """Endpoint truncated for log lines."""
        return truncate_endpoint(self.endpoint)


def truncate_endpoint(endpoint: str, limit: int = 50) -> str:
    if len(endpoint) <= limit:
        return endpoint
    return endpoint[:limit] + "..."
