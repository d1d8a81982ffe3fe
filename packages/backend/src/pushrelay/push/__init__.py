"""Push core — subscription registry, dispatcher, and expiry reconciler.

Learn: Leaves first:

    Subscription          value type (endpoint + keys)
    SubscriptionRegistry  in-memory set, keyed by endpoint
    PushDelivery          external push-send capability (pywebpush)
    PushDispatcher        send_one / concurrent broadcast
    ExpiryReconciler      prunes 404/410 endpoints from the registry
"""

from pushrelay.push.delivery import (
    DeliveryError,
    PushDelivery,
    SubscriptionGoneError,
    WebPushDelivery,
)
from pushrelay.push.dispatcher import BroadcastSummary, DispatchResult, PushDispatcher
from pushrelay.push.models import Subscription, SubscriptionKeys
from pushrelay.push.payload import (
    EnvelopeDefaults,
    RawText,
    StructuredMessage,
    parse_payload,
    to_envelope,
)
from pushrelay.push.reconciler import ExpiryReconciler
from pushrelay.push.registry import SubscriptionRegistry

__all__ = [
    "BroadcastSummary",
    "DeliveryError",
    "DispatchResult",
    "EnvelopeDefaults",
    "ExpiryReconciler",
    "PushDelivery",
    "PushDispatcher",
    "RawText",
    "StructuredMessage",
    "Subscription",
    "SubscriptionGoneError",
    "SubscriptionKeys",
    "SubscriptionRegistry",
    "WebPushDelivery",
    "parse_payload",
    "to_envelope",
]
