"""Push API — subscription management and notification sending.

Learn: Routes mirror what the demo page's JavaScript calls:
- GET  /api/vapidPublicKey     → applicationServerKey for pushManager.subscribe()
- POST /api/subscribe          → store PushSubscription.toJSON()
- POST /api/unsubscribe        → forget it (idempotent)
- POST /api/sendNotification   → push to one given subscription
- POST /api/broadcast          → push to every stored subscription
- GET  /api/subscriptions      → endpoints only, never keys

Missing or malformed bodies fail validation and come back as 400
(see the handler in main.py). Unsubscribe is the exception: with no body
it is the same no-op as an unknown endpoint.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse

from pushrelay.push.delivery import DeliveryError
from pushrelay.schemas.push import (
    BroadcastRequest,
    BroadcastResponse,
    MessageResponse,
    SendNotificationRequest,
    SendNotificationResponse,
    SubscribeResponse,
    SubscriptionIn,
    SubscriptionList,
    SubscriptionSummary,
    UnsubscribeRequest,
)
from pushrelay.services.notification_service import NotificationService

router = APIRouter(prefix="/api")


def _get_service(request: Request) -> NotificationService:
    return request.app.state.notifications


@router.get("/vapidPublicKey", response_class=PlainTextResponse)
async def get_vapid_public_key(request: Request):
    """Raw VAPID public key, base64url encoded."""
    return request.app.state.vapid_keys.public_key


# ─── Subscription lifecycle ─────────────────────────────


@router.post("/subscribe", response_model=SubscribeResponse, status_code=201)
async def subscribe(
    body: SubscriptionIn,
    svc: NotificationService = Depends(_get_service),
):
    """Save a subscription, replacing any previous one for the same endpoint."""
    total = await svc.subscribe(body.to_record())
    return SubscribeResponse(message="Subscription saved", total_subscriptions=total)


@router.post("/unsubscribe", response_model=MessageResponse)
async def unsubscribe(
    body: Optional[UnsubscribeRequest] = None,
    svc: NotificationService = Depends(_get_service),
):
    """Forget a subscription. Unknown or missing endpoints are a no-op."""
    await svc.unsubscribe(body.endpoint if body else None)
    return MessageResponse(message="Unsubscribed")


@router.get("/subscriptions", response_model=SubscriptionList)
async def list_subscriptions(svc: NotificationService = Depends(_get_service)):
    """Registered subscriptions, for debugging. Keys are never returned."""
    subs = await svc.registry.snapshot()
    return SubscriptionList(
        count=len(subs),
        subscriptions=[
            SubscriptionSummary(endpoint=s.endpoint, expiration_time=s.expiration_time)
            for s in subs
        ],
    )


# ─── Sending ────────────────────────────────────────────


@router.post("/sendNotification", response_model=SendNotificationResponse)
async def send_notification(
    body: SendNotificationRequest,
    svc: NotificationService = Depends(_get_service),
):
    """Push one notification to the given subscription.

    On a 404/410 from the push service the subscription is also dropped
    from the registry before the 500 is returned.
    """
    try:
        status_code = await svc.send(body.subscription.to_record(), body.payload)
    except DeliveryError as e:
        return PlainTextResponse(
            f"Error sending notification: {e.message}", status_code=500
        )
    return SendNotificationResponse(
        message="Notification sent successfully", status_code=status_code
    )


@router.post("/broadcast", response_model=BroadcastResponse)
async def broadcast(
    body: BroadcastRequest,
    svc: NotificationService = Depends(_get_service),
):
    """Push one notification to every registered subscription."""
    report = await svc.broadcast(body.payload)
    return BroadcastResponse(
        message="No subscriptions available" if report.empty else "Broadcast complete",
        success_count=report.success_count,
        failure_count=report.failure_count,
        total_subscriptions=report.total_subscriptions,
    )
