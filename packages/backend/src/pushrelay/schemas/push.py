"""Pydantic schemas for the push API.

Learn: Field names follow the browser's PushSubscription.toJSON() shape
(camelCase expirationTime) on the wire, and snake_case in Python via
aliases. Unknown fields are ignored, so the raw toJSON() output can be
posted as-is.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field

from pushrelay.push.models import Subscription, SubscriptionKeys


# ─── Subscription (browser → server) ───────────────────


class SubscriptionKeysIn(BaseModel):
    p256dh: str = Field(..., min_length=1)
    auth: str = Field(..., min_length=1)


class SubscriptionIn(BaseModel):
    """A PushSubscription as serialized by the browser."""
    endpoint: str = Field(..., min_length=1, description="Push service URL")
    keys: SubscriptionKeysIn
    expiration_time: Optional[Union[int, float]] = Field(None, alias="expirationTime")

    model_config = {"populate_by_name": True}

    def to_record(self) -> Subscription:
        return Subscription(
            endpoint=self.endpoint,
            keys=SubscriptionKeys(p256dh=self.keys.p256dh, auth=self.keys.auth),
            expiration_time=self.expiration_time,
        )


class UnsubscribeRequest(BaseModel):
    """Only the endpoint matters; a missing one is a no-op."""
    endpoint: Optional[str] = None


# ─── Send requests ─────────────────────────────────────


class SendNotificationRequest(BaseModel):
    subscription: SubscriptionIn
    payload: Union[dict, str] = Field(
        ..., description="JSON object sent as-is, or text wrapped into a notification"
    )


class BroadcastRequest(BaseModel):
    payload: Union[dict, str]


# ─── Responses ─────────────────────────────────────────


class SubscribeResponse(BaseModel):
    message: str
    total_subscriptions: int = Field(..., alias="totalSubscriptions")

    model_config = {"populate_by_name": True}


class MessageResponse(BaseModel):
    message: str


class SendNotificationResponse(BaseModel):
    message: str
    status_code: int = Field(..., alias="statusCode")

    model_config = {"populate_by_name": True}


class BroadcastResponse(BaseModel):
    message: str
    success_count: int = Field(..., alias="successCount")
    failure_count: int = Field(..., alias="failureCount")
    total_subscriptions: int = Field(..., alias="totalSubscriptions")

    model_config = {"populate_by_name": True}


class SubscriptionSummary(BaseModel):
    """Public view of a subscription — keys deliberately omitted."""
    endpoint: str
    expiration_time: Optional[Union[int, float]] = Field(None, alias="expirationTime")

    model_config = {"populate_by_name": True}


class SubscriptionList(BaseModel):
    count: int
    subscriptions: list[SubscriptionSummary]
