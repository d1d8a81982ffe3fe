#!/usr/bin/env python3
"""
Push Relay walkthrough — the restaurant "order ready" flow.

Fetches the VAPID key → registers a subscription → sends a direct push
→ broadcasts to every subscriber → shows what is still registered.

Run with:
    python examples/order_ready.py subscription.json

where subscription.json is PushSubscription.toJSON() copied from the
browser console after subscribing on the demo page. Without a file, a
made-up subscription is registered; its sends fail, which shows how
the relay reports failures.

Requires: pip install httpx
Relay must be running: pushrelay serve  (http://localhost:3000)
"""

import json
import sys

import httpx

BASE = "http://localhost:3000"

DUMMY_SUBSCRIPTION = {
    "endpoint": "https://updates.push.services.mozilla.com/wpush/v2/demo-not-a-real-endpoint",
    "expirationTime": None,
    "keys": {
        "p256dh": "BNcRdreALRFXTkOOUHK1EtK2wtaz5Ry4YfYCA_0QTpQtUbVlUls0VJXg7A8u-Ts1XbjhazAkj7I99e8QcYP7DkM",
        "auth": "tBHItJI5svbpez7KI4CCXg",
    },
}


def main():
    client = httpx.Client(base_url=BASE, timeout=30)

    # ── Health check ──────────────────────────────────────────────
    print("Checking relay health...")
    try:
        resp = client.get("/health")
    except httpx.ConnectError:
        print(f"Relay not reachable at {BASE}. Start it with: pushrelay serve")
        sys.exit(1)
    health = resp.json()
    print(f"  Status:        {health['status']}")
    print(f"  Subscriptions: {health['subscriptions']}")

    # ── VAPID key ─────────────────────────────────────────────────
    print("\n1. Fetching VAPID public key (applicationServerKey)...")
    resp = client.get("/api/vapidPublicKey")
    print(f"   {resp.text[:32]}...")

    # ── Subscribe ─────────────────────────────────────────────────
    if len(sys.argv) > 1:
        with open(sys.argv[1]) as f:
            subscription = json.load(f)
        print(f"\n2. Registering subscription from {sys.argv[1]}...")
    else:
        subscription = DUMMY_SUBSCRIPTION
        print("\n2. Registering a made-up subscription (sends will fail)...")
    resp = client.post("/api/subscribe", json=subscription)
    assert resp.status_code == 201, f"Failed: {resp.text}"
    print(f"   Total subscriptions: {resp.json()['totalSubscriptions']}")

    # ── Direct send ───────────────────────────────────────────────
    print("\n3. Sending a structured notification to this subscription...")
    resp = client.post("/api/sendNotification", json={
        "subscription": subscription,
        "payload": json.dumps({
            "title": "Order #42",
            "body": "Your order has been received",
            "data": {"order": 42},
        }),
    })
    if resp.status_code == 200:
        print(f"   Sent (push service status {resp.json()['statusCode']})")
    else:
        print(f"   {resp.status_code}: {resp.text}")

    # ── Broadcast ─────────────────────────────────────────────────
    print("\n4. Broadcasting plain text to everyone...")
    resp = client.post("/api/broadcast", json={"payload": "Table 5 order ready"})
    result = resp.json()
    print(f"   {result['message']}: {result['successCount']} sent, "
          f"{result['failureCount']} failed, {result['totalSubscriptions']} remaining")

    # ── What's left ───────────────────────────────────────────────
    print("\n5. Registered endpoints:")
    resp = client.get("/api/subscriptions")
    for sub in resp.json()["subscriptions"]:
        print(f"   {sub['endpoint'][:70]}")

    # ── Clean up ──────────────────────────────────────────────────
    client.post("/api/unsubscribe", json=subscription)
    print("\nUnsubscribed. Done.")


if __name__ == "__main__":
    main()
