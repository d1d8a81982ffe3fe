"""Push Relay — web-push notification backend.

Keeps browser push subscriptions in memory and relays encrypted,
VAPID-authenticated notifications to the vendors' push services,
one subscription at a time or broadcast to all of them.
"""

__version__ = "0.1.0"
