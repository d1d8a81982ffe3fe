"""Application configuration via environment variables.

Uses pydantic-settings to load config from env vars with PUSHRELAY_ prefix.
The VAPID key pair can also come from the bare VAPID_PUBLIC_KEY /
VAPID_PRIVATE_KEY variables most push tooling already uses.

Learn: Delivery policy (timeout, TTL, fan-out bound) lives here rather than
in the dispatcher so operators can tune it without code changes.
"""

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """All app configuration. Set via PUSHRELAY_* env vars."""

    # Server
    environment: str = "development"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 3000

    # CORS: the demo page may be served from anywhere
    cors_origins: list[str] = ["*"]

    # VAPID application identity
    vapid_public_key: str = Field(
        "",
        validation_alias=AliasChoices("PUSHRELAY_VAPID_PUBLIC_KEY", "VAPID_PUBLIC_KEY"),
    )
    vapid_private_key: str = Field(
        "",
        validation_alias=AliasChoices("PUSHRELAY_VAPID_PRIVATE_KEY", "VAPID_PRIVATE_KEY"),
    )
    vapid_subject: str = "mailto:simple-push-demo@example.com"
    vapid_keys_file: str = "vapid-keys.json"

    # Delivery policy
    push_timeout_seconds: float = 10.0
    push_ttl_seconds: int = 2419200  # 4 weeks, same as the web-push default
    broadcast_max_concurrency: int = 100

    # Envelope used when a payload is plain text
    notification_title: str = "Push Notification"
    notification_icon: str = "https://via.placeholder.com/192x192.png?text=📬"
    notification_badge: str = "https://via.placeholder.com/96x96.png?text=🔔"

    model_config = {"env_prefix": "PUSHRELAY_", "populate_by_name": True}

    @model_validator(mode="after")
    def validate_vapid_settings(self):
        """Keys come as a pair, and the subject must be a contact URI."""
        if bool(self.vapid_public_key) != bool(self.vapid_private_key):
            raise ValueError(
                "VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY must be set together"
            )
        if not self.vapid_subject.startswith(("mailto:", "https://")):
            raise ValueError(
                "PUSHRELAY_VAPID_SUBJECT must be a mailto: or https: URI"
            )
        if self.broadcast_max_concurrency < 1:
            raise ValueError("PUSHRELAY_BROADCAST_MAX_CONCURRENCY must be >= 1")
        return self


# Singleton, import this everywhere
settings = Settings()
