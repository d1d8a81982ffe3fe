"""VAPID key pair resolution and generation.

Learn: The browser subscribes with our public key (applicationServerKey),
so the pair must stay stable for the life of every subscription.
Resolution order:

1. VAPID_PUBLIC_KEY / VAPID_PRIVATE_KEY from settings
2. The key file (PUSHRELAY_VAPID_KEYS_FILE, default vapid-keys.json)
3. Development only: generate a fresh pair and try to save it

Keys use the browser PushManager format: base64url without padding,
public = uncompressed P-256 point, private = raw 32-byte scalar.
pywebpush accepts that private key string directly.
"""

import base64
import json
from dataclasses import dataclass
from pathlib import Path

import structlog
from cryptography.hazmat.primitives import serialization
from py_vapid import Vapid01

from pushrelay.config import Settings

logger = structlog.get_logger()


class VapidConfigError(Exception):
    pass


@dataclass(frozen=True)
class VapidKeys:
    public_key: str
    private_key: str

    def to_json(self) -> dict[str, str]:
        """Key file shape, compatible with web-push's generateVAPIDKeys()."""
        return {"publicKey": self.public_key, "privateKey": self.private_key}

    @classmethod
    def from_json(cls, data: dict) -> "VapidKeys":
        try:
            return cls(public_key=data["publicKey"], private_key=data["privateKey"])
        except (KeyError, TypeError) as e:
            raise VapidConfigError(f"Malformed VAPID key file: missing {e}") from e


def _b64url(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def generate_vapid_keys() -> VapidKeys:
    """Generate a new P-256 VAPID key pair."""
    vapid = Vapid01()
    vapid.generate_keys()

    private_bytes = vapid.private_key.private_numbers().private_value.to_bytes(32, "big")
    public_bytes = vapid.public_key.public_bytes(
        encoding=serialization.Encoding.X962,
        format=serialization.PublicFormat.UncompressedPoint,
    )
    return VapidKeys(public_key=_b64url(public_bytes), private_key=_b64url(private_bytes))


def save_vapid_keys(keys: VapidKeys, path: Path) -> None:
    path.write_text(json.dumps(keys.to_json(), indent=2))


def load_vapid_keys(settings: Settings) -> VapidKeys:
    """Resolve the server's VAPID key pair (see module docstring for order)."""
    if settings.vapid_public_key and settings.vapid_private_key:
        logger.info("vapid.loaded", source="environment")
        return VapidKeys(
            public_key=settings.vapid_public_key,
            private_key=settings.vapid_private_key.replace("\\n", "\n"),
        )

    path = Path(settings.vapid_keys_file)
    if path.exists():
        try:
            data = json.loads(path.read_text())
        except ValueError as e:
            raise VapidConfigError(f"VAPID key file {path} is not valid JSON") from e
        logger.info("vapid.loaded", source="file", path=str(path))
        return VapidKeys.from_json(data)

    if settings.environment != "development":
        # A fresh pair on every restart would orphan every existing subscription
        raise VapidConfigError(
            "No VAPID keys configured. Set VAPID_PUBLIC_KEY and VAPID_PRIVATE_KEY, "
            "or generate a key file with: pushrelay vapid generate --write"
        )

    keys = generate_vapid_keys()
    try:
        save_vapid_keys(keys, path)
        logger.info("vapid.generated", path=str(path))
    except OSError as e:
        # Read-only filesystems (serverless); keys live for this process only
        logger.warning("vapid.generated_not_saved", path=str(path), error=str(e))
    return keys
