"""Notification payload handling — parse once, then build the wire envelope.

Learn: The service worker on the other end tries JSON.parse() on the
decrypted text and falls back to using the whole text as the body.
We mirror that decision on the server, explicitly:

    parse_payload(raw)  ->  StructuredMessage | RawText
    to_envelope(parsed) ->  UTF-8 bytes sent to every target

A structured message (a JSON object) is forwarded byte-for-byte.
Anything else becomes the body of a default envelope with title,
icon and badge filled in, so the worker always gets a displayable
notification.
"""

import json
from dataclasses import dataclass
from typing import Any, Union


@dataclass(frozen=True)
class StructuredMessage:
    """Payload that already is a JSON object; sent unchanged."""
    text: str
    data: dict[str, Any]


@dataclass(frozen=True)
class RawText:
    """Payload that is not a JSON object; wrapped before sending."""
    text: str


ParsedPayload = Union[StructuredMessage, RawText]


@dataclass(frozen=True)
class EnvelopeDefaults:
    title: str = "Push Notification"
    icon: str = "https://via.placeholder.com/192x192.png?text=📬"
    badge: str = "https://via.placeholder.com/96x96.png?text=🔔"


def parse_payload(payload: Union[str, bytes, dict, None]) -> ParsedPayload:
    """Classify a payload as a structured message or raw text.

    Accepts the text as received over HTTP, UTF-8 bytes, or an already
    decoded JSON object. JSON scalars and arrays ("123", "[1]") count as
    raw text: the worker can only display an object's title/body.
    """
    if payload is None:
        return RawText("")
    if isinstance(payload, dict):
        return StructuredMessage(text=json.dumps(payload, ensure_ascii=False), data=payload)
    if isinstance(payload, bytes):
        payload = payload.decode("utf-8", errors="replace")

    try:
        data = json.loads(payload)
    except ValueError:
        return RawText(payload)
    if isinstance(data, dict):
        return StructuredMessage(text=payload, data=data)
    return RawText(payload)


def to_envelope(parsed: ParsedPayload, defaults: EnvelopeDefaults = EnvelopeDefaults()) -> bytes:
    """Render the bytes handed to the push delivery capability."""
    if isinstance(parsed, StructuredMessage):
        return parsed.text.encode("utf-8")

    envelope = {
        "title": defaults.title,
        "body": parsed.text,
        "icon": defaults.icon,
        "badge": defaults.badge,
    }
    return json.dumps(envelope, ensure_ascii=False).encode("utf-8")
