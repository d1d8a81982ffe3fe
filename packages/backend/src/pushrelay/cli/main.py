"""Push Relay CLI — run the server, manage VAPID keys, poke a running relay.

Usage:
    pushrelay serve                          # Run the relay with uvicorn
    pushrelay vapid generate [--write]       # New VAPID key pair
    pushrelay health                         # Server status + subscription count
    pushrelay subscriptions                  # Registered endpoints
    pushrelay broadcast "Table 5 order ready"
    pushrelay send subscription.json '{"title": "Hi", "body": "There"}'
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
import sys
from pathlib import Path

import click
import httpx

from pushrelay import __version__

# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:3000"


def _api_url() -> str:
    return os.environ.get("PUSHRELAY_API_URL", DEFAULT_API_URL).rstrip("/")


def _client() -> httpx.AsyncClient:
    """Build an async HTTP client pointed at the relay."""
    return httpx.AsyncClient(base_url=_api_url(), timeout=30.0)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run(coro):
    """Run an async coroutine from a synchronous Click handler.

    Offloads to a thread when an event loop is already running
    (e.g. CliRunner inside an async test).
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(message: str) -> None:
    click.secho(f"Error: {message}", fg="red", err=True)
    sys.exit(1)


def _check(r: httpx.Response) -> None:
    if r.is_error:
        _fail(f"{r.status_code} {r.text}")


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="pushrelay")
def main():
    """Push Relay — web push subscription registry and notification relay."""


# ---------------------------------------------------------------------------
# pushrelay serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", help="Bind address (default: PUSHRELAY_HOST)")
@click.option("--port", type=int, help="Port (default: PUSHRELAY_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool):
    """Run the relay server."""
    import uvicorn

    from pushrelay.config import settings

    uvicorn.run(
        "pushrelay.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# pushrelay vapid
# ---------------------------------------------------------------------------


@main.group()
def vapid():
    """VAPID key management."""


@vapid.command("generate")
@click.option("--write", is_flag=True, help="Save to the key file instead of printing env lines")
@click.option("--path", type=click.Path(dir_okay=False, path_type=Path),
              help="Key file path (default: PUSHRELAY_VAPID_KEYS_FILE)")
@click.option("--force", is_flag=True, help="Overwrite an existing key file")
def vapid_generate(write: bool, path: Path | None, force: bool):
    """Generate a new VAPID key pair.

    Rotating keys invalidates every existing subscription: browsers must
    subscribe again with the new public key.
    """
    from pushrelay.config import settings
    from pushrelay.push.vapid import generate_vapid_keys, save_vapid_keys

    keys = generate_vapid_keys()

    if not write:
        click.echo(f"VAPID_PUBLIC_KEY={keys.public_key}")
        click.echo(f"VAPID_PRIVATE_KEY={keys.private_key}")
        return

    target = path or Path(settings.vapid_keys_file)
    if target.exists() and not force:
        _fail(f"{target} already exists (use --force to overwrite)")
    save_vapid_keys(keys, target)
    click.secho(f"Wrote VAPID keys to {target}", fg="green")
    click.echo(f"Public key: {keys.public_key}")


# ---------------------------------------------------------------------------
# pushrelay health
# ---------------------------------------------------------------------------


@main.command()
def health():
    """Show relay status and subscription count."""
    _run(_health_impl())


async def _health_impl():
    async with _client() as c:
        try:
            r = await c.get("/health")
        except httpx.ConnectError:
            _fail(f"Relay not reachable at {_api_url()}")
        _check(r)
        data = r.json()
    click.secho(f"Status:        {data['status']}", fg="green")
    click.echo(f"Subscriptions: {data['subscriptions']}")
    click.echo(f"Timestamp:     {data['timestamp']}")


# ---------------------------------------------------------------------------
# pushrelay subscriptions
# ---------------------------------------------------------------------------


@main.command()
def subscriptions():
    """List registered subscription endpoints."""
    _run(_subscriptions_impl())


async def _subscriptions_impl():
    async with _client() as c:
        r = await c.get("/api/subscriptions")
        _check(r)
        data = r.json()

    click.secho(f"{data['count']} subscription(s)", bold=True)
    for sub in data["subscriptions"]:
        expires = sub.get("expirationTime")
        suffix = f"  (expires {expires})" if expires else ""
        click.echo(f"  {sub['endpoint']}{suffix}")


# ---------------------------------------------------------------------------
# pushrelay broadcast / send
# ---------------------------------------------------------------------------


@main.command()
@click.argument("payload")
def broadcast(payload: str):
    """Send PAYLOAD to every registered subscription.

    PAYLOAD is plain text (wrapped into a notification) or a JSON object.
    """
    _run(_broadcast_impl(payload))


async def _broadcast_impl(payload: str):
    async with _client() as c:
        r = await c.post("/api/broadcast", json={"payload": payload})
        _check(r)
        data = r.json()

    color = "green" if data["failureCount"] == 0 else "yellow"
    click.secho(data["message"], fg=color)
    click.echo(f"  Sent:      {data['successCount']}")
    click.echo(f"  Failed:    {data['failureCount']}")
    click.echo(f"  Remaining: {data['totalSubscriptions']}")


@main.command()
@click.argument("subscription", type=click.File("r"))
@click.argument("payload")
def send(subscription, payload: str):
    """Send PAYLOAD to the subscription in a JSON file.

    SUBSCRIPTION is a file holding PushSubscription.toJSON() output
    ("-" reads stdin).
    """
    try:
        sub = json.load(subscription)
    except ValueError as e:
        _fail(f"Subscription file is not valid JSON: {e}")
    _run(_send_impl(sub, payload))


async def _send_impl(sub: dict, payload: str):
    async with _client() as c:
        r = await c.post(
            "/api/sendNotification",
            json={"subscription": sub, "payload": payload},
        )
        _check(r)
        data = r.json()
    click.secho(f"{data['message']} (status {data['statusCode']})", fg="green")


if __name__ == "__main__":
    main()
