"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance with its own registry, dispatcher and notification service on
app.state. Handlers reach them through the request, so each app (and
each test) gets an isolated, empty subscription set.

Run with the factory flag:
    uvicorn pushrelay.main:create_app --factory --port 3000
or simply:
    pushrelay serve
"""

from contextlib import asynccontextmanager
from typing import Optional

import structlog
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pushrelay import __version__
from pushrelay.api import api_router
from pushrelay.config import Settings, settings as default_settings
from pushrelay.push.delivery import PushDelivery, WebPushDelivery
from pushrelay.push.dispatcher import PushDispatcher
from pushrelay.push.payload import EnvelopeDefaults
from pushrelay.push.reconciler import ExpiryReconciler
from pushrelay.push.registry import SubscriptionRegistry
from pushrelay.push.vapid import VapidKeys, load_vapid_keys
from pushrelay.services.notification_service import NotificationService

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: The registry is created empty in create_app(); shutdown
    discards it. Nothing is persisted.
    """
    cfg: Settings = app.state.settings
    logger.info(
        "pushrelay.starting",
        version=__version__,
        environment=cfg.environment,
        port=cfg.port,
        vapid_public_key=app.state.vapid_keys.public_key[:16] + "...",
    )

    yield

    remaining = await app.state.registry.count()
    await app.state.registry.clear()
    app.state.delivery.close()
    logger.info("pushrelay.shutdown", discarded_subscriptions=remaining)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed request bodies are client errors: 400, not FastAPI's 422."""
    details = []
    for error in exc.errors():
        field = " -> ".join(str(loc) for loc in error.get("loc", []))
        details.append(f"{field}: {error.get('msg', 'Validation error')}")

    logger.warning(
        "http.validation_error",
        method=request.method,
        path=request.url.path,
        errors=details,
    )
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"message": "Invalid request", "details": details},
    )


def create_app(
    *,
    settings: Optional[Settings] = None,
    delivery: Optional[PushDelivery] = None,
    vapid_keys: Optional[VapidKeys] = None,
) -> FastAPI:
    """Build and return the FastAPI application.

    delivery and vapid_keys default to the pywebpush binding and the
    configured (or generated) key pair; tests pass their own.
    """
    cfg = settings or default_settings
    keys = vapid_keys or load_vapid_keys(cfg)
    if delivery is None:
        delivery = WebPushDelivery(
            keys.private_key,
            cfg.vapid_subject,
            ttl=cfg.push_ttl_seconds,
            timeout=cfg.push_timeout_seconds,
            max_workers=cfg.broadcast_max_concurrency,
        )

    registry = SubscriptionRegistry()
    dispatcher = PushDispatcher(
        delivery,
        max_concurrency=cfg.broadcast_max_concurrency,
        envelope=EnvelopeDefaults(
            title=cfg.notification_title,
            icon=cfg.notification_icon,
            badge=cfg.notification_badge,
        ),
    )

    app = FastAPI(
        title="Push Relay",
        description="Web push subscription registry and notification relay",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.vapid_keys = keys
    app.state.registry = registry
    app.state.delivery = delivery
    app.state.dispatcher = dispatcher
    app.state.notifications = NotificationService(
        registry, dispatcher, ExpiryReconciler(registry)
    )

    # ── Middleware stack ──────────────────────────────────────
    # Request flow: RequestId → CORS → handler

    from pushrelay.middleware.request_id import RequestIdMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestIdMiddleware)

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.include_router(api_router)

    return app
