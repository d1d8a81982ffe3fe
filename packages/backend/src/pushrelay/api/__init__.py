"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Paths are fixed by the browser client (/api/subscribe etc.) and
the platform health probe (/health), so there is no version prefix.
No auth — this is a demo relay, same as the page that calls it.
"""

from fastapi import APIRouter

from pushrelay.api.health import router as health_router
from pushrelay.api.push import router as push_router

api_router = APIRouter()

api_router.include_router(health_router, tags=["health"])
api_router.include_router(push_router, tags=["push"])
