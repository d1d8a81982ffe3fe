"""Health check endpoint.

Learn: No external dependencies to probe — the registry lives in
process memory — so health reports liveness plus the subscription count.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Request

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    count = await request.app.state.registry.count()
    return {
        "status": "OK",
        "subscriptions": count,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
