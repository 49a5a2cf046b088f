"""
Health check API router.

Aggregated health endpoint returning the status of Redis, the message
broker and the Sentry SDK.
"""

from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool

from broker.connection import health_check as broker_health_check

router = APIRouter(tags=["health"])

_OK_STATES = ("healthy", "not_configured", "enabled", "disabled")


class HealthResponse(BaseModel):
    status: str
    services: dict[str, str]


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request) -> HealthResponse:
    services: dict[str, str] = {}
    state = request.app.state

    redis = getattr(state, "redis", None)
    if redis is None:
        services["redis"] = "not_configured"
    else:
        try:
            await redis.ping()
            services["redis"] = "healthy"
        except Exception:  # noqa: BLE001
            services["redis"] = "unhealthy"

    connection = getattr(state, "broker", None)
    if connection is None:
        services["broker"] = "not_configured"
    else:
        ok = await run_in_threadpool(broker_health_check, connection)
        services["broker"] = "healthy" if ok else "unhealthy"

    services["sentry"] = "enabled" if getattr(state, "sentry_enabled", False) else "disabled"

    overall = "healthy" if all(v in _OK_STATES for v in services.values()) else "degraded"
    return HealthResponse(status=overall, services=services)
