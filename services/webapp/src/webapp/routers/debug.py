"""
Debug endpoints for checking the Sentry set-up.

Mounted only when ``enable_debug_routes`` is set.
"""

from __future__ import annotations

from fastapi import APIRouter

from monitoring.context import capture_with_context

router = APIRouter(prefix="/debug", tags=["debug"])


@router.get("/sentry")
async def trigger_error() -> None:
    """Raise an unhandled error; the FastAPI integration reports it."""
    1 / 0


@router.get("/sentry/handled")
async def capture_handled_error() -> dict[str, str | None]:
    """Report a caught error with extra context and return its event id."""
    try:
        {}["missing"]
    except KeyError as exc:
        event_id = capture_with_context(exc, tags={"source": "debug"}, reason="manual test")
    return {"event_id": event_id}
