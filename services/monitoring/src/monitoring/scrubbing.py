"""
Sensitive-data scrubbing for Sentry events.

Sentry's ``send_default_pii=False`` keeps IPs and cookies out of events,
but application data attached to requests, ``extra`` and breadcrumbs is
sent as-is. These hooks mask anything whose key looks sensitive before
the event leaves the process.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qsl, urlencode

import structlog
from starlette.exceptions import HTTPException

logger = structlog.get_logger()

FILTERED = "[Filtered]"

# Matched as substrings of the key after lower-casing and mapping "-" and " " to "_".
SENSITIVE_KEYS: tuple[str, ...] = (
    "password",
    "passwd",
    "secret",
    "token",
    "api_key",
    "apikey",
    "authorization",
    "cookie",
    "session",
    "credit_card",
    "card_number",
    "cvv",
    "ssn",
)

# Breadcrumbs for these paths are noise (load balancer health checks and scrapers).
_QUIET_PATHS: tuple[str, ...] = ("/health", "/metrics")


def is_sensitive(key: Any) -> bool:
    normalized = str(key).lower().replace("-", "_").replace(" ", "_")
    return any(marker in normalized for marker in SENSITIVE_KEYS)


def scrub(data: Any) -> Any:
    """Return a copy of *data* with sensitive values replaced by ``[Filtered]``.

    Dicts are walked recursively, lists element by element; other values
    are returned unchanged.
    """
    if isinstance(data, dict):
        return {
            key: FILTERED if is_sensitive(key) else scrub(value)
            for key, value in data.items()
        }
    if isinstance(data, list):
        return [scrub(item) for item in data]
    return data


def _scrub_query_string(query: Any) -> Any:
    if not isinstance(query, str) or not query:
        return scrub(query)
    pairs = parse_qsl(query, keep_blank_values=True)
    return urlencode([(k, FILTERED if is_sensitive(k) else v) for k, v in pairs])


def _is_ignored(hint: dict[str, Any] | None) -> bool:
    """Client errors (4xx) are expected behaviour, not bugs."""
    exc_info = (hint or {}).get("exc_info")
    if not exc_info:
        return False
    exc = exc_info[1]
    return isinstance(exc, HTTPException) and exc.status_code < 500


def before_send(event: dict[str, Any], hint: dict[str, Any] | None) -> dict[str, Any] | None:
    """``before_send`` hook: drop ignored errors, scrub everything else."""
    if _is_ignored(hint):
        logger.debug("sentry_event_dropped", reason="client_error")
        return None

    request = event.get("request")
    if isinstance(request, dict):
        for field in ("data", "headers", "env"):
            if field in request:
                request[field] = scrub(request[field])
        if "cookies" in request:
            request["cookies"] = FILTERED
        if "query_string" in request:
            request["query_string"] = _scrub_query_string(request["query_string"])

    for field in ("extra", "contexts", "tags"):
        if field in event:
            event[field] = scrub(event[field])

    if isinstance(event.get("user"), dict):
        event["user"] = scrub(event["user"])

    crumbs = event.get("breadcrumbs")
    if isinstance(crumbs, dict) and isinstance(crumbs.get("values"), list):
        crumbs["values"] = [scrub(crumb) for crumb in crumbs["values"]]

    return event


def before_breadcrumb(crumb: dict[str, Any], hint: dict[str, Any] | None) -> dict[str, Any] | None:
    """``before_breadcrumb`` hook: skip health-check requests, scrub breadcrumb data."""
    data = crumb.get("data") or {}
    url = str(data.get("url", ""))
    if crumb.get("category") in ("httplib", "http") and url.endswith(_QUIET_PATHS):
        return None
    if data:
        crumb["data"] = scrub(data)
    return crumb
