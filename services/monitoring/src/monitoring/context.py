"""Helpers for enriching Sentry events with user, tags and breadcrumbs."""

from __future__ import annotations

from typing import Any

import sentry_sdk
import structlog

logger = structlog.get_logger()


def set_user(user_id: str | int, **fields: Any) -> None:
    """Attach the current user to subsequent events (scrubbed in ``before_send``)."""
    sentry_sdk.set_user({"id": str(user_id), **fields})


def clear_user() -> None:
    sentry_sdk.set_user(None)


def tag_request(**tags: Any) -> None:
    """Set searchable tags (values are stringified by Sentry)."""
    for key, value in tags.items():
        sentry_sdk.set_tag(key, value)


def breadcrumb(message: str, category: str = "app", level: str = "info", **data: Any) -> None:
    sentry_sdk.add_breadcrumb(message=message, category=category, level=level, data=data)


def capture_with_context(
    exc: BaseException,
    *,
    tags: dict[str, Any] | None = None,
    **extra: Any,
) -> str | None:
    """Report *exc* with *extra* and *tags* applied to this event only.

    The scope is forked, so nothing set here leaks into later events.

    Returns:
        The Sentry event id, or ``None`` when the SDK is disabled or the
        event was dropped by ``before_send``.
    """
    with sentry_sdk.new_scope() as scope:
        for key, value in extra.items():
            scope.set_extra(key, value)
        for key, value in (tags or {}).items():
            scope.set_tag(key, value)
        event_id = sentry_sdk.capture_exception(exc)
    logger.info("exception_captured", error=str(exc), event_id=event_id)
    return event_id
