"""
Sentry SDK initialisation.

Called once at process start by the web app lifespan and by Celery
workers (``worker_process_init``). An empty DSN leaves the SDK disabled,
which is what local development and the test suite rely on.
"""

from __future__ import annotations

import logging

import sentry_sdk
import structlog
from sentry_sdk.integrations import Integration
from sentry_sdk.integrations.celery import CeleryIntegration
from sentry_sdk.integrations.fastapi import FastApiIntegration
from sentry_sdk.integrations.logging import LoggingIntegration
from sentry_sdk.integrations.redis import RedisIntegration
from sentry_sdk.integrations.starlette import StarletteIntegration

from guide_common.config import Settings, get_settings

from .scrubbing import before_breadcrumb, before_send

logger = structlog.get_logger()


def build_integrations() -> list[Integration]:
    """Integrations for the guide's stack.

    Logging: ``INFO`` and above become breadcrumbs, ``ERROR`` and above
    become events.
    """
    return [
        StarletteIntegration(transaction_style="endpoint"),
        FastApiIntegration(transaction_style="endpoint"),
        CeleryIntegration(monitor_beat_tasks=True),
        RedisIntegration(),
        LoggingIntegration(level=logging.INFO, event_level=logging.ERROR),
    ]


def init_sentry(settings: Settings | None = None) -> bool:
    """Initialise the Sentry SDK from *settings*.

    Returns:
        ``True`` if the SDK was initialised, ``False`` when no DSN is set.
    """
    settings = settings or get_settings()
    if not settings.sentry_dsn:
        logger.info("sentry_disabled", reason="no_dsn")
        return False

    sentry_sdk.init(
        dsn=settings.sentry_dsn,
        environment=settings.sentry_environment,
        release=settings.sentry_release or None,
        traces_sample_rate=settings.sentry_traces_sample_rate,
        send_default_pii=settings.sentry_send_default_pii,
        before_send=before_send,
        before_breadcrumb=before_breadcrumb,
        integrations=build_integrations(),
    )
    logger.info(
        "sentry_initialized",
        environment=settings.sentry_environment,
        release=settings.sentry_release,
        traces_sample_rate=settings.sentry_traces_sample_rate,
    )
    return True
