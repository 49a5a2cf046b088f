"""
Celery application configuration for the stack guide.

Defines the shared Celery app instance used by the task-queue examples
and by the alert-redelivery task. RabbitMQ is the broker and Redis
stores results, the pairing the guide recommends.

Worker / scheduler / monitor commands::

    celery -A guide_common.messaging.celery_app worker --loglevel=info -Q default,maintenance
    celery -A guide_common.messaging.celery_app beat --loglevel=info
    celery -A guide_common.messaging.celery_app flower --port=5555
"""

from __future__ import annotations

from typing import Any

from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from guide_common.config import Settings, get_settings
from guide_common.logging import configure_logging


def parse_cron(expression: str) -> crontab:
    """Build a ``crontab`` from a five-field cron *expression*.

    Raises:
        ValueError: If the expression does not have exactly five fields.
    """
    parts = expression.split()
    if len(parts) != 5:
        raise ValueError(f"Cron expression must have 5 fields, got {len(parts)}: {expression!r}")
    return crontab(
        minute=parts[0],
        hour=parts[1],
        day_of_month=parts[2],
        month_of_year=parts[3],
        day_of_week=parts[4],
    )


def build_beat_schedule(settings: Settings) -> dict[str, dict[str, Any]]:
    """Return the periodic-task table for Celery beat."""
    return {
        "cleanup-stale-sessions": {
            "task": "taskqueue.cleanup_stale_sessions",
            "schedule": parse_cron(settings.session_cleanup_cron),
            "options": {"queue": "maintenance"},
        },
        "snapshot-leaderboard": {
            "task": "taskqueue.snapshot_leaderboard",
            "schedule": float(settings.leaderboard_snapshot_interval_s),
            "args": ("global", 10),
            "options": {"queue": "maintenance"},
        },
    }


def create_celery(settings: Settings | None = None) -> Celery:
    """Build the Celery app from *settings* (defaults to the global settings)."""
    settings = settings or get_settings()
    app = Celery(
        "guide",
        broker=settings.celery_broker_url,
        backend=settings.celery_result_backend,
    )
    app.conf.update(
        task_serializer="json",
        accept_content=["json"],
        result_serializer="json",
        timezone="UTC",
        enable_utc=True,
        task_track_started=True,
        task_acks_late=True,
        task_reject_on_worker_lost=True,
        worker_prefetch_multiplier=1,
        result_expires=3600,
        task_default_queue="default",
        task_routes={
            "taskqueue.cleanup_stale_sessions": {"queue": "maintenance"},
            "taskqueue.snapshot_leaderboard": {"queue": "maintenance"},
        },
    )
    app.conf.beat_schedule = build_beat_schedule(settings)
    return app


celery = create_celery()

# Task modules register themselves through ``shared_task``.
celery.autodiscover_tasks(["taskqueue"], related_name="tasks")
celery.autodiscover_tasks(["monitoring.notifications"], related_name="retry")


@worker_process_init.connect
def _init_worker_process(**_: Any) -> None:
    """Per-process set-up for prefork workers: structured logs and Sentry."""
    from monitoring.setup import init_sentry

    settings = get_settings()
    configure_logging(settings.log_level, settings.log_format)
    init_sentry(settings)
