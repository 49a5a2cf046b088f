"""Look up the state of a Celery task by id."""

from __future__ import annotations

from celery import Celery
from celery.result import AsyncResult

from guide_common.messaging.celery_app import celery
from guide_common.models.task import TaskStatus


def get_task_status(task_id: str, app: Celery | None = None) -> TaskStatus:
    """Return a :class:`TaskStatus` snapshot read from the result backend.

    Unknown ids report ``PENDING``; Celery cannot tell them apart from
    tasks that have not started.
    """
    result = AsyncResult(task_id, app=app or celery)
    ready = result.ready()
    successful = ready and result.successful()
    value = result.result if successful else None
    error = None
    if ready and not successful and result.result is not None:
        error = f"{type(result.result).__name__}: {result.result}"
    return TaskStatus(
        task_id=task_id,
        state=result.state,
        ready=ready,
        successful=successful,
        result=value,
        error=error,
    )
