"""
Task status model for the stack guide.

A serialisable view over a Celery ``AsyncResult`` so the web app can
report progress without leaking Celery objects into responses.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class TaskStatus(BaseModel):
    """Snapshot of a Celery task's state.

    Attributes:
        task_id: Celery task identifier.
        state: Celery state name (``PENDING``, ``STARTED``, ``RETRY``,
            ``SUCCESS``, ``FAILURE`` …).
        ready: Whether the task has finished (successfully or not).
        successful: Whether the task finished successfully.
        result: Return value, only set on success.
        error: Exception type and message, only set on failure.
    """

    task_id: str
    state: str
    ready: bool = False
    successful: bool = False
    result: Any = None
    error: str | None = None
