"""
Task-queue examples for the stack guide.

Importing the package makes sure the shared Celery app exists before
any ``shared_task`` in :mod:`taskqueue.tasks` is bound to it.
"""

from guide_common.messaging import celery_app as _celery_app  # noqa: F401
