"""
Shared Pydantic data models for the stack guide.

Contains the cross-package models: alerts built from Sentry webhooks
and the task-status view returned for Celery results.
"""

from guide_common.models.alert import Alert, AlertLevel
from guide_common.models.task import TaskStatus

__all__ = [
    "Alert",
    "AlertLevel",
    "TaskStatus",
]
