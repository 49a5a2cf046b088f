"""
Alert notifications for Sentry issues.

Deduplicates and rate-limits alerts per project, fans them out to the
channels whose minimum level they meet, and hands failed deliveries to
a Celery retry task.
"""

from .channels import AlertChannel, SlackChannel, WebhookChannel, build_channels
from .dispatcher import AlertDispatcher
from .throttle import AlertThrottle

__all__ = [
    "AlertChannel",
    "AlertDispatcher",
    "AlertThrottle",
    "SlackChannel",
    "WebhookChannel",
    "build_channels",
]
