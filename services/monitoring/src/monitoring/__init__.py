"""
Error monitoring for the stack guide.

Sentry initialisation with sensitive-data scrubbing, scope helpers,
inbound Sentry webhooks, and the notification fan-out that turns Sentry
issues into Slack / webhook alerts.
"""

from .context import breadcrumb, capture_with_context, set_user, tag_request
from .scrubbing import before_breadcrumb, before_send, scrub
from .setup import init_sentry

__all__ = [
    "before_breadcrumb",
    "before_send",
    "breadcrumb",
    "capture_with_context",
    "init_sentry",
    "scrub",
    "set_user",
    "tag_request",
]
