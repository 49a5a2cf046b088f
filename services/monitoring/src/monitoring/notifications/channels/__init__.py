"""
Alert channel implementations.

Contains the abstract AlertChannel base class, the Slack and HTTP
webhook channels, and :func:`build_channels`, which instantiates the
channels enabled in the settings.
"""

from __future__ import annotations

from guide_common.config import Settings
from guide_common.models.alert import AlertLevel

from .base import AlertChannel
from .slack_channel import SlackChannel
from .webhook_channel import WebhookChannel


def build_channels(settings: Settings) -> list[AlertChannel]:
    """Return one channel per configured destination, filtered at ``alert_min_level``."""
    min_level = AlertLevel.parse(settings.alert_min_level)
    channels: list[AlertChannel] = []
    if settings.slack_webhook_url:
        channels.append(SlackChannel(settings.slack_webhook_url, min_level=min_level))
    if settings.alert_webhook_url:
        channels.append(
            WebhookChannel(
                settings.alert_webhook_url,
                secret=settings.alert_webhook_secret,
                min_level=min_level,
            ),
        )
    return channels


__all__ = [
    "AlertChannel",
    "SlackChannel",
    "WebhookChannel",
    "build_channels",
]
