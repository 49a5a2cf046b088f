"""
Slack alert channel.

Posts Block Kit messages for Sentry issues through a Slack incoming
webhook.
"""

from __future__ import annotations

from datetime import timezone

import structlog
from slack_sdk.webhook.async_client import AsyncWebhookClient

from guide_common.models.alert import Alert, AlertLevel

from .base import AlertChannel

logger = structlog.get_logger()

_LEVEL_EMOJI = {
    AlertLevel.DEBUG: ":grey_question:",
    AlertLevel.INFO: ":information_source:",
    AlertLevel.WARNING: ":warning:",
    AlertLevel.ERROR: ":red_circle:",
    AlertLevel.FATAL: ":rotating_light:",
}


def _format_slack_blocks(alert: Alert) -> list[dict]:
    """Build Slack Block Kit blocks for *alert*.

    Format:
        :emoji: *[LEVEL] title*  |  project `slug`  |  `environment`
        > culprit
        events · rule · alert id · timestamp
    """
    ts = alert.created_at
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    ts_str = ts.strftime("%Y-%m-%d %H:%M:%S UTC")

    header = (
        f"{_LEVEL_EMOJI[alert.level]} *[{alert.level.value.upper()}] {alert.title}*  |  "
        f"project `{alert.project}`  |  "
        f"`{alert.environment or 'unknown'}`"
    )
    blocks: list[dict] = [
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": header},
        },
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"> {alert.culprit or '(no culprit)'}"},
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": (
                        f"events: *{alert.event_count}*  |  "
                        f"rule: {alert.triggered_rule or 'n/a'}  |  "
                        f"alert_id: `{alert.alert_id}`  |  {ts_str}"
                    ),
                },
            ],
        },
    ]
    if alert.url:
        blocks.append(
            {
                "type": "actions",
                "elements": [
                    {
                        "type": "button",
                        "text": {"type": "plain_text", "text": "Open in Sentry"},
                        "url": alert.url,
                    },
                ],
            },
        )
    return blocks


class SlackChannel(AlertChannel):
    """Send formatted Slack messages via incoming webhook.

    Args:
        webhook_url: Slack incoming-webhook URL.
        min_level: Lowest level forwarded to Slack.
    """

    name: str = "slack"

    def __init__(self, webhook_url: str, *, min_level: AlertLevel = AlertLevel.ERROR) -> None:
        self.webhook_url = webhook_url
        self.min_level = min_level
        self._client = AsyncWebhookClient(url=webhook_url)

    async def send(self, alert: Alert) -> bool:
        """Deliver *alert* to Slack.

        Returns:
            ``True`` on success (2xx), ``False`` otherwise.
        """
        blocks = _format_slack_blocks(alert)
        fallback_text = f"[{alert.level.value}] {alert.title} ({alert.project})"
        log = logger.bind(alert_id=alert.alert_id, channel="slack")
        try:
            response = await self._client.send(text=fallback_text, blocks=blocks)
            if response.status_code == 200:
                log.info("slack_delivered")
                return True
            log.warning("slack_non_200", status=response.status_code, body=response.body)
            return False
        except Exception as exc:  # noqa: BLE001
            log.error("slack_delivery_failed", error=str(exc))
            return False
