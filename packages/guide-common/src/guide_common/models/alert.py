"""
Alert data model for the stack guide.

An ``Alert`` is what the notification dispatcher forwards to Slack,
webhooks and friends after Sentry reports a new or regressed issue.
Levels mirror Sentry's own event levels and are ordered so channels
can subscribe to "error and above".
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field

from guide_common.utils import new_id, utc_now


class AlertLevel(str, enum.Enum):
    """Sentry event level, ordered from least to most severe."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    FATAL = "fatal"

    @property
    def rank(self) -> int:
        """Position of this level in the severity order (0 = debug)."""
        return list(type(self)).index(self)

    @classmethod
    def parse(cls, value: str | None) -> "AlertLevel":
        """Parse a Sentry level string, tolerating ``critical``/``warn`` aliases.

        Unknown or missing values map to ``ERROR``.
        """
        if not value:
            return cls.ERROR
        normalized = value.strip().lower()
        normalized = {"critical": "fatal", "warn": "warning"}.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.ERROR

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, AlertLevel):
            return NotImplemented
        return self.rank >= other.rank

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, AlertLevel):
            return NotImplemented
        return self.rank > other.rank

    def __le__(self, other: object) -> bool:
        if not isinstance(other, AlertLevel):
            return NotImplemented
        return self.rank <= other.rank

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, AlertLevel):
            return NotImplemented
        return self.rank < other.rank


class Alert(BaseModel):
    """A notification about a Sentry issue.

    Attributes:
        alert_id: Unique identifier of this notification.
        issue_id: Sentry issue (group) identifier.
        project: Sentry project slug.
        title: Issue title, usually ``ExceptionType: message``.
        culprit: Code location Sentry blames for the issue.
        level: Event level.
        environment: Environment the event was reported from.
        url: Link to the issue in the Sentry UI.
        event_count: Number of events grouped into the issue so far.
        triggered_rule: Name of the Sentry alert rule that fired, if any.
        created_at: When the alert was built (UTC).
        delivered_to: Channels that accepted the alert.
        delivery_status: Per-channel outcome (``delivered``, ``failed``, ``error`` or
            ``retry_unavailable`` when the redelivery could not be queued).
        deduplicated: Set when the dispatcher suppressed the alert as a duplicate.
    """

    alert_id: str = Field(default_factory=new_id)
    issue_id: str
    project: str = "unknown"
    title: str
    culprit: str | None = None
    level: AlertLevel = AlertLevel.ERROR
    environment: str | None = None
    url: str | None = None
    event_count: int = Field(default=1, ge=0)
    triggered_rule: str | None = None
    created_at: datetime = Field(default_factory=utc_now)
    delivered_to: list[str] = Field(default_factory=list)
    delivery_status: dict[str, str] = Field(default_factory=dict)
    deduplicated: bool = False
