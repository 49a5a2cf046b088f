"""
Abstract base class for alert channels.

Defines the AlertChannel interface that all channel implementations
must follow, ensuring consistent delivery semantics and error handling.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from guide_common.models.alert import Alert, AlertLevel


class AlertChannel(ABC):
    """Base class every alert delivery channel must implement.

    Subclasses override :meth:`send` to deliver an alert payload to their
    specific transport (Slack, HTTP webhook, etc.).

    Attributes:
        name: Channel name used in logs and delivery tracking.
        enabled: Runtime flag: ``False`` disables delivery without removing
                 the channel from the dispatcher's registry.
        min_level: Alerts below this level are not sent to the channel.
    """

    name: str = "base"
    enabled: bool = True
    min_level: AlertLevel = AlertLevel.DEBUG

    def accepts(self, alert: Alert) -> bool:
        """Return ``True`` if the channel is enabled and *alert* is severe enough."""
        return self.enabled and alert.level >= self.min_level

    @abstractmethod
    async def send(self, alert: Alert) -> bool:
        """Deliver *alert* to the channel's backend.

        Returns:
            ``True`` if delivery succeeded, ``False`` otherwise (the
            dispatcher will queue the alert for retry via Celery).
        """

    async def close(self) -> None:
        """Release any resources held by the channel (override if needed)."""
