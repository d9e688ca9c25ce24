"""
Notification sinks for Commit Watch.

A sink is where rendered notifications leave the process. The dispatcher
owns ids, history and unread counts; a sink only displays or forwards.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum

import structlog

logger = structlog.get_logger(__name__)


class Urgency(str, Enum):
    """How insistently a notification should be presented."""

    URGENT = "urgent"
    NORMAL = "normal"
    SILENT = "silent"


@dataclass
class NotificationMessage:
    """A rendered notification, ready to be emitted."""

    title: str
    body: str
    context: str = ""
    urgency: Urgency = Urgency.NORMAL
    actions: list[str] = field(default_factory=list)
    url: str | None = None

    @property
    def require_interaction(self) -> bool:
        return self.urgency is Urgency.URGENT

    @property
    def silent(self) -> bool:
        return self.urgency is Urgency.SILENT


class NotificationSink(ABC):
    """Destination for rendered notifications."""

    @abstractmethod
    async def emit(self, notification_id: str, message: NotificationMessage) -> None:
        """
        Present a notification.

        Args:
            notification_id: Stable id; emitting the same id again replaces it
            message: Rendered notification
        """

    async def dismiss(self, notification_id: str) -> None:
        """Remove a presented notification. Sinks without state ignore this."""
        return None


class LoggingNotificationSink(NotificationSink):
    """Sink that writes notifications to the structured log."""

    async def emit(self, notification_id: str, message: NotificationMessage) -> None:
        logger.info(
            message.title,
            notification_id=notification_id,
            body=message.body,
            context=message.context,
            urgency=message.urgency.value,
            actions=message.actions,
            url=message.url,
        )

    async def dismiss(self, notification_id: str) -> None:
        logger.debug("Notification dismissed", notification_id=notification_id)
