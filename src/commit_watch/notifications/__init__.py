"""
Notification rendering, dispatch and history.
"""

from .dispatcher import NotificationDispatcher, badge_text
from .sink import LoggingNotificationSink, NotificationMessage, NotificationSink, Urgency

__all__ = [
    "LoggingNotificationSink",
    "NotificationDispatcher",
    "NotificationMessage",
    "NotificationSink",
    "Urgency",
    "badge_text",
]
