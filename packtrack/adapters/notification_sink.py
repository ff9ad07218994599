"""Notification sinks."""

from __future__ import annotations

import logging

from packtrack.adapters.base import BaseNotificationSink
from packtrack.schemas.notification import Notification, NotificationLevel

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    "success": logging.INFO,
    "info": logging.INFO,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


class LoggingNotificationSink(BaseNotificationSink):
    """Writes notifications to the application log."""

    def notify(self, message: str, level: NotificationLevel = "info") -> None:
        logger.log(_LOG_LEVELS.get(level, logging.INFO), "[%s] %s", level, message)


class CollectingNotificationSink(LoggingNotificationSink):
    """Logs and keeps notifications so a request can return them to the client."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, message: str, level: NotificationLevel = "info") -> None:
        super().notify(message, level)
        self.notifications.append(Notification(level=level, message=message))
