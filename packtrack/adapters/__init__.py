"""Adapters for the collaborators around the packaging ledgers."""

from packtrack.adapters.base import BaseNotificationSink, BaseSealRequester
from packtrack.adapters.notification_sink import (
    CollectingNotificationSink,
    LoggingNotificationSink,
)

__all__ = [
    "BaseNotificationSink",
    "BaseSealRequester",
    "CollectingNotificationSink",
    "LoggingNotificationSink",
]
