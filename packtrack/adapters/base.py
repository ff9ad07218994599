"""
Collaborator interfaces.

The ledgers never talk to users or upload widgets directly; they go through
these contracts so the HTTP layer, workers and tests can plug in their own.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional
from uuid import UUID

from packtrack.core.content_state import TrafficUpload
from packtrack.schemas.notification import NotificationLevel


class BaseNotificationSink(ABC):
    """Receives human-readable success/failure messages."""

    @abstractmethod
    def notify(self, message: str, level: NotificationLevel = "info") -> None:
        """Deliver one message. Must not raise."""
        ...

    def success(self, message: str) -> None:
        self.notify(message, "success")

    def warning(self, message: str) -> None:
        self.notify(message, "warning")

    def error(self, message: str) -> None:
        self.notify(message, "error")


class BaseSealRequester(ABC):
    """Obtains the traffic export that seals the active version's period."""

    @abstractmethod
    async def request_seal(
        self, content_item_id: UUID, version_number: int
    ) -> Optional[TrafficUpload]:
        """
        Return the parsed seal upload, or None when the user skips sealing.
        Raise if the upload itself failed; a failed upload is not a skip.
        """
        ...
