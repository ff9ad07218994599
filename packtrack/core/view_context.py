"""Viewing state for one content item's traffic panel."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from packtrack.core.delta_engine import TrafficView, TrafficViewRequest, ViewMode
from packtrack.core.version_ledger import VersionRef

logger = logging.getLogger(__name__)

ViewLoader = Callable[[TrafficViewRequest], Awaitable[TrafficView]]


class ViewSession:
    """Holds what is being looked at and guards loads against stale contexts.

    Every selection change alters ``context_key``. A load captures the key
    when it starts and only commits its result if the key is unchanged when
    the load finishes.
    """

    def __init__(self) -> None:
        self.version: VersionRef | None = None
        self.period_index: int | None = None
        self.snapshot_id: str | None = None
        self.mode = ViewMode.CUMULATIVE
        self.view: TrafficView | None = None

    @property
    def context_key(self) -> str:
        if self.snapshot_id is not None:
            target = f"snapshot-{self.snapshot_id}"
        else:
            target = f"version-{self.version or 'current'}-period-{self.period_index}"
        return f"{target}:{self.mode.value}"

    def request(self) -> TrafficViewRequest:
        return TrafficViewRequest(
            version=self.version,
            period_index=self.period_index,
            snapshot_id=self.snapshot_id,
            mode=self.mode,
        )

    def set_view_mode(self, mode: ViewMode) -> None:
        self.mode = ViewMode(mode)

    def select_snapshot(self, snapshot_id: str | None) -> None:
        self.snapshot_id = snapshot_id

    def select_version(self, version: VersionRef | None, period_index: int | None = None) -> None:
        self.version = version
        self.period_index = period_index
        self.snapshot_id = None

    async def load(self, loader: ViewLoader) -> TrafficView | None:
        """Run ``loader`` for the current request; None if the context changed meanwhile."""
        key = self.context_key
        result = await loader(self.request())
        if key != self.context_key:
            logger.warning(
                "Discarding traffic view for %s; context is now %s", key, self.context_key
            )
            return None
        self.view = result
        return result
