"""Traffic snapshot ledger.

Snapshots are ordered by timestamp. Measurements are immutable; only the most
recent snapshot of a version may be removed, since newer snapshots use older
ones as their delta baseline.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from pydantic import BaseModel, ConfigDict, Field, field_validator

from packtrack.core.errors import SnapshotDeleteNotAllowedError, SnapshotNotFoundError
from packtrack.core.version_ledger import (
    ConfigurationSnapshot,
    PackagingVersion,
    PeriodRef,
    UtcDatetime,
    utcnow,
)

logger = logging.getLogger(__name__)


class TrafficSource(BaseModel):
    """One measurement row: traffic a related video sent to the content item."""

    model_config = ConfigDict(frozen=True)

    source_id: str | None = None
    source_type: str = ""
    source_title: str = ""
    video_id: str | None = None
    impressions: int = 0
    ctr: float = 0.0
    views: int = 0
    avg_view_duration: str = ""
    watch_time_hours: float = 0.0
    channel_id: str | None = None


class SnapshotSummary(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_views: int = 0
    total_impressions: int = 0
    total_watch_time_hours: float = 0.0
    sources_count: int = 0
    top_source: str | None = None
    total_ctr: float = 0.0

    @classmethod
    def from_rows(
        cls, sources: Iterable[TrafficSource], total_row: TrafficSource | None = None
    ) -> "SnapshotSummary":
        sources = list(sources)
        top = max(sources, key=lambda s: s.views, default=None)
        if total_row is not None:
            views = total_row.views
            impressions = total_row.impressions
            watch_time = total_row.watch_time_hours
            ctr = total_row.ctr
        else:
            views = sum(s.views for s in sources)
            impressions = sum(s.impressions for s in sources)
            watch_time = round(sum(s.watch_time_hours for s in sources), 4)
            ctr = round(views / impressions * 100, 2) if impressions > 0 else 0.0
        return cls(
            total_views=views,
            total_impressions=impressions,
            total_watch_time_hours=watch_time,
            sources_count=len(sources),
            top_source=top.video_id if top is not None and top.views > 0 else None,
            total_ctr=ctr,
        )


class PackagingSnapshot(BaseModel):
    """Packaging context copied onto snapshots whose version was deleted."""

    model_config = ConfigDict(frozen=True)

    configuration: ConfigurationSnapshot
    clone_of: int | None = None
    period_start: UtcDatetime | None = None
    period_end: UtcDatetime | None = None


class TrafficSnapshot(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    version: int
    timestamp: UtcDatetime
    sources: tuple[TrafficSource, ...] = ()
    total_row: TrafficSource | None = None
    summary: SnapshotSummary = Field(default_factory=SnapshotSummary)
    label: str | None = None
    closes_version_period: PeriodRef | None = None
    packaging_snapshot: PackagingSnapshot | None = None
    is_packaging_deleted: bool = False


class TrafficWorkingCopy(BaseModel):
    """Unsealed, currently accumulating totals for the active version."""

    model_config = ConfigDict(frozen=True)

    sources: tuple[TrafficSource, ...] = ()
    total_row: TrafficSource | None = None
    updated_at: UtcDatetime | None = None


def make_snapshot_id(version: int, timestamp: datetime) -> str:
    return f"snap_{int(timestamp.timestamp() * 1000)}_v{version}"


class SnapshotLedger(BaseModel):
    model_config = ConfigDict(frozen=True)

    snapshots: tuple[TrafficSnapshot, ...] = ()

    @field_validator("snapshots")
    @classmethod
    def order_by_timestamp(
        cls, snapshots: tuple[TrafficSnapshot, ...]
    ) -> tuple[TrafficSnapshot, ...]:
        return tuple(sorted(snapshots, key=lambda s: s.timestamp))

    def __len__(self) -> int:
        return len(self.snapshots)

    def get(self, snapshot_id: str) -> TrafficSnapshot | None:
        for snapshot in self.snapshots:
            if snapshot.id == snapshot_id:
                return snapshot
        return None

    def require(self, snapshot_id: str) -> TrafficSnapshot:
        snapshot = self.get(snapshot_id)
        if snapshot is None:
            raise SnapshotNotFoundError(snapshot_id)
        return snapshot

    def for_version(self, version_number: int) -> list[TrafficSnapshot]:
        return [s for s in self.snapshots if s.version == version_number]

    def latest_for_version(self, version_number: int) -> TrafficSnapshot | None:
        history = self.for_version(version_number)
        return history[-1] if history else None

    def latest(self) -> TrafficSnapshot | None:
        return self.snapshots[-1] if self.snapshots else None

    def versions(self) -> list[int]:
        return sorted({s.version for s in self.snapshots})

    def earlier_for_version(self, snapshot: TrafficSnapshot) -> list[TrafficSnapshot]:
        """Snapshots of the same version recorded before ``snapshot``."""
        history = self.for_version(snapshot.version)
        for index, candidate in enumerate(history):
            if candidate.id == snapshot.id:
                return history[:index]
        return []

    def record(
        self,
        version: int,
        sources: Iterable[TrafficSource],
        total_row: TrafficSource | None = None,
        timestamp: datetime | None = None,
        closes: PeriodRef | None = None,
        label: str | None = None,
    ) -> tuple["SnapshotLedger", TrafficSnapshot]:
        """Append a measurement for ``version`` and return it with the new ledger."""
        timestamp = timestamp or utcnow()
        sources = tuple(sources)
        snapshot_id = make_snapshot_id(version, timestamp)
        suffix = 1
        while self.get(snapshot_id) is not None:
            suffix += 1
            snapshot_id = f"{make_snapshot_id(version, timestamp)}_{suffix}"

        snapshot = TrafficSnapshot(
            id=snapshot_id,
            version=version,
            timestamp=timestamp,
            sources=sources,
            total_row=total_row,
            summary=SnapshotSummary.from_rows(sources, total_row),
            label=label,
            closes_version_period=closes,
        )
        logger.info(
            "Recorded traffic snapshot %s for version %s (%d sources)",
            snapshot.id,
            version,
            len(sources),
        )
        return self._with(self.snapshots + (snapshot,)), snapshot

    def delete(self, snapshot_id: str) -> "SnapshotLedger":
        snapshot = self.require(snapshot_id)
        latest = self.latest_for_version(snapshot.version)
        if latest is not None and latest.id != snapshot.id:
            raise SnapshotDeleteNotAllowedError(snapshot.id, latest.id)
        return self._with(tuple(s for s in self.snapshots if s.id != snapshot_id))

    def relabel(self, snapshot_id: str, label: str | None) -> "SnapshotLedger":
        self.require(snapshot_id)
        return self._with(
            tuple(
                s.model_copy(update={"label": label}) if s.id == snapshot_id else s
                for s in self.snapshots
            )
        )

    def mark_packaging_deleted(self, version: PackagingVersion) -> "SnapshotLedger":
        """Preserve the packaging of a version that is about to be deleted."""
        newest = version.active_periods[0] if version.active_periods else None
        preserved = PackagingSnapshot(
            configuration=version.configuration_snapshot,
            clone_of=version.clone_of,
            period_start=newest.start_date if newest else None,
            period_end=newest.end_date if newest else None,
        )
        return self._with(
            tuple(
                s.model_copy(
                    update={"packaging_snapshot": preserved, "is_packaging_deleted": True}
                )
                if s.version == version.version_number
                else s
                for s in self.snapshots
            )
        )

    def _with(self, snapshots: tuple[TrafficSnapshot, ...]) -> "SnapshotLedger":
        return SnapshotLedger(snapshots=snapshots)
