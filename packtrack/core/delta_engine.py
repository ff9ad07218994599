"""Cumulative and incremental traffic views.

Snapshots hold cumulative totals. The incremental (delta) view of a snapshot
subtracts its baseline, the previous measurement of the same version:

* the previous snapshot inside the same activation period, or
* when the period has none, the last snapshot from an earlier activation of
  the version, but only if the period was sealed when it opened
  (``closing_snapshot_id`` is set). An unsealed activation has no baseline.

Without a baseline the delta equals the cumulative values.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from enum import Enum
from typing import Literal, Sequence

from pydantic import BaseModel, ConfigDict

from packtrack.core.snapshot_ledger import (
    SnapshotLedger,
    TrafficSnapshot,
    TrafficSource,
    TrafficWorkingCopy,
)
from packtrack.core.version_ledger import DRAFT, PackagingVersion, VersionLedger, VersionRef

logger = logging.getLogger(__name__)

DEFAULT_PERIOD_BUFFER = timedelta(seconds=5)


class ViewMode(str, Enum):
    CUMULATIVE = "cumulative"
    DELTA = "delta"


class TrafficViewRequest(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: VersionRef | None = None
    period_index: int | None = None
    snapshot_id: str | None = None
    mode: ViewMode = ViewMode.CUMULATIVE


class TrafficView(BaseModel):
    model_config = ConfigDict(frozen=True)

    version: VersionRef | None = None
    period_index: int | None = None
    snapshot_id: str | None = None
    mode: ViewMode = ViewMode.CUMULATIVE
    origin: Literal["snapshot", "working_copy", "empty"] = "empty"
    has_baseline: bool = False
    sources: tuple[TrafficSource, ...] = ()
    total_row: TrafficSource | None = None


def _ctr(views: int, impressions: int) -> float:
    return round(views / impressions * 100, 2) if impressions > 0 else 0.0


def _subtract(current: TrafficSource, previous: TrafficSource | None) -> TrafficSource:
    views = current.views - (previous.views if previous else 0)
    impressions = current.impressions - (previous.impressions if previous else 0)
    watch_time = current.watch_time_hours - (previous.watch_time_hours if previous else 0.0)
    views = max(0, views)
    impressions = max(0, impressions)
    watch_time = max(0.0, round(watch_time, 4))
    return current.model_copy(
        update={
            "views": views,
            "impressions": impressions,
            "watch_time_hours": watch_time,
            "ctr": _ctr(views, impressions),
        }
    )


def compute_delta(
    current: Sequence[TrafficSource], previous: Sequence[TrafficSource] | None
) -> list[TrafficSource]:
    """Traffic gained between two cumulative measurements.

    With no previous measurement the current rows are returned unchanged.
    Rows whose delta views are zero are dropped.
    """
    if not previous:
        return list(current)

    previous_by_video = {row.video_id: row for row in previous if row.video_id}
    result = []
    for row in current:
        if not row.video_id:
            result.append(row)
            continue
        delta = _subtract(row, previous_by_video.get(row.video_id))
        if delta.views == 0:
            continue
        result.append(delta)
    return result


def compute_total_delta(
    current: TrafficSource | None, previous: TrafficSource | None
) -> TrafficSource | None:
    if current is None or previous is None:
        return current
    return _subtract(current, previous)


def find_baseline(
    snapshot: TrafficSnapshot,
    snapshots: SnapshotLedger,
    ledger: VersionLedger,
    buffer: timedelta = DEFAULT_PERIOD_BUFFER,
) -> TrafficSnapshot | None:
    earlier = snapshots.earlier_for_version(snapshot)
    if not earlier:
        return None

    version = ledger.get_version(snapshot.version)
    if version is None or not version.active_periods:
        # Deleted versions keep a plain chain.
        return earlier[-1]

    index = version.period_index_at(snapshot.timestamp, buffer)
    same_period = [
        s for s in earlier if version.period_index_at(s.timestamp, buffer) == index
    ]
    if same_period:
        return same_period[-1]
    if version.active_periods[index].closing_snapshot_id is None:
        return None
    return earlier[-1]


def snapshot_view(
    snapshot: TrafficSnapshot,
    snapshots: SnapshotLedger,
    ledger: VersionLedger,
    mode: ViewMode,
    buffer: timedelta = DEFAULT_PERIOD_BUFFER,
    period_index: int | None = None,
) -> TrafficView:
    base = {
        "version": snapshot.version,
        "period_index": period_index,
        "snapshot_id": snapshot.id,
        "mode": mode,
        "origin": "snapshot",
    }
    if mode == ViewMode.CUMULATIVE:
        return TrafficView(sources=snapshot.sources, total_row=snapshot.total_row, **base)

    baseline = find_baseline(snapshot, snapshots, ledger, buffer)
    if baseline is None:
        return TrafficView(sources=snapshot.sources, total_row=snapshot.total_row, **base)
    return TrafficView(
        has_baseline=True,
        sources=tuple(compute_delta(snapshot.sources, baseline.sources)),
        total_row=compute_total_delta(snapshot.total_row, baseline.total_row),
        **base,
    )


def resolve_traffic_view(
    ledger: VersionLedger,
    snapshots: SnapshotLedger,
    working_copy: TrafficWorkingCopy,
    request: TrafficViewRequest,
    buffer: timedelta = DEFAULT_PERIOD_BUFFER,
) -> TrafficView:
    """Pick what to display for a (version, period, snapshot) request.

    An explicitly selected snapshot wins. Otherwise the active version shows
    its latest snapshot or, lacking one, the working copy (closed periods have
    none); historical versions show their latest snapshot. Unknown versions or
    snapshots yield an empty view.
    """
    if request.snapshot_id is not None:
        snapshot = snapshots.get(request.snapshot_id)
        if snapshot is None:
            logger.debug("Snapshot %s not found; returning empty view", request.snapshot_id)
            return TrafficView(snapshot_id=request.snapshot_id, mode=request.mode)
        return snapshot_view(
            snapshot, snapshots, ledger, request.mode, buffer, request.period_index
        )

    version_ref = request.version if request.version is not None else ledger.viewing_version()
    active = ledger.active_version()
    empty = TrafficView(
        version=version_ref, period_index=request.period_index, mode=request.mode
    )

    if version_ref == DRAFT:
        return _working_copy_view(working_copy, empty)

    candidates = snapshots.for_version(int(version_ref))
    version = ledger.get_version(int(version_ref))
    if request.period_index is not None and version is not None:
        candidates = [
            s
            for s in candidates
            if version.period_index_at(s.timestamp, buffer) == request.period_index
        ]

    if candidates:
        return snapshot_view(
            candidates[-1], snapshots, ledger, request.mode, buffer, request.period_index
        )
    if version_ref == active and _names_open_period(version, request.period_index):
        return _working_copy_view(working_copy, empty)
    return empty


def _names_open_period(version: PackagingVersion | None, period_index: int | None) -> bool:
    # Closed activations have no working copy
    if period_index is None:
        return True
    if version is None or not 0 <= period_index < len(version.active_periods):
        return False
    return version.active_periods[period_index].is_open


def _working_copy_view(working_copy: TrafficWorkingCopy, base: TrafficView) -> TrafficView:
    if not working_copy.sources and working_copy.total_row is None:
        return base
    return base.model_copy(
        update={
            "origin": "working_copy",
            "sources": working_copy.sources,
            "total_row": working_copy.total_row,
        }
    )
