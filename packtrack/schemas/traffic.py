"""Pydantic schemas for traffic uploads, snapshots and views."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from packtrack.core.delta_engine import ViewMode
from packtrack.core.snapshot_ledger import (
    SnapshotSummary,
    TrafficSnapshot,
    TrafficSource,
    TrafficWorkingCopy,
)
from packtrack.core.version_labels import TrafficVersionRow
from packtrack.core.version_ledger import VersionRef
from packtrack.schemas.notification import Notification


class CsvMapping(BaseModel):
    """Zero-based column positions in an analytics export."""

    source_id: int = Field(0, ge=0)
    source_type: int = Field(1, ge=0)
    source_title: int = Field(2, ge=0)
    impressions: int = Field(3, ge=0)
    ctr: int = Field(4, ge=0)
    views: int = Field(5, ge=0)
    avg_duration: int = Field(6, ge=0)
    watch_time: int = Field(7, ge=0)
    channel_id: int | None = Field(None, ge=0)


class TrafficCsvUpload(BaseModel):
    """CSV export text plus an optional explicit column mapping."""

    csv_text: str = Field(..., min_length=1)
    mapping: CsvMapping | None = None


class SnapshotUpload(TrafficCsvUpload):
    label: str | None = Field(None, max_length=256)


class SnapshotLabelUpdate(BaseModel):
    label: str | None = Field(None, max_length=256)


class WorkingCopyUpdate(BaseModel):
    sources: list[TrafficSource] = Field(default_factory=list)
    total_row: TrafficSource | None = None


class SnapshotRead(BaseModel):
    """Response schema for a stored traffic snapshot."""

    model_config = ConfigDict(from_attributes=True)

    id: str
    version: int
    timestamp: datetime
    sources: list[TrafficSource]
    total_row: TrafficSource | None = None
    summary: SnapshotSummary
    label: str | None = None
    closes_version_period: dict[str, Any] | None = None
    packaging_snapshot: dict[str, Any] | None = None
    is_packaging_deleted: bool = False


class SnapshotMutationRead(BaseModel):
    snapshot: TrafficSnapshot | None = None
    working_copy: TrafficWorkingCopy
    notifications: list[Notification] = Field(default_factory=list)


class ViewUpdate(BaseModel):
    """Changes to the viewing context; only fields that are sent are applied."""

    mode: ViewMode | None = None
    version: VersionRef | None = None
    period_index: int | None = Field(None, ge=0)
    snapshot_id: str | None = None


class ViewStateRead(BaseModel):
    context_key: str
    mode: ViewMode
    version: VersionRef | None = None
    period_index: int | None = None
    snapshot_id: str | None = None


class TrafficVersionsRead(BaseModel):
    items: list[TrafficVersionRow]
