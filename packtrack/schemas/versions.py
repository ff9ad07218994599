"""Pydantic schemas for the packaging version ledger."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from packtrack.core.version_labels import VersionLabel
from packtrack.core.version_ledger import (
    ConfigurationSnapshot,
    PackagingVersion,
    VersionRef,
)
from packtrack.schemas.notification import Notification
from packtrack.schemas.traffic import TrafficCsvUpload


class DraftSave(BaseModel):
    packaging: ConfigurationSnapshot | None = None


class VersionCreate(BaseModel):
    """Save the working (or given) packaging as a new version.

    ``seal`` is the traffic export taken just before switching, which closes
    the currently active version's period.
    """

    configuration: ConfigurationSnapshot | None = None
    seal: TrafficCsvUpload | None = None
    clone_of: int | None = Field(None, ge=1)


class VersionRestore(BaseModel):
    seal: TrafficCsvUpload | None = None
    skip_seal: bool = False


class DeleteImpact(BaseModel):
    """What deleting a version would orphan. Traffic survives the delete."""

    version_number: int
    label: str
    is_active: bool
    snapshot_count: int
    total_views: int


class LedgerRead(BaseModel):
    content_item_id: UUID
    active_version: VersionRef
    viewing_version: VersionRef
    is_draft: bool
    has_unsaved_changes: bool
    current_packaging_version: int
    versions: list[PackagingVersion]
    labels: list[VersionLabel]
    notifications: list[Notification] = Field(default_factory=list)
