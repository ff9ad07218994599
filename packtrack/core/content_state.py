"""Per-content-item state and the events that change it.

``apply_event`` is the local, synchronous half of every mutation: it takes the
current ``ContentState`` and an event and returns the next state without any
I/O. Persisting the result is a separate step owned by the services layer.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Literal, Union
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from packtrack.core.errors import (
    MappingRequiredError,
    NoAttributableVersionError,
    SealRequiredError,
)
from packtrack.core.snapshot_ledger import (
    SnapshotLedger,
    TrafficSource,
    TrafficWorkingCopy,
)
from packtrack.core.version_ledger import (
    ConfigurationSnapshot,
    VersionLedger,
    utcnow,
)

logger = logging.getLogger(__name__)


class ContentState(BaseModel):
    model_config = ConfigDict(frozen=True)

    content_item_id: UUID
    is_published: bool = False
    packaging: ConfigurationSnapshot = Field(default_factory=ConfigurationSnapshot)
    ledger: VersionLedger = Field(default_factory=VersionLedger)
    snapshots: SnapshotLedger = Field(default_factory=SnapshotLedger)
    working_copy: TrafficWorkingCopy = Field(default_factory=TrafficWorkingCopy)

    def has_unsaved_packaging(self) -> bool:
        """True when the working packaging differs from the latest saved version."""
        latest = self.ledger.latest_version()
        if latest is None:
            return self.packaging != ConfigurationSnapshot()
        return self.packaging != latest.configuration_snapshot


class TrafficUpload(BaseModel):
    """Parsed traffic rows, either a regular upload or a seal."""

    model_config = ConfigDict(frozen=True)

    sources: tuple[TrafficSource, ...] = ()
    total_row: TrafficSource | None = None


class _Event(BaseModel):
    model_config = ConfigDict(frozen=True)

    occurred_at: datetime = Field(default_factory=utcnow)


class SaveDraft(_Event):
    kind: Literal["save_draft"] = "save_draft"
    packaging: ConfigurationSnapshot | None = None


class CreateVersion(_Event):
    kind: Literal["create_version"] = "create_version"
    configuration: ConfigurationSnapshot | None = None
    seal: TrafficUpload | None = None
    clone_of: int | None = None


class RestoreVersion(_Event):
    kind: Literal["restore_version"] = "restore_version"
    version_number: int
    seal: TrafficUpload | None = None
    seal_skipped: bool = False


class DeleteVersion(_Event):
    kind: Literal["delete_version"] = "delete_version"
    version_number: int


class UploadSnapshot(_Event):
    kind: Literal["upload_snapshot"] = "upload_snapshot"
    traffic: TrafficUpload
    label: str | None = None


class DeleteSnapshot(_Event):
    kind: Literal["delete_snapshot"] = "delete_snapshot"
    snapshot_id: str


class RelabelSnapshot(_Event):
    kind: Literal["relabel_snapshot"] = "relabel_snapshot"
    snapshot_id: str
    label: str | None = None


class UpdateWorkingCopy(_Event):
    kind: Literal["update_working_copy"] = "update_working_copy"
    traffic: TrafficUpload


LedgerEvent = Annotated[
    Union[
        SaveDraft,
        CreateVersion,
        RestoreVersion,
        DeleteVersion,
        UploadSnapshot,
        DeleteSnapshot,
        RelabelSnapshot,
        UpdateWorkingCopy,
    ],
    Field(discriminator="kind"),
]


def apply_event(
    state: ContentState, event: LedgerEvent, allow_unsealed_restore: bool = True
) -> ContentState:
    """Return the state after ``event``. Raises ``LedgerError`` subclasses on rule violations."""
    handler = _HANDLERS[event.kind]
    return handler(state, event, allow_unsealed_restore)


def _record_seal(
    state: ContentState, seal: TrafficUpload, now: datetime
) -> tuple[ContentState, str]:
    owner = state.ledger.attribution_version()
    if owner is None:
        raise NoAttributableVersionError("There is no active version to seal")
    if not seal.sources:
        raise MappingRequiredError("Seal upload contained no traffic rows")
    snapshots, snapshot = state.snapshots.record(
        owner,
        seal.sources,
        seal.total_row,
        timestamp=now,
        closes=state.ledger.open_period_ref(),
    )
    return (
        state.model_copy(
            update={
                "snapshots": snapshots,
                "working_copy": _working_copy_from(seal, now),
            }
        ),
        snapshot.id,
    )


def _working_copy_from(traffic: TrafficUpload, now: datetime) -> TrafficWorkingCopy:
    return TrafficWorkingCopy(
        sources=traffic.sources, total_row=traffic.total_row, updated_at=now
    )


def _save_draft(state: ContentState, event: SaveDraft, _allow: bool) -> ContentState:
    return state.model_copy(
        update={
            "ledger": state.ledger.save_draft(),
            "packaging": event.packaging or state.packaging,
        }
    )


def _create_version(
    state: ContentState, event: CreateVersion, _allow: bool
) -> ContentState:
    closing_snapshot_id = None
    if event.seal is not None:
        state, closing_snapshot_id = _record_seal(state, event.seal, event.occurred_at)

    configuration = event.configuration or state.packaging
    ledger = state.ledger.create_version(
        configuration,
        closing_snapshot_id=closing_snapshot_id,
        clone_of=event.clone_of,
        now=event.occurred_at,
    )
    return state.model_copy(update={"ledger": ledger, "packaging": configuration})


def _restore_version(
    state: ContentState, event: RestoreVersion, allow_unsealed_restore: bool
) -> ContentState:
    target = state.ledger.require_version(event.version_number)
    needs_seal = (
        state.is_published
        and target.open_period is None
        and state.ledger.attribution_version() is not None
    )

    closing_snapshot_id = None
    if event.seal is not None and needs_seal:
        state, closing_snapshot_id = _record_seal(state, event.seal, event.occurred_at)
    elif needs_seal:
        if not event.seal_skipped:
            raise SealRequiredError(
                f"Version {event.version_number} cannot be restored on published "
                "content without sealing the active version's traffic"
            )
        if not allow_unsealed_restore:
            raise SealRequiredError("Skipping the seal is disabled for this deployment")
        logger.warning(
            "Restoring version %s without a seal; its new period has no delta baseline",
            event.version_number,
        )

    ledger = state.ledger.restore_version(
        event.version_number,
        closing_snapshot_id=closing_snapshot_id,
        now=event.occurred_at,
    )
    return state.model_copy(
        update={"ledger": ledger, "packaging": target.configuration_snapshot}
    )


def _delete_version(
    state: ContentState, event: DeleteVersion, _allow: bool
) -> ContentState:
    deleted = state.ledger.require_version(event.version_number)
    was_active = state.ledger.active_version() == event.version_number

    ledger = state.ledger.delete_version(event.version_number, now=event.occurred_at)
    packaging = state.packaging
    if was_active:
        fallback = ledger.latest_version()
        if fallback is not None:
            packaging = fallback.configuration_snapshot

    return state.model_copy(
        update={
            "ledger": ledger,
            "snapshots": state.snapshots.mark_packaging_deleted(deleted),
            "packaging": packaging,
        }
    )


def _upload_snapshot(
    state: ContentState, event: UploadSnapshot, _allow: bool
) -> ContentState:
    if not event.traffic.sources:
        raise MappingRequiredError("Traffic upload contained no rows")
    owner = state.ledger.attribution_version()
    if owner is None:
        raise NoAttributableVersionError(
            "Save a packaging version before uploading traffic"
        )
    snapshots, _ = state.snapshots.record(
        owner,
        event.traffic.sources,
        event.traffic.total_row,
        timestamp=event.occurred_at,
        label=event.label,
    )
    return state.model_copy(
        update={
            "snapshots": snapshots,
            "working_copy": _working_copy_from(event.traffic, event.occurred_at),
        }
    )


def _delete_snapshot(
    state: ContentState, event: DeleteSnapshot, _allow: bool
) -> ContentState:
    was_latest = state.snapshots.latest() == state.snapshots.get(event.snapshot_id)
    snapshots = state.snapshots.delete(event.snapshot_id)
    update = {
        "snapshots": snapshots,
        "ledger": state.ledger.clear_closing_reference(event.snapshot_id),
    }
    remaining = snapshots.latest()
    if was_latest and remaining is not None:
        update["working_copy"] = TrafficWorkingCopy(
            sources=remaining.sources,
            total_row=remaining.total_row,
            updated_at=remaining.timestamp,
        )
    return state.model_copy(update=update)


def _relabel_snapshot(
    state: ContentState, event: RelabelSnapshot, _allow: bool
) -> ContentState:
    return state.model_copy(
        update={"snapshots": state.snapshots.relabel(event.snapshot_id, event.label)}
    )


def _update_working_copy(
    state: ContentState, event: UpdateWorkingCopy, _allow: bool
) -> ContentState:
    return state.model_copy(
        update={"working_copy": _working_copy_from(event.traffic, event.occurred_at)}
    )


_HANDLERS = {
    "save_draft": _save_draft,
    "create_version": _create_version,
    "restore_version": _restore_version,
    "delete_version": _delete_version,
    "upload_snapshot": _upload_snapshot,
    "delete_snapshot": _delete_snapshot,
    "relabel_snapshot": _relabel_snapshot,
    "update_working_copy": _update_working_copy,
}
