"""Reconciliation service: every ledger mutation goes through here.

Each command is applied locally first (``apply_locally``), cached, and then
written to the document store (``persist``). A failed write is reported to the
notification sink and logged; the local state is kept as is and the next full
reload reconciles it with the store.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Optional
from uuid import UUID

from sqlalchemy.orm import Session

from packtrack.adapters.base import BaseNotificationSink, BaseSealRequester
from packtrack.adapters.csv_ingestion import parse_traffic_csv
from packtrack.adapters.notification_sink import LoggingNotificationSink
from packtrack.config import Settings, get_settings
from packtrack.core.app_state import state as app_state
from packtrack.core.content_state import (
    ContentState,
    CreateVersion,
    DeleteSnapshot,
    DeleteVersion,
    LedgerEvent,
    RelabelSnapshot,
    RestoreVersion,
    SaveDraft,
    TrafficUpload,
    UpdateWorkingCopy,
    UploadSnapshot,
    apply_event,
)
from packtrack.core.delta_engine import (
    TrafficView,
    TrafficViewRequest,
    resolve_traffic_view,
)
from packtrack.core.errors import ContentItemNotFoundError, MappingRequiredError
from packtrack.core.registry import ContentStateRegistry
from packtrack.core.snapshot_ledger import TrafficSnapshot
from packtrack.core.version_labels import (
    TrafficVersionRow,
    project_traffic_versions,
    version_label,
)
from packtrack.core.version_ledger import ConfigurationSnapshot, VersionRef
from packtrack.schemas.traffic import CsvMapping
from packtrack.schemas.versions import DeleteImpact
from packtrack.services.content_store_service import ContentStoreService, PersistResult


class ReconciliationService:
    def __init__(
        self,
        db: Session,
        registry: Optional[ContentStateRegistry] = None,
        notifier: Optional[BaseNotificationSink] = None,
        settings: Optional[Settings] = None,
        store: Optional[ContentStoreService] = None,
    ) -> None:
        self.db = db
        self.registry = registry if registry is not None else app_state.registry
        self.notifier = notifier or LoggingNotificationSink()
        self.settings = settings or get_settings()
        self.store = store or ContentStoreService(db)
        self.period_buffer = timedelta(seconds=self.settings.snapshot_period_buffer_seconds)
        self.logger = logging.getLogger(__name__)

    # --- state access ---

    def get_state(self, content_item_id: UUID) -> Optional[ContentState]:
        return self._current(content_item_id)[0]

    def _current(self, content_item_id: UUID) -> tuple[Optional[ContentState], Optional[int]]:
        """The item's state and the store revision it is based on.

        A cached entry is used only while the store is still at its revision;
        otherwise the item is read back from the store.
        """
        revision = self.store.get_revision(content_item_id)
        if revision is None:
            self.registry.drop(content_item_id)
            return None, None

        cached = self.registry.entry(content_item_id)
        if cached is not None and cached.revision == revision:
            return cached.state, revision
        if cached is not None and cached.ahead_of_store:
            self.logger.warning(
                "Discarding unsaved local changes to content item %s; store is at revision %s",
                content_item_id,
                revision,
            )

        loaded = self.store.load_state(content_item_id)
        if loaded is None:
            self.registry.drop(content_item_id)
            return None, None
        self.registry.put(loaded, revision=revision)
        return loaded, revision

    def require_state(self, content_item_id: UUID) -> ContentState:
        current = self.get_state(content_item_id)
        if current is None:
            raise ContentItemNotFoundError(content_item_id)
        return current

    def reload(self, content_item_id: UUID) -> Optional[ContentState]:
        """Discard local state and read it back from the store."""
        self.registry.drop(content_item_id)
        return self.get_state(content_item_id)

    # --- the two halves of a mutation ---

    def apply_locally(self, current: ContentState, event: LedgerEvent) -> ContentState:
        return apply_event(
            current, event, allow_unsealed_restore=self.settings.allow_unsealed_restore
        )

    def persist(
        self,
        new_state: ContentState,
        event: LedgerEvent,
        expected_revision: Optional[int] = None,
    ) -> PersistResult:
        result = self.store.persist(new_state, expected_revision=expected_revision)
        if not result.ok:
            self.notifier.error(
                f"Could not save changes ({event.kind.replace('_', ' ')}): {result.error}"
            )
        return result

    def dispatch(self, content_item_id: UUID, event: LedgerEvent) -> ContentState:
        """Apply ``event`` to the item's state and persist it, serialized per item."""
        with self.registry.lock(content_item_id):
            current, revision = self._current(content_item_id)
            if current is None:
                raise ContentItemNotFoundError(content_item_id)
            new_state = self.apply_locally(current, event)
            self.registry.put(new_state, revision=revision, ahead_of_store=True)
            result = self.persist(new_state, event, expected_revision=revision)
            if result.ok:
                self.registry.put(new_state, revision=result.revision)

        self.logger.info(
            "Applied %s to content item %s (persisted=%s)",
            event.kind,
            content_item_id,
            result.ok,
        )
        if result.ok:
            message = self._success_message(new_state, event)
            if message:
                self.notifier.success(message)
        return new_state

    # --- commands ---

    def save_draft(
        self, content_item_id: UUID, packaging: Optional[ConfigurationSnapshot] = None
    ) -> ContentState:
        return self.dispatch(content_item_id, SaveDraft(packaging=packaging))

    def create_version(
        self,
        content_item_id: UUID,
        configuration: Optional[ConfigurationSnapshot] = None,
        seal: Optional[TrafficUpload] = None,
        clone_of: Optional[int] = None,
    ) -> ContentState:
        return self.dispatch(
            content_item_id,
            CreateVersion(configuration=configuration, seal=seal, clone_of=clone_of),
        )

    def restore_version(
        self,
        content_item_id: UUID,
        version_number: int,
        seal: Optional[TrafficUpload] = None,
        skip_seal: bool = False,
    ) -> ContentState:
        return self.dispatch(
            content_item_id,
            RestoreVersion(version_number=version_number, seal=seal, seal_skipped=skip_seal),
        )

    async def restore_with_seal(
        self,
        content_item_id: UUID,
        version_number: int,
        requester: BaseSealRequester,
    ) -> ContentState:
        """
        Restore a version, sealing the active version's traffic first when published.

        The seal is awaited before the ledger is touched. A None seal means the
        user skipped it: the restored period then has no delta baseline.

        Raises:
            VersionNotFoundError: if the version does not exist.
            SealRequiredError: if skipping is disabled by configuration.
            MappingRequiredError: if the seal upload could not be read.
        """
        current = self.require_state(content_item_id)
        target = current.ledger.require_version(version_number)
        owner = current.ledger.attribution_version()
        if not current.is_published or target.open_period is not None or owner is None:
            return self.restore_version(content_item_id, version_number)

        seal = await requester.request_seal(content_item_id, owner)
        restored = self.restore_version(
            content_item_id, version_number, seal=seal, skip_seal=seal is None
        )
        if seal is None:
            self.notifier.warning(
                f"Restored {version_label(version_number)} without sealing "
                f"{version_label(owner)}; its new period has no delta baseline"
            )
        return restored

    def confirm_delete(self, content_item_id: UUID, version_number: int) -> DeleteImpact:
        """Describe what deleting a version orphans. Never mutates anything."""
        current = self.require_state(content_item_id)
        version = current.ledger.require_version(version_number)
        history = current.snapshots.for_version(version_number)
        return DeleteImpact(
            version_number=version_number,
            label=version_label(version.canonical_id),
            is_active=current.ledger.active_version() == version_number,
            snapshot_count=len(history),
            total_views=history[-1].summary.total_views if history else 0,
        )

    def delete_version(self, content_item_id: UUID, version_number: int) -> ContentState:
        return self.dispatch(content_item_id, DeleteVersion(version_number=version_number))

    def upload_snapshot(
        self,
        content_item_id: UUID,
        traffic: TrafficUpload,
        label: Optional[str] = None,
    ) -> tuple[ContentState, TrafficSnapshot]:
        new_state = self.dispatch(
            content_item_id, UploadSnapshot(traffic=traffic, label=label)
        )
        return new_state, new_state.snapshots.latest()

    def upload_snapshot_csv(
        self,
        content_item_id: UUID,
        csv_text: str,
        mapping: Optional[CsvMapping] = None,
        label: Optional[str] = None,
    ) -> tuple[ContentState, TrafficSnapshot]:
        traffic = self.parse_upload(csv_text, mapping)
        return self.upload_snapshot(content_item_id, traffic, label=label)

    def delete_snapshot(self, content_item_id: UUID, snapshot_id: str) -> ContentState:
        return self.dispatch(content_item_id, DeleteSnapshot(snapshot_id=snapshot_id))

    def relabel_snapshot(
        self, content_item_id: UUID, snapshot_id: str, label: Optional[str]
    ) -> ContentState:
        return self.dispatch(
            content_item_id, RelabelSnapshot(snapshot_id=snapshot_id, label=label)
        )

    def update_working_copy(
        self, content_item_id: UUID, traffic: TrafficUpload
    ) -> ContentState:
        return self.dispatch(content_item_id, UpdateWorkingCopy(traffic=traffic))

    def select_viewing_version(
        self, content_item_id: UUID, ref: Optional[VersionRef]
    ) -> ContentState:
        """Point the viewing pointer at ``ref``. Local only; never persisted."""
        with self.registry.lock(content_item_id):
            current, revision = self._current(content_item_id)
            if current is None:
                raise ContentItemNotFoundError(content_item_id)
            ledger = (
                current.ledger.set_viewing(ref)
                if ref is not None
                else current.ledger.model_copy(update={"viewing": None})
            )
            new_state = current.model_copy(update={"ledger": ledger})
            cached = self.registry.entry(content_item_id)
            self.registry.put(
                new_state,
                revision=revision,
                ahead_of_store=cached is not None and cached.ahead_of_store,
            )
        return new_state

    # --- reads ---

    def resolve_view(
        self, content_item_id: UUID, request: TrafficViewRequest
    ) -> TrafficView:
        current = self.get_state(content_item_id)
        if current is None:
            return TrafficView(mode=request.mode)
        return resolve_traffic_view(
            current.ledger,
            current.snapshots,
            current.working_copy,
            request,
            buffer=self.period_buffer,
        )

    async def load_view(self, content_item_id: UUID) -> Optional[TrafficView]:
        """Resolve the item's view session; None if the session moved on meanwhile."""
        session = self.registry.view_session(content_item_id)

        async def loader(request: TrafficViewRequest) -> TrafficView:
            return self.resolve_view(content_item_id, request)

        return await session.load(loader)

    def traffic_versions(self, content_item_id: UUID) -> list[TrafficVersionRow]:
        current = self.get_state(content_item_id)
        if current is None:
            return []
        return project_traffic_versions(
            current.ledger, current.snapshots, buffer=self.period_buffer
        )

    @staticmethod
    def parse_upload(csv_text: str, mapping: Optional[CsvMapping] = None) -> TrafficUpload:
        traffic = parse_traffic_csv(csv_text, mapping)
        if not traffic.sources:
            raise MappingRequiredError(
                "Could not read traffic rows; map the CSV columns and upload again"
            )
        return traffic

    @staticmethod
    def _success_message(after: ContentState, event: LedgerEvent) -> Optional[str]:
        if isinstance(event, SaveDraft):
            return "Draft saved"
        if isinstance(event, CreateVersion):
            return f"Saved {version_label(after.ledger.latest_version().version_number)}"
        if isinstance(event, RestoreVersion):
            return f"Restored {version_label(event.version_number)}"
        if isinstance(event, DeleteVersion):
            kept = len(after.snapshots.for_version(event.version_number))
            message = f"Deleted {version_label(event.version_number)}"
            if kept:
                message += f"; {kept} traffic snapshot(s) kept as packaging deleted"
            return message
        if isinstance(event, UploadSnapshot):
            return "Traffic snapshot saved"
        if isinstance(event, DeleteSnapshot):
            return "Traffic snapshot deleted"
        return None
