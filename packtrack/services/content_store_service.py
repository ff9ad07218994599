"""Document store for content state: ledger fields plus the snapshot collection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from sqlalchemy import desc
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Query, Session

from packtrack.core.content_state import ContentState
from packtrack.core.snapshot_ledger import (
    SnapshotLedger,
    TrafficSnapshot,
    TrafficWorkingCopy,
)
from packtrack.core.version_ledger import (
    ConfigurationSnapshot,
    PackagingVersion,
    VersionLedger,
)
from packtrack.infra.logging_config import get_logger
from packtrack.models.content_item import ContentItem
from packtrack.models.traffic_snapshot import TrafficSnapshotRecord

logger = get_logger("content_store")


@dataclass
class PersistResult:
    """Outcome of writing a locally applied state."""

    ok: bool
    error: Optional[str] = None
    revision: Optional[int] = None


def _dump(model) -> Optional[dict]:
    return model.model_dump(mode="json") if model is not None else None


class ContentStoreService:
    """Reads and writes ``ContentState``.

    Writes are read-modify-write of the ledger fields on the content item and
    of the item's snapshot rows. Last write wins.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_snapshots_query(self, content_item_id: UUID) -> Query[TrafficSnapshotRecord]:
        return (
            self.db.query(TrafficSnapshotRecord)
            .filter(TrafficSnapshotRecord.content_item_id == content_item_id)
            .order_by(desc(TrafficSnapshotRecord.timestamp))
        )

    def get_revision(self, content_item_id: UUID) -> Optional[int]:
        """Current ``packaging_revision`` of the item, or None if it is gone."""
        row = (
            self.db.query(ContentItem.packaging_revision)
            .filter(ContentItem.id == content_item_id)
            .first()
        )
        return None if row is None else (row[0] or 0)

    def load_state(self, content_item_id: UUID) -> Optional[ContentState]:
        item = (
            self.db.query(ContentItem).filter(ContentItem.id == content_item_id).first()
        )
        if item is None:
            return None

        ledger = VersionLedger(
            versions=[
                PackagingVersion.model_validate(v) for v in item.packaging_history or []
            ],
            current_packaging_version=item.current_packaging_version or 1,
            is_draft=bool(item.is_draft),
        )
        records = self.get_snapshots_query(content_item_id).all()
        return ContentState(
            content_item_id=item.id,
            is_published=item.is_published,
            packaging=ConfigurationSnapshot.model_validate(item.packaging or {}),
            ledger=ledger,
            snapshots=SnapshotLedger(snapshots=[self._to_snapshot(r) for r in records]),
            working_copy=TrafficWorkingCopy(
                sources=item.traffic_sources or [],
                total_row=item.traffic_total_row,
                updated_at=item.traffic_updated_at,
            ),
        )

    def persist(
        self, state: ContentState, expected_revision: Optional[int] = None
    ) -> PersistResult:
        """
        Write ``state`` back to the item row and its snapshot rows.

        With ``expected_revision`` the write is refused when the stored item has
        moved past the revision the state was built on.
        """
        try:
            if expected_revision is not None:
                stored = self.get_revision(state.content_item_id)
                if stored is not None and stored != expected_revision:
                    logger.warning(
                        "Refusing stale write to content item %s (revision %s, stored %s)",
                        state.content_item_id,
                        expected_revision,
                        stored,
                    )
                    return PersistResult(
                        ok=False,
                        error="the item was changed elsewhere; reload to see the latest version",
                        revision=stored,
                    )

            item = (
                self.db.query(ContentItem)
                .filter(ContentItem.id == state.content_item_id)
                .first()
            )
            if item is None:
                return PersistResult(
                    ok=False, error=f"Content item {state.content_item_id} no longer exists"
                )

            ledger = state.ledger
            item.packaging_history = [v.model_dump(mode="json") for v in ledger.versions]
            item.current_packaging_version = ledger.current_packaging_version
            item.is_draft = ledger.is_draft
            item.packaging = state.packaging.model_dump(mode="json")
            item.packaging_revision = (item.packaging_revision or 0) + 1

            working_copy = state.working_copy
            item.traffic_sources = [s.model_dump(mode="json") for s in working_copy.sources]
            item.traffic_total_row = _dump(working_copy.total_row)
            item.traffic_updated_at = working_copy.updated_at

            self._sync_snapshots(state.content_item_id, state.snapshots)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(
                "Persisting content item %s failed", state.content_item_id, exc_info=True
            )
            return PersistResult(ok=False, error=str(e))

        return PersistResult(ok=True, revision=item.packaging_revision)

    def _sync_snapshots(self, content_item_id: UUID, snapshots: SnapshotLedger) -> None:
        existing = {
            r.id: r
            for r in self.db.query(TrafficSnapshotRecord)
            .filter(TrafficSnapshotRecord.content_item_id == content_item_id)
            .all()
        }
        wanted = {s.id: s for s in snapshots.snapshots}

        for snapshot_id, record in existing.items():
            if snapshot_id not in wanted:
                self.db.delete(record)

        for snapshot_id, snapshot in wanted.items():
            record = existing.get(snapshot_id)
            if record is None:
                self.db.add(self._to_record(content_item_id, snapshot))
                continue
            # Measurements are immutable; only metadata can change
            record.label = snapshot.label
            record.packaging_snapshot = _dump(snapshot.packaging_snapshot)
            record.is_packaging_deleted = snapshot.is_packaging_deleted

    @staticmethod
    def _to_record(content_item_id: UUID, snapshot: TrafficSnapshot) -> TrafficSnapshotRecord:
        return TrafficSnapshotRecord(
            id=snapshot.id,
            content_item_id=content_item_id,
            version=snapshot.version,
            timestamp=snapshot.timestamp,
            sources=[s.model_dump(mode="json") for s in snapshot.sources],
            total_row=_dump(snapshot.total_row),
            summary=snapshot.summary.model_dump(mode="json"),
            label=snapshot.label,
            closes_version_period=_dump(snapshot.closes_version_period),
            packaging_snapshot=_dump(snapshot.packaging_snapshot),
            is_packaging_deleted=snapshot.is_packaging_deleted,
        )

    @staticmethod
    def _to_snapshot(record: TrafficSnapshotRecord) -> TrafficSnapshot:
        return TrafficSnapshot.model_validate(
            {
                "id": record.id,
                "version": record.version,
                "timestamp": record.timestamp,
                "sources": record.sources or [],
                "total_row": record.total_row,
                "summary": record.summary or {},
                "label": record.label,
                "closes_version_period": record.closes_version_period,
                "packaging_snapshot": record.packaging_snapshot,
                "is_packaging_deleted": bool(record.is_packaging_deleted),
            }
        )
