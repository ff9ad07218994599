"""Tests for ReconciliationService."""

import asyncio

import pytest

from packtrack.adapters.seal_requester import UploadedSealRequester
from packtrack.core.errors import (
    ContentItemNotFoundError,
    MappingRequiredError,
    SealRequiredError,
    VersionNotFoundError,
)
from packtrack.core.registry import ContentStateRegistry
from packtrack.core.version_ledger import DRAFT, ConfigurationSnapshot
from packtrack.models.traffic_snapshot import TrafficSnapshotRecord
from packtrack.schemas.traffic import TrafficCsvUpload
from packtrack.services.content_store_service import ContentStoreService, PersistResult
from packtrack.services.reconciliation_service import ReconciliationService


class FailingStore(ContentStoreService):
    """Loads from the database but refuses every write."""

    def persist(self, state, expected_revision=None):
        return PersistResult(ok=False, error="database unavailable")


def _levels(notifier):
    return [(n.level, n.message) for n in notifier.notifications]


def test_create_version_persists_ledger(db, setup_content_item, reconciliation_service, notifier):
    state = reconciliation_service.create_version(setup_content_item.id)

    assert state.ledger.active_version() == 1
    db.refresh(setup_content_item)
    assert setup_content_item.is_draft is False
    assert setup_content_item.current_packaging_version == 2
    assert setup_content_item.packaging_history[0]["version_number"] == 1
    assert setup_content_item.packaging_revision == 1
    assert ("success", "Saved v.1") in _levels(notifier)


def test_state_survives_a_fresh_registry(db, setup_content_item, reconciliation_service, traffic_csv):
    svc = reconciliation_service
    svc.create_version(setup_content_item.id)
    svc.upload_snapshot_csv(setup_content_item.id, traffic_csv({"abc123": (12, 300)}))

    fresh = ReconciliationService(db, registry=ContentStateRegistry())
    state = fresh.require_state(setup_content_item.id)
    assert state.ledger.active_version() == 1
    assert len(state.snapshots) == 1
    assert state.snapshots.latest().sources[0].video_id == "abc123"
    assert state.working_copy.sources[0].views == 12


def test_unknown_content_item(reconciliation_service, faker):
    with pytest.raises(ContentItemNotFoundError):
        reconciliation_service.save_draft(faker.uuid4(cast_to=None))


def test_upload_with_unreadable_csv_requires_mapping(setup_content_item, reconciliation_service):
    reconciliation_service.create_version(setup_content_item.id)
    with pytest.raises(MappingRequiredError):
        reconciliation_service.upload_snapshot_csv(setup_content_item.id, "a,b\n1,2\n")


def test_persist_failure_keeps_local_state_and_notifies(db, setup_content_item, notifier):
    registry = ContentStateRegistry()
    svc = ReconciliationService(
        db, registry=registry, notifier=notifier, store=FailingStore(db)
    )

    state = svc.create_version(setup_content_item.id)

    assert state.ledger.active_version() == 1
    assert registry.get(setup_content_item.id) is state
    assert _levels(notifier)[-1][0] == "error"
    assert "database unavailable" in _levels(notifier)[-1][1]

    # The next full reload reconciles with what the store actually has
    reloaded = svc.reload(setup_content_item.id)
    assert reloaded.ledger.versions == ()


def test_delete_version_keeps_snapshots_queryable(db, setup_published_item, reconciliation_service, traffic_csv):
    svc = reconciliation_service
    item_id = setup_published_item.id
    svc.create_version(item_id)
    svc.upload_snapshot_csv(item_id, traffic_csv({"abc123": (10, 100)}))
    svc.upload_snapshot_csv(item_id, traffic_csv({"abc123": (25, 200)}))
    svc.create_version(item_id, configuration=ConfigurationSnapshot(title="B"))

    impact = svc.confirm_delete(item_id, 1)
    assert impact.snapshot_count == 2
    assert impact.total_views == 25
    assert impact.is_active is False

    svc.delete_version(item_id, 1)

    records = (
        db.query(TrafficSnapshotRecord)
        .filter(TrafficSnapshotRecord.content_item_id == item_id)
        .all()
    )
    assert len(records) == 2
    assert all(r.version == 1 for r in records)
    assert all(r.is_packaging_deleted for r in records)

    rows = svc.traffic_versions(item_id)
    assert any(r.is_deleted and r.version_number == 1 for r in rows)


def test_confirm_delete_is_a_pure_read(db, setup_published_item, reconciliation_service, traffic_csv):
    svc = reconciliation_service
    item_id = setup_published_item.id
    svc.create_version(item_id)
    svc.upload_snapshot_csv(item_id, traffic_csv({"abc123": (10, 100)}))
    db.refresh(setup_published_item)
    revision = setup_published_item.packaging_revision
    cached = svc.registry.get(item_id)

    first = svc.confirm_delete(item_id, 1)
    second = svc.confirm_delete(item_id, 1)

    assert first == second
    assert first.is_active is True
    assert svc.registry.get(item_id) is cached
    db.refresh(setup_published_item)
    assert setup_published_item.packaging_revision == revision
    assert len(setup_published_item.packaging_history) == 1


def test_cached_state_is_refreshed_after_another_writer(db, setup_content_item):
    item_id = setup_content_item.id
    worker_a = ReconciliationService(db, registry=ContentStateRegistry())
    worker_b = ReconciliationService(db, registry=ContentStateRegistry())
    worker_b.require_state(item_id)

    worker_a.create_version(item_id, configuration=ConfigurationSnapshot(title="A"))
    state = worker_b.create_version(item_id, configuration=ConfigurationSnapshot(title="B"))

    assert [v.version_number for v in state.ledger.versions] == [1, 2]
    db.refresh(setup_content_item)
    assert [v["version_number"] for v in setup_content_item.packaging_history] == [1, 2]
    assert setup_content_item.packaging_revision == 2


def test_stale_write_is_refused(db, setup_content_item, reconciliation_service):
    item_id = setup_content_item.id
    stale = reconciliation_service.require_state(item_id)
    reconciliation_service.create_version(item_id)

    result = ContentStoreService(db).persist(stale, expected_revision=0)

    assert result.ok is False
    assert result.revision == 1
    db.refresh(setup_content_item)
    assert len(setup_content_item.packaging_history) == 1


def test_confirm_delete_unknown_version(setup_content_item, reconciliation_service):
    reconciliation_service.create_version(setup_content_item.id)
    with pytest.raises(VersionNotFoundError):
        reconciliation_service.confirm_delete(setup_content_item.id, 3)


def test_restore_with_seal_records_seal_first(setup_published_item, reconciliation_service, notifier, traffic_csv):
    svc = reconciliation_service
    item_id = setup_published_item.id
    svc.create_version(item_id)
    svc.create_version(item_id, configuration=ConfigurationSnapshot(title="B"))

    requester = UploadedSealRequester(TrafficCsvUpload(csv_text=traffic_csv({"abc123": (80, 900)})))
    state = asyncio.run(svc.restore_with_seal(item_id, 1, requester))

    seal = state.snapshots.latest()
    assert seal.version == 2
    assert state.ledger.active_version() == 1
    assert state.ledger.get_version(1).open_period.closing_snapshot_id == seal.id
    assert ("success", "Restored v.1") in _levels(notifier)


def test_restore_with_skipped_seal_warns(setup_published_item, reconciliation_service, notifier):
    svc = reconciliation_service
    item_id = setup_published_item.id
    svc.create_version(item_id)
    svc.create_version(item_id)

    state = asyncio.run(svc.restore_with_seal(item_id, 1, UploadedSealRequester(None)))

    assert state.ledger.active_version() == 1
    assert state.ledger.get_version(1).open_period.closing_snapshot_id is None
    assert _levels(notifier)[-1][0] == "warning"


def test_restore_with_bad_seal_csv_leaves_ledger_untouched(setup_published_item, reconciliation_service):
    svc = reconciliation_service
    item_id = setup_published_item.id
    svc.create_version(item_id)
    svc.create_version(item_id)

    requester = UploadedSealRequester(TrafficCsvUpload(csv_text="nonsense\n1\n"))
    with pytest.raises(MappingRequiredError):
        asyncio.run(svc.restore_with_seal(item_id, 1, requester))
    assert svc.require_state(item_id).ledger.active_version() == 2


def test_published_restore_without_seal_is_rejected(setup_published_item, reconciliation_service):
    svc = reconciliation_service
    item_id = setup_published_item.id
    svc.create_version(item_id)
    svc.create_version(item_id)
    with pytest.raises(SealRequiredError):
        svc.restore_version(item_id, 1)


def test_delete_snapshot_then_working_copy_reverts(setup_content_item, reconciliation_service, traffic_csv):
    svc = reconciliation_service
    item_id = setup_content_item.id
    svc.create_version(item_id)
    svc.upload_snapshot_csv(item_id, traffic_csv({"abc123": (10, 100)}))
    _, latest = svc.upload_snapshot_csv(item_id, traffic_csv({"abc123": (30, 300)}))

    state = svc.delete_snapshot(item_id, latest.id)
    assert len(state.snapshots) == 1
    assert state.working_copy.sources[0].views == 10


def test_load_view_uses_view_session(setup_content_item, reconciliation_service, traffic_csv):
    svc = reconciliation_service
    item_id = setup_content_item.id
    svc.create_version(item_id)
    svc.upload_snapshot_csv(item_id, traffic_csv({"abc123": (10, 100)}))

    view = asyncio.run(svc.load_view(item_id))
    assert view.origin == "snapshot"
    assert view.sources[0].views == 10
    assert svc.registry.view_session(item_id).view is view


def test_select_viewing_version(setup_content_item, reconciliation_service):
    svc = reconciliation_service
    item_id = setup_content_item.id
    svc.create_version(item_id)
    svc.create_version(item_id)

    state = svc.select_viewing_version(item_id, 1)
    assert state.ledger.viewing_version() == 1
    assert state.ledger.active_version() == 2

    with pytest.raises(VersionNotFoundError):
        svc.select_viewing_version(item_id, 9)
    assert svc.select_viewing_version(item_id, DRAFT).ledger.viewing_version() == DRAFT
