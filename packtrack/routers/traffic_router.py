"""Traffic API: snapshots, the working copy and resolved traffic views."""

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate

from packtrack.adapters.notification_sink import CollectingNotificationSink
from packtrack.core.content_state import ContentState, TrafficUpload
from packtrack.core.delta_engine import TrafficView, TrafficViewRequest, ViewMode
from packtrack.core.errors import LedgerError
from packtrack.core.snapshot_ledger import TrafficSnapshot
from packtrack.core.version_ledger import DRAFT, VersionRef
from packtrack.infra.logging_config import get_logger
from packtrack.models.content_item import ContentItem
from packtrack.routers.utils.dependencies import (
    get_content_item_by_id,
    get_notifier,
    get_reconciliation_service,
    ledger_http_error,
)
from packtrack.schemas.traffic import (
    SnapshotLabelUpdate,
    SnapshotMutationRead,
    SnapshotRead,
    SnapshotUpload,
    TrafficVersionsRead,
    ViewStateRead,
    ViewUpdate,
    WorkingCopyUpdate,
)
from packtrack.services.reconciliation_service import ReconciliationService

logger = get_logger("traffic")

router = APIRouter(
    prefix="/content-items",
    tags=["traffic"],
    responses={404: {"description": "Not found"}},
)

VERSION_PATTERN = r"^(\d+|draft)$"


def _version_ref(value: Optional[str]) -> Optional[VersionRef]:
    if value is None:
        return None
    return DRAFT if value == DRAFT else int(value)


def _mutation_read(
    state: ContentState,
    notifier: CollectingNotificationSink,
    snapshot: Optional[TrafficSnapshot] = None,
) -> SnapshotMutationRead:
    return SnapshotMutationRead(
        snapshot=snapshot,
        working_copy=state.working_copy,
        notifications=list(notifier.notifications),
    )


@router.get("/{content_item_id}/traffic", response_model=TrafficView)
def get_traffic(
    version: Optional[str] = Query(None, pattern=VERSION_PATTERN),
    period_index: Optional[int] = Query(None, ge=0),
    snapshot_id: Optional[str] = Query(None),
    mode: ViewMode = Query(ViewMode.CUMULATIVE),
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> TrafficView:
    """Resolve the traffic to show for a version, activation period or snapshot."""
    request = TrafficViewRequest(
        version=_version_ref(version),
        period_index=period_index,
        snapshot_id=snapshot_id,
        mode=mode,
    )
    return svc.resolve_view(item.id, request)


@router.get("/{content_item_id}/traffic/view", response_model=TrafficView)
async def load_traffic_view(
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> TrafficView:
    """Load the view for the item's current viewing context."""
    view = await svc.load_view(item.id)
    if view is None:
        raise HTTPException(
            status_code=409, detail="Viewing context changed while loading; retry"
        )
    return view


@router.patch("/{content_item_id}/traffic/view", response_model=ViewStateRead)
def update_traffic_view(
    data: ViewUpdate,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> ViewStateRead:
    """Change what the traffic panel looks at. Only fields that are sent apply."""
    session = svc.registry.view_session(item.id)
    sent = data.model_fields_set
    try:
        if "version" in sent or "period_index" in sent:
            version = data.version if "version" in sent else session.version
            period_index = data.period_index if "period_index" in sent else None
            svc.select_viewing_version(item.id, version)
            session.select_version(version, period_index)
        if "snapshot_id" in sent:
            session.select_snapshot(data.snapshot_id)
        if "mode" in sent and data.mode is not None:
            session.set_view_mode(data.mode)
    except LedgerError as e:
        raise ledger_http_error(e)
    return ViewStateRead(
        context_key=session.context_key,
        mode=session.mode,
        version=session.version,
        period_index=session.period_index,
        snapshot_id=session.snapshot_id,
    )


@router.get("/{content_item_id}/traffic/versions", response_model=TrafficVersionsRead)
def get_traffic_versions(
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> TrafficVersionsRead:
    """One row per version activation, deleted versions included."""
    return TrafficVersionsRead(items=svc.traffic_versions(item.id))


@router.get("/{content_item_id}/traffic/snapshots", response_model=Page[SnapshotRead])
def list_snapshots(
    params: Params = Depends(),
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> Page[SnapshotRead]:
    """Stored snapshots, newest first."""
    query = svc.store.get_snapshots_query(item.id)
    return paginate(query, params=params)


@router.post(
    "/{content_item_id}/traffic/snapshots",
    response_model=SnapshotMutationRead,
    status_code=201,
)
def upload_snapshot(
    data: SnapshotUpload,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> SnapshotMutationRead:
    """Record a traffic export against the version owning the open period."""
    try:
        new_state, snapshot = svc.upload_snapshot_csv(
            item.id, data.csv_text, mapping=data.mapping, label=data.label
        )
    except LedgerError as e:
        raise ledger_http_error(e)
    logger.info(
        "Recorded snapshot %s for content item %s (version %s)",
        snapshot.id,
        item.id,
        snapshot.version,
    )
    return _mutation_read(new_state, notifier, snapshot)


@router.patch(
    "/{content_item_id}/traffic/snapshots/{snapshot_id}",
    response_model=SnapshotMutationRead,
)
def relabel_snapshot(
    snapshot_id: str,
    data: SnapshotLabelUpdate,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> SnapshotMutationRead:
    try:
        new_state = svc.relabel_snapshot(item.id, snapshot_id, data.label)
    except LedgerError as e:
        raise ledger_http_error(e)
    return _mutation_read(new_state, notifier, new_state.snapshots.get(snapshot_id))


@router.delete(
    "/{content_item_id}/traffic/snapshots/{snapshot_id}",
    response_model=SnapshotMutationRead,
)
def delete_snapshot(
    snapshot_id: str,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> SnapshotMutationRead:
    """Delete a snapshot. Only the newest snapshot of its version may go."""
    try:
        new_state = svc.delete_snapshot(item.id, snapshot_id)
    except LedgerError as e:
        raise ledger_http_error(e)
    return _mutation_read(new_state, notifier)


@router.put("/{content_item_id}/traffic/working-copy", response_model=SnapshotMutationRead)
def update_working_copy(
    data: WorkingCopyUpdate,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> SnapshotMutationRead:
    """Replace the unsealed running totals without recording a snapshot."""
    traffic = TrafficUpload(sources=tuple(data.sources), total_row=data.total_row)
    try:
        new_state = svc.update_working_copy(item.id, traffic)
    except LedgerError as e:
        raise ledger_http_error(e)
    return _mutation_read(new_state, notifier)
