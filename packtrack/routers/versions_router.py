"""Packaging versions API: ledger reads, create, restore and delete."""

from typing import Literal

from fastapi import APIRouter, Depends, Query

from packtrack.adapters.notification_sink import CollectingNotificationSink
from packtrack.adapters.seal_requester import UploadedSealRequester
from packtrack.core.content_state import ContentState
from packtrack.core.errors import ContentItemNotFoundError, LedgerError
from packtrack.core.version_labels import project_version_labels
from packtrack.infra.logging_config import get_logger
from packtrack.models.content_item import ContentItem
from packtrack.routers.utils.dependencies import (
    get_content_item_by_id,
    get_notifier,
    get_reconciliation_service,
    ledger_http_error,
)
from packtrack.schemas.versions import (
    DeleteImpact,
    LedgerRead,
    VersionCreate,
    VersionRestore,
)
from packtrack.services.reconciliation_service import ReconciliationService

logger = get_logger("versions")

router = APIRouter(
    prefix="/content-items",
    tags=["versions"],
    responses={404: {"description": "Not found"}},
)

LabelOrder = Literal["version", "activation"]


def ledger_read(
    state: ContentState,
    notifier: CollectingNotificationSink | None = None,
    order_by: LabelOrder = "version",
) -> LedgerRead:
    ledger = state.ledger
    return LedgerRead(
        content_item_id=state.content_item_id,
        active_version=ledger.active_version(),
        viewing_version=ledger.viewing_version(),
        is_draft=ledger.is_draft,
        has_unsaved_changes=state.has_unsaved_packaging(),
        current_packaging_version=ledger.current_packaging_version,
        versions=list(ledger.versions),
        labels=project_version_labels(ledger, order_by=order_by),
        notifications=list(notifier.notifications) if notifier else [],
    )


@router.get("/{content_item_id}/versions", response_model=LedgerRead)
def get_versions(
    order_by: LabelOrder = Query("version"),
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> LedgerRead:
    """Version ledger of a content item with its display labels."""
    try:
        current = svc.require_state(item.id)
    except LedgerError as e:
        raise ledger_http_error(e)
    return ledger_read(current, order_by=order_by)


@router.post("/{content_item_id}/versions", response_model=LedgerRead, status_code=201)
def create_version(
    data: VersionCreate,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> LedgerRead:
    """Save the working packaging as a new version, sealing the active one if a CSV is sent."""
    try:
        seal = (
            svc.parse_upload(data.seal.csv_text, data.seal.mapping)
            if data.seal is not None
            else None
        )
        new_state = svc.create_version(
            item.id, configuration=data.configuration, seal=seal, clone_of=data.clone_of
        )
    except LedgerError as e:
        raise ledger_http_error(e)
    return ledger_read(new_state, notifier)


@router.post("/{content_item_id}/versions/{version_number}/restore", response_model=LedgerRead)
async def restore_version(
    version_number: int,
    data: VersionRestore,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> LedgerRead:
    """
    Make an earlier version active again.

    Published content needs either ``seal`` (the traffic export closing the
    active version's period) or ``skip_seal``; with neither the request is
    rejected with 409.
    """
    try:
        if data.skip_seal or data.seal is not None:
            requester = UploadedSealRequester(None if data.skip_seal else data.seal)
            new_state = await svc.restore_with_seal(item.id, version_number, requester)
        else:
            new_state = svc.restore_version(item.id, version_number)
    except LedgerError as e:
        raise ledger_http_error(e)
    return ledger_read(new_state, notifier)


@router.get(
    "/{content_item_id}/versions/{version_number}/delete-impact",
    response_model=DeleteImpact,
)
def get_delete_impact(
    version_number: int,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> DeleteImpact:
    """What a delete would orphan; the snapshots themselves are kept."""
    try:
        return svc.confirm_delete(item.id, version_number)
    except LedgerError as e:
        raise ledger_http_error(e)


@router.delete("/{content_item_id}/versions/{version_number}", response_model=LedgerRead)
def delete_version(
    version_number: int,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> LedgerRead:
    try:
        new_state = svc.delete_version(item.id, version_number)
    except LedgerError as e:
        raise ledger_http_error(e)
    return ledger_read(new_state, notifier)


@router.post("/{content_item_id}/reload", response_model=LedgerRead)
def reload_state(
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
) -> LedgerRead:
    """Drop locally applied state and read the ledger back from the store."""
    current = svc.reload(item.id)
    if current is None:
        raise ledger_http_error(ContentItemNotFoundError(item.id))
    logger.info("Reloaded content item %s from the store", item.id)
    return ledger_read(current)
