"""Content items API: CRUD plus draft saves of the working packaging."""

from fastapi import APIRouter, Depends, HTTPException
from fastapi_pagination import Page, Params
from fastapi_pagination.ext.sqlalchemy import paginate
from sqlalchemy.orm import Session

from packtrack.adapters.notification_sink import CollectingNotificationSink
from packtrack.core.app_state import state as app_state
from packtrack.core.errors import LedgerError
from packtrack.db import get_db
from packtrack.infra.logging_config import get_logger
from packtrack.models.content_item import ContentItem
from packtrack.routers.utils.dependencies import (
    get_content_item_by_id,
    get_notifier,
    get_reconciliation_service,
    ledger_http_error,
)
from packtrack.routers.versions_router import ledger_read
from packtrack.schemas.content_item import (
    ContentItemCreate,
    ContentItemRead,
    ContentItemUpdate,
)
from packtrack.schemas.versions import DraftSave, LedgerRead
from packtrack.services.content_item_service import ContentItemService
from packtrack.services.reconciliation_service import ReconciliationService

logger = get_logger("content_items")

router = APIRouter(
    prefix="/content-items",
    tags=["content-items"],
    responses={404: {"description": "Not found"}},
)


@router.get("", response_model=Page[ContentItemRead])
def list_content_items(
    params: Params = Depends(),
    db: Session = Depends(get_db),
) -> Page[ContentItemRead]:
    """List content items, newest first."""
    query = ContentItemService(db).get_content_items_query()
    return paginate(query, params=params)


@router.post("", response_model=ContentItemRead, status_code=201)
def create_content_item(
    data: ContentItemCreate,
    db: Session = Depends(get_db),
) -> ContentItemRead:
    item = ContentItemService(db).create_content_item(data)
    logger.info("Created content item %s", item.id)
    return item


@router.get("/{content_item_id}", response_model=ContentItemRead)
def get_content_item(
    item: ContentItem = Depends(get_content_item_by_id),
) -> ContentItemRead:
    return item


@router.patch("/{content_item_id}", response_model=ContentItemRead)
def update_content_item(
    data: ContentItemUpdate,
    item: ContentItem = Depends(get_content_item_by_id),
    db: Session = Depends(get_db),
) -> ContentItemRead:
    """Update title, publish status or working packaging. Never creates a version."""
    updated = ContentItemService(db, registry=app_state.registry).update_content_item(
        item.id, data
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Content item not found")
    return updated


@router.post("/{content_item_id}/draft", response_model=LedgerRead)
def save_draft(
    data: DraftSave,
    item: ContentItem = Depends(get_content_item_by_id),
    svc: ReconciliationService = Depends(get_reconciliation_service),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> LedgerRead:
    """Mark the working packaging as an unsaved draft."""
    try:
        new_state = svc.save_draft(item.id, data.packaging)
    except LedgerError as e:
        raise ledger_http_error(e)
    return ledger_read(new_state, notifier)
