from uuid import UUID

from fastapi import Depends, HTTPException
from sqlalchemy.orm import Session

from packtrack.adapters.notification_sink import CollectingNotificationSink
from packtrack.core.app_state import state as app_state
from packtrack.core.errors import (
    ContentItemNotFoundError,
    LedgerError,
    MappingRequiredError,
    SnapshotNotFoundError,
    VersionNotFoundError,
)
from packtrack.db import get_db
from packtrack.models.content_item import ContentItem
from packtrack.services.content_item_service import ContentItemService
from packtrack.services.reconciliation_service import ReconciliationService


def get_content_item_by_id(
    content_item_id: UUID,
    db: Session = Depends(get_db),
) -> ContentItem:
    """FastAPI dependency to get a content item by ID."""
    item = ContentItemService(db).get_content_item(content_item_id)
    if item is None:
        raise HTTPException(status_code=404, detail="Content item not found")
    return item


def get_notifier() -> CollectingNotificationSink:
    """A fresh sink per request; its notifications are returned to the client."""
    return CollectingNotificationSink()


def get_reconciliation_service(
    db: Session = Depends(get_db),
    notifier: CollectingNotificationSink = Depends(get_notifier),
) -> ReconciliationService:
    return ReconciliationService(db, registry=app_state.registry, notifier=notifier)


def ledger_http_error(e: LedgerError) -> HTTPException:
    """Translate a ledger rule violation into the matching HTTP error."""
    if isinstance(e, (ContentItemNotFoundError, VersionNotFoundError, SnapshotNotFoundError)):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, MappingRequiredError):
        return HTTPException(
            status_code=422,
            detail={"code": "mapping_required", "message": str(e)},
        )
    return HTTPException(status_code=409, detail=str(e))
