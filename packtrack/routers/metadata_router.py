"""Metadata API: trigger the batch YouTube metadata refresh."""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter
from pydantic import BaseModel

from packtrack.infra.logging_config import get_logger
from packtrack.tasks.metadata_refresh_task import refresh_metadata_task

logger = get_logger("metadata")

router = APIRouter(
    prefix="/metadata",
    tags=["metadata"],
)


class MetadataRefreshRequest(BaseModel):
    """Items to refresh; all published items when omitted."""

    content_item_ids: Optional[List[UUID]] = None


class MetadataRefreshResponse(BaseModel):
    task_id: str
    status: str = "queued"


@router.post("/refresh", response_model=MetadataRefreshResponse, status_code=202)
def refresh_metadata(data: MetadataRefreshRequest) -> MetadataRefreshResponse:
    """Enqueue the refresh task. Results are reported by the worker."""
    ids = [str(i) for i in data.content_item_ids] if data.content_item_ids else None
    result = refresh_metadata_task.delay(ids)
    logger.info("Queued metadata refresh %s for %s", result.id, ids or "all published items")
    return MetadataRefreshResponse(task_id=str(result.id))
