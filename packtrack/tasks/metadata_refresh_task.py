"""Celery task for refreshing YouTube metadata of published content items."""

from __future__ import annotations

from uuid import UUID

from packtrack.commands.refresh_metadata_command import RefreshMetadataCommand
from packtrack.infra.celery_app import celery_app
from packtrack.infra.logging_config import get_logger
from packtrack.utils.db.db_session_helper import db_session

logger = get_logger("metadata_refresh")


@celery_app.task(name="packtrack.tasks.metadata_refresh_task.refresh_metadata_task")
def refresh_metadata_task(content_item_ids: list[str] | None = None) -> dict:
    """
    Refresh metadata for the given content items (all published items if None).
    """
    ids = None
    if content_item_ids is not None:
        ids = []
        for raw in content_item_ids:
            try:
                ids.append(UUID(raw))
            except ValueError:
                logger.warning("Invalid content_item_id for metadata refresh: %s", raw)

    with db_session() as db:
        result = RefreshMetadataCommand(db).execute(ids)

    logger.info(
        "Metadata refresh finished: updated=%d failed_batches=%d aborted=%s",
        result.updated,
        result.failed_batches,
        result.aborted,
    )
    return {
        "updated": result.updated,
        "failed_batches": result.failed_batches,
        "aborted": result.aborted,
        "skipped": [str(i) for i in result.skipped_ids],
    }
