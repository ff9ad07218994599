"""Command to refresh YouTube metadata for published content items in batches."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional
from uuid import UUID

import requests
from sqlalchemy.orm import Session

from packtrack.adapters.base import BaseNotificationSink
from packtrack.adapters.notification_sink import LoggingNotificationSink
from packtrack.adapters.youtube_client import VideoMetadata, YouTubeClient
from packtrack.config import get_settings
from packtrack.core.errors import QuotaExceededError
from packtrack.models.content_item import ContentItem
from packtrack.services.content_item_service import ContentItemService


@dataclass
class RefreshResult:
    """Outcome of one refresh run."""

    updated: int = 0
    failed_batches: int = 0
    aborted: bool = False
    skipped_ids: List[UUID] = field(default_factory=list)


class RefreshMetadataCommand:
    """
    Refresh view/like counts, channel title and thumbnail of published items.

    Each batch is committed on its own. A quota error stops the run: batches
    already committed stay, the rest are reported as skipped.
    """

    def __init__(
        self,
        db: Session,
        client: Optional[YouTubeClient] = None,
        notifier: Optional[BaseNotificationSink] = None,
        batch_size: Optional[int] = None,
    ) -> None:
        self.db = db
        self.client = client or YouTubeClient()
        self.notifier = notifier or LoggingNotificationSink()
        self.batch_size = batch_size or get_settings().metadata_refresh_batch_size
        self.logger = logging.getLogger(__name__)

    def execute(self, content_item_ids: Optional[List[UUID]] = None) -> RefreshResult:
        """
        Run the refresh.

        Args:
            content_item_ids: Restrict the run to these items; all published items if None.

        Returns:
            RefreshResult with counts and whether the run was aborted.
        """
        items = self._get_items(content_item_ids)
        result = RefreshResult()
        if not items:
            self.logger.debug("No published content items to refresh")
            return result

        batches = [
            items[i : i + self.batch_size] for i in range(0, len(items), self.batch_size)
        ]
        for index, batch in enumerate(batches):
            try:
                metadata = self.client.fetch_videos(i.published_video_id for i in batch)
            except QuotaExceededError:
                remaining = [i.id for b in batches[index:] for i in b]
                self.logger.warning(
                    "YouTube quota exceeded; aborting refresh with %d items left",
                    len(remaining),
                )
                self.notifier.error("YouTube API quota exceeded")
                result.aborted = True
                result.skipped_ids = remaining
                return result
            except requests.RequestException as e:
                self.logger.warning("Metadata batch %d failed: %s", index, e)
                result.failed_batches += 1
                continue

            result.updated += self._apply_batch(batch, metadata)

        if result.updated:
            self.notifier.success(f"Refreshed metadata for {result.updated} video(s)")
        return result

    def _get_items(self, content_item_ids: Optional[List[UUID]]) -> List[ContentItem]:
        items = ContentItemService(self.db).get_published_content_items()
        if content_item_ids is not None:
            wanted = set(content_item_ids)
            items = [i for i in items if i.id in wanted]
        return items

    def _apply_batch(
        self, batch: List[ContentItem], metadata: dict[str, VideoMetadata]
    ) -> int:
        now = datetime.now(timezone.utc)
        updated = 0
        for item in batch:
            meta = metadata.get(item.published_video_id)
            if meta is None:
                continue
            item.view_count = meta.view_count
            item.like_count = meta.like_count
            item.channel_title = meta.channel_title
            item.thumbnail_url = meta.thumbnail_url
            item.metadata_refreshed_at = now
            updated += 1
        self.db.commit()
        return updated
