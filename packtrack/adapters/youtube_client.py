"""Minimal YouTube Data API client for video metadata."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Optional

import requests

from packtrack.config import get_settings
from packtrack.core.errors import QuotaExceededError
from packtrack.infra.logging_config import get_logger

logger = get_logger("youtube_client")

VIDEOS_PATH = "/videos"
MAX_IDS_PER_REQUEST = 50


@dataclass
class VideoMetadata:
    """Subset of a videos.list item the refresh job stores."""

    video_id: str
    title: Optional[str] = None
    channel_title: Optional[str] = None
    thumbnail_url: Optional[str] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None


def _is_quota_error(status_code: int, body: str) -> bool:
    return status_code == 403 or "quota" in body.lower()


class YouTubeClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key or settings.youtube_api_key
        self._base_url = (base_url or settings.youtube_api_url).rstrip("/")
        self._timeout = timeout or settings.youtube_request_timeout_seconds

    def fetch_videos(self, video_ids: Iterable[str]) -> dict[str, VideoMetadata]:
        """
        Fetch metadata for up to 50 video ids.

        Raises:
            QuotaExceededError: on HTTP 403 or a quota message.
            requests.RequestException: on transport errors and other HTTP errors.
        """
        ids = list(dict.fromkeys(video_ids))[:MAX_IDS_PER_REQUEST]
        if not ids:
            return {}
        if not self._api_key:
            raise ValueError("YOUTUBE_API_KEY is not configured")

        resp = requests.get(
            f"{self._base_url}{VIDEOS_PATH}",
            params={
                "part": "snippet,statistics",
                "id": ",".join(ids),
                "key": self._api_key,
            },
            timeout=self._timeout,
        )
        if resp.status_code != 200:
            body = resp.text[:500] if resp.text else ""
            if _is_quota_error(resp.status_code, body):
                raise QuotaExceededError("YouTube API quota exceeded")
            resp.raise_for_status()

        items = resp.json().get("items", [])
        logger.info("Fetched metadata for %d of %d videos", len(items), len(ids))
        return {item["id"]: self._to_metadata(item) for item in items if "id" in item}

    @staticmethod
    def _to_metadata(item: dict) -> VideoMetadata:
        snippet = item.get("snippet") or {}
        stats = item.get("statistics") or {}
        thumbnails = snippet.get("thumbnails") or {}
        best = thumbnails.get("maxres") or thumbnails.get("high") or thumbnails.get("default") or {}
        return VideoMetadata(
            video_id=item["id"],
            title=snippet.get("title"),
            channel_title=snippet.get("channelTitle"),
            thumbnail_url=best.get("url"),
            view_count=int(stats["viewCount"]) if "viewCount" in stats else None,
            like_count=int(stats["likeCount"]) if "likeCount" in stats else None,
        )
