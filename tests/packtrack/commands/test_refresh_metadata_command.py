"""Tests for RefreshMetadataCommand."""

import requests

from packtrack.adapters.notification_sink import CollectingNotificationSink
from packtrack.adapters.youtube_client import VideoMetadata
from packtrack.commands.refresh_metadata_command import RefreshMetadataCommand
from packtrack.core.errors import QuotaExceededError
from packtrack.models.content_item import ContentItem


class FakeYouTubeClient:
    """Answers from a script: each call pops the next response or exception."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def fetch_videos(self, video_ids):
        ids = list(video_ids)
        self.calls.append(ids)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return {vid: response(vid) for vid in ids}


def _meta(video_id):
    return VideoMetadata(
        video_id=video_id,
        title=f"Video {video_id}",
        channel_title="Workshop",
        thumbnail_url=f"https://i.example.com/{video_id}.jpg",
        view_count=1000,
        like_count=40,
    )


def _published(db, faker, count):
    items = []
    for _ in range(count):
        item = ContentItem(
            title=faker.sentence(nb_words=3),
            published_video_id=faker.lexify("???????????"),
            packaging={},
            packaging_history=[],
        )
        db.add(item)
        items.append(item)
    db.commit()
    return items


def test_refresh_updates_all_batches(db, faker):
    items = _published(db, faker, 3)
    client = FakeYouTubeClient(_meta, _meta)
    notifier = CollectingNotificationSink()

    result = RefreshMetadataCommand(db, client=client, notifier=notifier, batch_size=2).execute()

    assert result.updated == 3
    assert result.aborted is False
    assert [len(c) for c in client.calls] == [2, 1]
    for item in items:
        db.refresh(item)
        assert item.view_count == 1000
        assert item.channel_title == "Workshop"
        assert item.metadata_refreshed_at is not None
    assert notifier.notifications[-1].level == "success"


def test_quota_error_aborts_and_keeps_committed_batches(db, faker):
    items = _published(db, faker, 4)
    client = FakeYouTubeClient(_meta, QuotaExceededError("quota"))
    notifier = CollectingNotificationSink()

    result = RefreshMetadataCommand(db, client=client, notifier=notifier, batch_size=2).execute()

    assert result.aborted is True
    assert result.updated == 2
    assert len(result.skipped_ids) == 2
    refreshed = [i for i in items if db.get(ContentItem, i.id).view_count == 1000]
    assert len(refreshed) == 2
    assert notifier.notifications[-1].level == "error"
    assert notifier.notifications[-1].message == "YouTube API quota exceeded"


def test_failed_batch_is_counted_and_skipped(db, faker):
    _published(db, faker, 2)
    client = FakeYouTubeClient(requests.ConnectionError("reset"), _meta)

    result = RefreshMetadataCommand(
        db, client=client, notifier=CollectingNotificationSink(), batch_size=1
    ).execute()

    assert result.failed_batches == 1
    assert result.updated == 1


def test_unpublished_items_are_ignored(db, setup_content_item):
    client = FakeYouTubeClient()
    result = RefreshMetadataCommand(db, client=client, batch_size=10).execute()
    assert result.updated == 0
    assert client.calls == []
