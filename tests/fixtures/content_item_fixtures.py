"""Fixtures for content items, traffic exports and the reconciliation service."""

import pytest

from packtrack.adapters.notification_sink import CollectingNotificationSink
from packtrack.core.registry import ContentStateRegistry
from packtrack.models.content_item import ContentItem
from packtrack.services.reconciliation_service import ReconciliationService

CSV_HEADER = (
    "Traffic source,Source type,Source title,Impressions,"
    "Impressions click-through rate (%),Views,Average view duration,Watch time (hours)"
)


def build_traffic_csv(rows, total=None):
    """Render an analytics export; ``rows`` maps video id to (views, impressions)."""
    lines = [CSV_HEADER]
    for video_id, (views, impressions) in rows.items():
        ctr = round(views / impressions * 100, 2) if impressions else 0
        lines.append(
            f"YT_RELATED.{video_id},Suggested videos,Video {video_id},"
            f"{impressions},{ctr},{views},0:02:30,{views / 20:.1f}"
        )
    if total is not None:
        views, impressions = total
        lines.append(f"Total,,,{impressions},0,{views},0:02:00,{views / 20:.1f}")
    return "\n".join(lines) + "\n"


@pytest.fixture(scope="function")
def traffic_csv():
    return build_traffic_csv


@pytest.fixture(scope="function")
def setup_content_item(db, faker):
    """An unpublished content item with working packaging and no versions."""
    item = ContentItem(
        title=faker.sentence(nb_words=5),
        published_video_id=None,
        packaging={"title": faker.sentence(nb_words=6), "tags": ["howto"]},
        packaging_history=[],
        current_packaging_version=1,
        is_draft=True,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture(scope="function")
def setup_published_item(db, faker):
    """A published content item with working packaging and no versions."""
    item = ContentItem(
        title=faker.sentence(nb_words=5),
        published_video_id=faker.lexify("???????????"),
        packaging={"title": faker.sentence(nb_words=6)},
        packaging_history=[],
        current_packaging_version=1,
        is_draft=True,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture(scope="function")
def notifier():
    return CollectingNotificationSink()


@pytest.fixture(scope="function")
def reconciliation_service(db, notifier):
    return ReconciliationService(db, registry=ContentStateRegistry(), notifier=notifier)
