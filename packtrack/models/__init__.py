from packtrack.models.content_item import ContentItem
from packtrack.models.traffic_snapshot import TrafficSnapshotRecord

__all__ = [
    "ContentItem",
    "TrafficSnapshotRecord",
]
