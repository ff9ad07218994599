"""Traffic snapshot model: one sealed traffic measurement of a content item."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from packtrack.db import Base
from packtrack.models.mixins import JSONType


class TrafficSnapshotRecord(Base):
    """Stored TrafficSnapshot, keyed by content item."""

    __tablename__ = "traffic_snapshots"
    __table_args__ = (
        Index("ix_traffic_snapshots_item_timestamp", "content_item_id", "timestamp"),
        Index("ix_traffic_snapshots_item_version", "content_item_id", "version"),
    )

    id = Column(String(64), primary_key=True)
    content_item_id = Column(
        UUID(as_uuid=True),
        ForeignKey("content_items.id", ondelete="CASCADE"),
        primary_key=True,
    )
    version = Column(Integer, nullable=False)
    timestamp = Column(DateTime(timezone=True), nullable=False)
    sources = Column(JSONType, nullable=False, default=list)
    total_row = Column(JSONType, nullable=True)
    summary = Column(JSONType, nullable=False, default=dict)
    label = Column(Text, nullable=True)
    closes_version_period = Column(JSONType, nullable=True)
    packaging_snapshot = Column(JSONType, nullable=True)
    is_packaging_deleted = Column(Boolean, nullable=False, default=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    content_item = relationship("ContentItem", back_populates="snapshots")
