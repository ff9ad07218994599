"""Content item model: one published (or soon to be published) video."""

from __future__ import annotations

import uuid

from sqlalchemy import Boolean, Column, DateTime, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import relationship

from packtrack.db import Base
from packtrack.models.mixins import JSONType, TimestampMixin


class ContentItem(Base, TimestampMixin):
    """Content item with its packaging ledger and working-copy traffic."""

    __tablename__ = "content_items"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    title = Column(String(512), nullable=False)
    published_video_id = Column(String(64), nullable=True, index=True)

    # Packaging ledger
    packaging = Column(JSONType, nullable=False, default=dict)
    packaging_history = Column(JSONType, nullable=False, default=list)
    current_packaging_version = Column(Integer, nullable=False, default=1)
    is_draft = Column(Boolean, nullable=False, default=False)
    packaging_revision = Column(Integer, nullable=False, default=0)

    # Working copy of traffic (unsealed)
    traffic_sources = Column(JSONType, nullable=False, default=list)
    traffic_total_row = Column(JSONType, nullable=True)
    traffic_updated_at = Column(DateTime(timezone=True), nullable=True)

    # Refreshed from the YouTube Data API
    view_count = Column(Integer, nullable=True)
    like_count = Column(Integer, nullable=True)
    channel_title = Column(String(256), nullable=True)
    thumbnail_url = Column(Text, nullable=True)
    metadata_refreshed_at = Column(DateTime(timezone=True), nullable=True)

    snapshots = relationship(
        "TrafficSnapshotRecord",
        back_populates="content_item",
        cascade="all, delete-orphan",
        order_by="TrafficSnapshotRecord.timestamp",
    )

    @property
    def is_published(self) -> bool:
        return bool(self.published_video_id)
