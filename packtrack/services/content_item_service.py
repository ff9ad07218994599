"""Service for content item CRUD."""

from __future__ import annotations

from typing import List, Optional
from uuid import UUID

from sqlalchemy.orm import Query, Session

from packtrack.core.registry import ContentStateRegistry
from packtrack.models.content_item import ContentItem
from packtrack.schemas.content_item import ContentItemCreate, ContentItemUpdate


class ContentItemService:
    """Manages content items; the packaging ledger itself goes through reconciliation."""

    def __init__(
        self, db: Session, registry: Optional[ContentStateRegistry] = None
    ) -> None:
        self.db = db
        self.registry = registry

    def get_content_item(self, content_item_id: UUID) -> Optional[ContentItem]:
        """Fetch a content item by ID."""
        return (
            self.db.query(ContentItem).filter(ContentItem.id == content_item_id).first()
        )

    def get_content_items(self, skip: int = 0, limit: int = 100) -> List[ContentItem]:
        return self.get_content_items_query().offset(skip).limit(limit).all()

    def get_content_items_query(self) -> Query[ContentItem]:
        """Get a query for content items (for pagination)."""
        return self.db.query(ContentItem).order_by(ContentItem.created_at.desc())

    def get_published_content_items(self) -> List[ContentItem]:
        return (
            self.db.query(ContentItem)
            .filter(ContentItem.published_video_id.isnot(None))
            .order_by(ContentItem.created_at)
            .all()
        )

    def create_content_item(self, data: ContentItemCreate) -> ContentItem:
        packaging = data.packaging.model_dump(mode="json") if data.packaging else {}
        item = ContentItem(
            title=data.title,
            published_video_id=data.published_video_id,
            packaging=packaging,
            packaging_history=[],
            current_packaging_version=1,
            is_draft=bool(packaging),
        )
        self.db.add(item)
        self.db.commit()
        self.db.refresh(item)
        return item

    def update_content_item(
        self, content_item_id: UUID, data: ContentItemUpdate
    ) -> Optional[ContentItem]:
        """Update fields that live outside the ledger. Returns None if not found."""
        item = self.get_content_item(content_item_id)
        if item is None:
            return None

        updates = data.model_dump(exclude_unset=True)
        if "title" in updates and updates["title"] is not None:
            item.title = updates["title"]
        if "published_video_id" in updates:
            item.published_video_id = updates["published_video_id"]
        if data.packaging is not None:
            item.packaging = data.packaging.model_dump(mode="json")
        item.packaging_revision = (item.packaging_revision or 0) + 1

        self.db.commit()
        self.db.refresh(item)
        if self.registry is not None:
            self.registry.drop(content_item_id)
        return item
