"""Pydantic schemas for content items."""

from __future__ import annotations

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from packtrack.core.version_ledger import ConfigurationSnapshot


class ContentItemCreate(BaseModel):
    """Request schema for creating a content item."""

    title: str = Field(..., min_length=1, max_length=512)
    published_video_id: str | None = Field(None, max_length=64)
    packaging: ConfigurationSnapshot | None = None


class ContentItemUpdate(BaseModel):
    """Request schema for updating a content item.

    ``packaging`` replaces the working packaging; it does not create a version.
    """

    title: str | None = Field(None, min_length=1, max_length=512)
    published_video_id: str | None = Field(None, max_length=64)
    packaging: ConfigurationSnapshot | None = None


class ContentItemRead(BaseModel):
    """Response schema for a content item."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    title: str
    published_video_id: str | None = None
    is_published: bool
    packaging: dict[str, Any]
    current_packaging_version: int
    is_draft: bool
    packaging_revision: int
    view_count: int | None = None
    like_count: int | None = None
    channel_title: str | None = None
    thumbnail_url: str | None = None
    metadata_refreshed_at: datetime | None = None
    created_at: datetime
    updated_at: datetime
