"""Tests for ContentItemService."""

from uuid import uuid4

from packtrack.core.registry import ContentStateRegistry
from packtrack.core.version_ledger import ConfigurationSnapshot
from packtrack.schemas.content_item import ContentItemCreate, ContentItemUpdate
from packtrack.services.content_item_service import ContentItemService
from packtrack.services.reconciliation_service import ReconciliationService


def test_create_content_item(db, faker):
    svc = ContentItemService(db)
    title = faker.sentence(nb_words=4)
    item = svc.create_content_item(
        ContentItemCreate(title=title, packaging=ConfigurationSnapshot(title="Thumb test"))
    )
    assert item.id is not None
    assert item.title == title
    assert item.packaging["title"] == "Thumb test"
    assert item.is_draft is True
    assert item.is_published is False
    assert item.current_packaging_version == 1


def test_create_without_packaging_is_not_a_draft(db):
    item = ContentItemService(db).create_content_item(ContentItemCreate(title="Bare"))
    assert item.packaging == {}
    assert item.is_draft is False


def test_get_content_item_not_found(db):
    assert ContentItemService(db).get_content_item(uuid4()) is None


def test_published_items_only(db, setup_content_item, setup_published_item):
    items = ContentItemService(db).get_published_content_items()
    assert [i.id for i in items] == [setup_published_item.id]


def test_update_drops_cached_state(db, setup_content_item):
    registry = ContentStateRegistry()
    ReconciliationService(db, registry=registry).require_state(setup_content_item.id)
    assert registry.get(setup_content_item.id) is not None

    updated = ContentItemService(db, registry=registry).update_content_item(
        setup_content_item.id, ContentItemUpdate(published_video_id="dQw4w9WgXcQ")
    )

    assert updated.is_published is True
    assert registry.get(setup_content_item.id) is None


def test_update_unknown_item_returns_none(db):
    assert ContentItemService(db).update_content_item(uuid4(), ContentItemUpdate(title="x")) is None
