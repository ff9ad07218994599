from packtrack.services.content_item_service import ContentItemService
from packtrack.services.content_store_service import ContentStoreService, PersistResult
from packtrack.services.reconciliation_service import ReconciliationService

__all__ = [
    "ContentItemService",
    "ContentStoreService",
    "PersistResult",
    "ReconciliationService",
]
