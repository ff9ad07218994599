"""Domain errors raised by the packaging ledgers and their services."""

from __future__ import annotations


class LedgerError(ValueError):
    """Base class for ledger rule violations."""


class ContentItemNotFoundError(LedgerError):
    def __init__(self, content_item_id) -> None:
        super().__init__(f"Content item not found: {content_item_id}")
        self.content_item_id = content_item_id


class VersionNotFoundError(LedgerError):
    def __init__(self, version_number: int) -> None:
        super().__init__(f"Packaging version not found: {version_number}")
        self.version_number = version_number


class SnapshotNotFoundError(LedgerError):
    def __init__(self, snapshot_id: str) -> None:
        super().__init__(f"Traffic snapshot not found: {snapshot_id}")
        self.snapshot_id = snapshot_id


class SnapshotDeleteNotAllowedError(LedgerError):
    """Only the most recent snapshot of a version may be deleted."""

    def __init__(self, snapshot_id: str, latest_id: str) -> None:
        super().__init__(
            f"Snapshot {snapshot_id} is not the latest for its version "
            f"(latest is {latest_id}); delete newer snapshots first"
        )
        self.snapshot_id = snapshot_id
        self.latest_id = latest_id


class SealRequiredError(LedgerError):
    """Published content needs a sealing snapshot (or an explicit skip) to restore."""


class MappingRequiredError(LedgerError):
    """CSV ingestion produced no rows; the caller must supply a column mapping."""


class NoAttributableVersionError(LedgerError):
    """Traffic was uploaded while no packaging version owns the open period."""


class QuotaExceededError(RuntimeError):
    """The YouTube Data API refused the request because of quota limits."""
