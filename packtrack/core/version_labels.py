"""Display projections over the ledgers.

Nothing here feeds back into ledger state.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict

from packtrack.core.snapshot_ledger import SnapshotLedger
from packtrack.core.version_ledger import PackagingVersion, VersionLedger

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class VersionLabel(BaseModel):
    model_config = ConfigDict(frozen=True)

    canonical_id: int
    version_number: int
    visual_number: int
    label: str
    is_active: bool
    is_viewing: bool
    member_versions: tuple[int, ...]
    last_activated_at: datetime | None = None


class TrafficVersionRow(BaseModel):
    """One selectable row of the traffic view: a version during one activation."""

    model_config = ConfigDict(frozen=True)

    key: str
    version_number: int
    period_index: int | None = None
    label: str
    title: str = ""
    start_date: datetime | None = None
    end_date: datetime | None = None
    is_active: bool = False
    is_deleted: bool = False
    snapshot_count: int = 0
    restoration_index: int = 0
    show_restored: bool = False


def version_label(canonical_id: int) -> str:
    return f"v.{canonical_id}"


def project_version_labels(
    ledger: VersionLedger,
    order_by: Literal["version", "activation"] = "version",
) -> list[VersionLabel]:
    """Collapse clone groups into one row each.

    A group is represented by its active member if it has one, otherwise by
    its highest version number. The active row comes first; the rest follow
    by version number (or by last activation) descending.
    """
    active = ledger.active_version()
    viewing = ledger.viewing_version()

    groups: dict[int, list[PackagingVersion]] = {}
    for version in ledger.versions:
        groups.setdefault(version.canonical_id, []).append(version)

    visual_numbers = {cid: i + 1 for i, cid in enumerate(sorted(groups))}

    labels = []
    for canonical_id, members in groups.items():
        representative = next(
            (m for m in members if m.version_number == active),
            max(members, key=lambda m: m.version_number),
        )
        labels.append(
            VersionLabel(
                canonical_id=canonical_id,
                version_number=representative.version_number,
                visual_number=visual_numbers[canonical_id],
                label=version_label(canonical_id),
                is_active=representative.version_number == active,
                is_viewing=any(m.version_number == viewing for m in members),
                member_versions=tuple(m.version_number for m in members),
                last_activated_at=representative.last_activated_at,
            )
        )

    if order_by == "activation":
        labels.sort(key=lambda row: row.last_activated_at or _EPOCH, reverse=True)
    else:
        labels.sort(key=lambda row: row.version_number, reverse=True)
    labels.sort(key=lambda row: not row.is_active)
    return labels


def project_traffic_versions(
    ledger: VersionLedger,
    snapshots: SnapshotLedger,
    buffer: timedelta = timedelta(seconds=5),
) -> list[TrafficVersionRow]:
    """Expand versions into one row per activation period.

    Closed periods without snapshots are hidden, though every live version
    keeps at least its newest row. Versions that were deleted but still own
    snapshots get a "packaging deleted" placeholder row.
    """
    rows: list[TrafficVersionRow] = []

    for version in ledger.versions:
        counts: dict[int, int] = {}
        for snapshot in snapshots.for_version(version.version_number):
            index = version.period_index_at(snapshot.timestamp, buffer)
            if index is not None:
                counts[index] = counts.get(index, 0) + 1

        version_rows = []
        for index, period in enumerate(version.active_periods):
            if index > 0 and not period.is_open and not counts.get(index):
                continue
            version_rows.append(
                TrafficVersionRow(
                    key=f"v{version.version_number}-p{version.ordinal_of(index)}",
                    version_number=version.version_number,
                    period_index=index,
                    label=version_label(version.canonical_id),
                    title=version.configuration_snapshot.title,
                    start_date=period.start_date,
                    end_date=period.end_date,
                    is_active=period.is_open,
                    snapshot_count=counts.get(index, 0),
                    restoration_index=version.ordinal_of(index),
                )
            )
        if not version.active_periods:
            version_rows.append(
                TrafficVersionRow(
                    key=f"v{version.version_number}",
                    version_number=version.version_number,
                    label=version_label(version.canonical_id),
                    title=version.configuration_snapshot.title,
                    snapshot_count=len(snapshots.for_version(version.version_number)),
                )
            )
        if len(version_rows) > 1:
            version_rows = [r.model_copy(update={"show_restored": True}) for r in version_rows]
        rows.extend(version_rows)

    live = {v.version_number for v in ledger.versions}
    for number in snapshots.versions():
        if number in live:
            continue
        history = snapshots.for_version(number)
        preserved = next(
            (s.packaging_snapshot for s in reversed(history) if s.packaging_snapshot),
            None,
        )
        canonical = preserved.clone_of if preserved and preserved.clone_of else number
        rows.append(
            TrafficVersionRow(
                key=f"v{number}-deleted",
                version_number=number,
                label=version_label(canonical),
                title=preserved.configuration.title if preserved else "",
                start_date=preserved.period_start if preserved else history[0].timestamp,
                end_date=preserved.period_end if preserved else history[-1].timestamp,
                is_deleted=True,
                snapshot_count=len(history),
            )
        )

    rows.sort(key=lambda r: r.start_date or _EPOCH, reverse=True)
    rows.sort(key=lambda r: not r.is_active)
    return rows
