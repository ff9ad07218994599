"""Packaging version ledger.

The ledger is an immutable value object: every transition returns a new
``VersionLedger`` and leaves the receiver untouched. Callers hold the current
ledger explicitly and hand it to the reconciliation service, which persists it.

Activation periods are stored newest-first. At most one period across the
whole ledger is open (``end_date is None``); the version owning it is the one
traffic is attributed to.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)

from packtrack.core.errors import VersionNotFoundError

logger = logging.getLogger(__name__)

DRAFT = "draft"

VersionRef = Union[int, Literal["draft"]]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime | None) -> datetime | None:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class ConfigurationSnapshot(BaseModel):
    """Packaging payload as it existed when a version was saved."""

    model_config = ConfigDict(frozen=True)

    title: str = ""
    description: str = ""
    tags: tuple[str, ...] = ()
    cover_image: str | None = None
    localizations: dict[str, Any] = Field(default_factory=dict)
    ab_test_variants: dict[str, Any] = Field(default_factory=dict)
    ab_test_results: dict[str, Any] = Field(default_factory=dict)


class ActivePeriod(BaseModel):
    model_config = ConfigDict(frozen=True)

    start_date: UtcDatetime
    end_date: UtcDatetime | None = None
    # Seal taken when this period opened; None means no delta baseline.
    closing_snapshot_id: str | None = None

    @property
    def is_open(self) -> bool:
        return self.end_date is None


class PeriodRef(BaseModel):
    """Points at one activation period of one version.

    ``period_index`` is the chronological ordinal (0 = first activation), which
    stays stable while newer periods are prepended.
    """

    model_config = ConfigDict(frozen=True)

    version_number: int
    period_index: int


class PackagingVersion(BaseModel):
    model_config = ConfigDict(frozen=True)

    version_number: int
    configuration_snapshot: ConfigurationSnapshot = Field(
        default_factory=ConfigurationSnapshot
    )
    active_periods: tuple[ActivePeriod, ...] = ()
    clone_of: int | None = None
    created_at: UtcDatetime | None = None

    @model_validator(mode="before")
    @classmethod
    def upgrade_legacy_dates(cls, data: Any) -> Any:
        """Build a single period from legacy ``start_date``/``end_date`` fields."""
        if not isinstance(data, dict):
            return data
        if data.get("active_periods"):
            return data
        start = data.get("start_date")
        if start is None:
            return data
        end = data.get("end_date")
        data = {k: v for k, v in data.items() if k not in ("start_date", "end_date")}
        data["active_periods"] = [{"start_date": start, "end_date": end}]
        return data

    @field_validator("active_periods")
    @classmethod
    def order_periods_newest_first(
        cls, periods: tuple[ActivePeriod, ...]
    ) -> tuple[ActivePeriod, ...]:
        return tuple(sorted(periods, key=lambda p: p.start_date, reverse=True))

    @property
    def canonical_id(self) -> int:
        return self.clone_of if self.clone_of is not None else self.version_number

    @property
    def open_period(self) -> ActivePeriod | None:
        if self.active_periods and self.active_periods[0].is_open:
            return self.active_periods[0]
        return None

    @property
    def last_activated_at(self) -> datetime | None:
        return self.active_periods[0].start_date if self.active_periods else None

    def ordinal_of(self, list_index: int) -> int:
        """Chronological ordinal of the period at ``list_index``."""
        return len(self.active_periods) - 1 - list_index

    def list_index_of(self, ordinal: int) -> int | None:
        index = len(self.active_periods) - 1 - ordinal
        if 0 <= index < len(self.active_periods):
            return index
        return None

    def period_index_at(
        self, timestamp: datetime, buffer: timedelta = timedelta(0)
    ) -> int | None:
        """Return the list index of the period a measurement at ``timestamp`` belongs to.

        A measurement belongs to the newest period that started before it
        (minus ``buffer``). Measurements older than every period fall into the
        oldest one.
        """
        if not self.active_periods:
            return None
        for index, period in enumerate(self.active_periods):
            if period.start_date - buffer <= timestamp:
                return index
        return len(self.active_periods) - 1

    def close_open_period(self, now: datetime) -> "PackagingVersion":
        if self.open_period is None:
            return self
        closed = self.active_periods[0].model_copy(update={"end_date": now})
        return self.model_copy(
            update={"active_periods": (closed,) + self.active_periods[1:]}
        )

    def open_new_period(
        self, now: datetime, closing_snapshot_id: str | None
    ) -> "PackagingVersion":
        period = ActivePeriod(start_date=now, closing_snapshot_id=closing_snapshot_id)
        return self.model_copy(update={"active_periods": (period,) + self.active_periods})


class VersionLedger(BaseModel):
    """Ordered packaging history of one content item plus its pointers."""

    model_config = ConfigDict(frozen=True)

    versions: tuple[PackagingVersion, ...] = ()
    # Next number to hand out; only ever grows.
    current_packaging_version: int = 1
    is_draft: bool = False
    viewing: VersionRef | None = None

    @field_validator("versions")
    @classmethod
    def order_versions(
        cls, versions: tuple[PackagingVersion, ...]
    ) -> tuple[PackagingVersion, ...]:
        return tuple(sorted(versions, key=lambda v: v.version_number))

    # --- derived accessors ---

    def active_version(self) -> VersionRef:
        if self.is_draft:
            return DRAFT
        owner = self.attribution_version()
        return owner if owner is not None else DRAFT

    def viewing_version(self) -> VersionRef:
        return self.viewing if self.viewing is not None else self.active_version()

    def attribution_version(self) -> int | None:
        """Version owning the open period, i.e. the one new traffic belongs to."""
        for version in self.versions:
            if version.open_period is not None:
                return version.version_number
        return None

    def open_period_ref(self) -> PeriodRef | None:
        for version in self.versions:
            if version.open_period is not None:
                return PeriodRef(
                    version_number=version.version_number,
                    period_index=version.ordinal_of(0),
                )
        return None

    def open_periods(self) -> list[tuple[int, ActivePeriod]]:
        return [
            (version.version_number, period)
            for version in self.versions
            for period in version.active_periods
            if period.is_open
        ]

    def get_version(self, version_number: int) -> PackagingVersion | None:
        for version in self.versions:
            if version.version_number == version_number:
                return version
        return None

    def require_version(self, version_number: int) -> PackagingVersion:
        version = self.get_version(version_number)
        if version is None:
            raise VersionNotFoundError(version_number)
        return version

    def latest_version(self) -> PackagingVersion | None:
        return self.versions[-1] if self.versions else None

    @property
    def next_version_number(self) -> int:
        highest = self.versions[-1].version_number if self.versions else 0
        return max(self.current_packaging_version, highest + 1, 1)

    # --- transitions ---

    def save_draft(self) -> "VersionLedger":
        return self.model_copy(update={"is_draft": True, "viewing": DRAFT})

    def create_version(
        self,
        configuration: ConfigurationSnapshot,
        closing_snapshot_id: str | None = None,
        clone_of: int | None = None,
        now: datetime | None = None,
    ) -> "VersionLedger":
        now = now or utcnow()
        number = self.next_version_number
        if clone_of is not None:
            clone_of = self.require_version(clone_of).canonical_id

        versions = self._close_open_periods(now)
        new_version = PackagingVersion(
            version_number=number,
            configuration_snapshot=configuration,
            active_periods=(
                ActivePeriod(start_date=now, closing_snapshot_id=closing_snapshot_id),
            ),
            clone_of=clone_of,
            created_at=now,
        )
        logger.info(
            "Created packaging version %s (seal=%s, clone_of=%s)",
            number,
            closing_snapshot_id,
            clone_of,
        )
        return self.model_copy(
            update={
                "versions": versions + (new_version,),
                "current_packaging_version": number + 1,
                "is_draft": False,
                "viewing": number,
            }
        )

    def restore_version(
        self,
        version_number: int,
        closing_snapshot_id: str | None = None,
        now: datetime | None = None,
    ) -> "VersionLedger":
        target = self.require_version(version_number)
        if target.open_period is not None:
            # Already the owner of the open period; restoring only drops the draft.
            return self.model_copy(update={"is_draft": False, "viewing": version_number})

        now = now or utcnow()
        versions = tuple(
            v.open_new_period(now, closing_snapshot_id)
            if v.version_number == version_number
            else v
            for v in self._close_open_periods(now)
        )
        logger.info(
            "Restored packaging version %s (seal=%s)", version_number, closing_snapshot_id
        )
        return self.model_copy(
            update={"versions": versions, "is_draft": False, "viewing": version_number}
        )

    def delete_version(
        self, version_number: int, now: datetime | None = None
    ) -> "VersionLedger":
        deleted = self.require_version(version_number)
        survivors = tuple(v for v in self.versions if v.version_number != version_number)
        fallback = survivors[-1] if survivors else None

        if deleted.open_period is not None and fallback is not None:
            # Traffic keeps flowing; hand the open period over to the fallback.
            now = now or utcnow()
            survivors = tuple(
                v.open_new_period(now, None) if v is fallback else v for v in survivors
            )

        viewing = self.viewing
        if viewing == version_number:
            viewing = fallback.version_number if fallback is not None else DRAFT

        logger.info(
            "Deleted packaging version %s (fallback=%s)",
            version_number,
            fallback.version_number if fallback is not None else DRAFT,
        )
        return self.model_copy(
            update={
                "versions": survivors,
                "current_packaging_version": self.next_version_number,
                "is_draft": self.is_draft or fallback is None,
                "viewing": viewing,
            }
        )

    def set_viewing(self, ref: VersionRef) -> "VersionLedger":
        if ref != DRAFT:
            self.require_version(int(ref))
        return self.model_copy(update={"viewing": ref})

    def clear_closing_reference(self, snapshot_id: str) -> "VersionLedger":
        """Drop every period reference to a snapshot that no longer exists."""
        changed = False
        versions = []
        for version in self.versions:
            periods = []
            for period in version.active_periods:
                if period.closing_snapshot_id == snapshot_id:
                    period = period.model_copy(update={"closing_snapshot_id": None})
                    changed = True
                periods.append(period)
            versions.append(version.model_copy(update={"active_periods": tuple(periods)}))
        if not changed:
            return self
        return self.model_copy(update={"versions": tuple(versions)})

    def _close_open_periods(self, now: datetime) -> tuple[PackagingVersion, ...]:
        return tuple(v.close_open_period(now) for v in self.versions)
