"""Traffic CSV ingestion.

Turns an analytics "traffic source" export into typed rows. Only two kinds of
rows are kept: related-video rows (``YT_RELATED.<videoId>``) and the ``Total``
row. Any failure yields an empty ``TrafficUpload``; callers treat that as
"mapping required" rather than "no data".
"""

from __future__ import annotations

import csv
import io
import re
from typing import Optional

from packtrack.core.content_state import TrafficUpload
from packtrack.core.snapshot_ledger import TrafficSource
from packtrack.infra.logging_config import get_logger
from packtrack.schemas.traffic import CsvMapping

logger = get_logger("csv_ingestion")

VIDEO_ROW_PREFIX = "YT_RELATED."

HEADER_KEYWORDS: dict[str, list[str]] = {
    "source_id": ["traffic source", "source"],
    "source_type": ["source type", "type"],
    "source_title": ["source title", "title"],
    "impressions": ["impressions"],
    "ctr": ["impressions click-through rate", "ctr"],
    "views": ["views"],
    "avg_duration": ["average view duration", "duration"],
    "watch_time": ["watch time (hours)", "watch time", "hours"],
    "channel_id": ["channel id", "channel_id"],
}

OPTIONAL_COLUMNS = {"channel_id"}


def detect_mapping(headers: list[str]) -> Optional[CsvMapping]:
    """Map columns by header keywords; None unless every required column is found."""
    found: dict[str, int] = {}
    for key, keywords in HEADER_KEYWORDS.items():
        for index, header in enumerate(headers):
            if any(keyword in header for keyword in keywords):
                found[key] = index
                break

    missing = [k for k in HEADER_KEYWORDS if k not in found and k not in OPTIONAL_COLUMNS]
    if missing:
        logger.info("CSV header detection missed columns: %s", ", ".join(missing))
        return None
    return CsvMapping(**found)


def _clean(value: str) -> str:
    return value.strip().strip('"').strip()


def _int(value: str) -> int:
    digits = re.sub(r"[^0-9]", "", value)
    return int(digits) if digits else 0


def _float(value: str) -> float:
    try:
        return float(re.sub(r"[^0-9.]", "", value) or 0)
    except ValueError:
        return 0.0


def _column(cols: list[str], index: Optional[int]) -> str:
    if index is None or index >= len(cols):
        return ""
    return _clean(cols[index])


def parse_traffic_csv(text: str, mapping: Optional[CsvMapping] = None) -> TrafficUpload:
    try:
        rows = [row for row in csv.reader(io.StringIO(text or ""))]
    except csv.Error as e:
        logger.warning("Could not read traffic CSV: %s", e)
        return TrafficUpload()
    if len(rows) < 2:
        return TrafficUpload()

    headers = [_clean(h).lower() for h in rows[0]]
    if mapping is None:
        mapping = detect_mapping(headers)
        if mapping is None:
            return TrafficUpload()

    sources: list[TrafficSource] = []
    total_row: Optional[TrafficSource] = None
    for cols in rows[1:]:
        if len(cols) < 2 or not any(c.strip() for c in cols):
            continue

        source_id = _column(cols, mapping.source_id)
        row = TrafficSource(
            source_id=source_id or None,
            source_type=_column(cols, mapping.source_type),
            source_title=_column(cols, mapping.source_title),
            impressions=_int(_column(cols, mapping.impressions)),
            ctr=_float(_column(cols, mapping.ctr)),
            views=_int(_column(cols, mapping.views)),
            avg_view_duration=_column(cols, mapping.avg_duration),
            watch_time_hours=_float(_column(cols, mapping.watch_time)),
            channel_id=_column(cols, mapping.channel_id) or None,
        )

        if "total" in source_id.lower():
            total_row = row
        elif source_id.startswith(VIDEO_ROW_PREFIX):
            sources.append(
                row.model_copy(update={"video_id": source_id[len(VIDEO_ROW_PREFIX):]})
            )

    if not sources:
        logger.warning("CSV contained no related-video rows")
        return TrafficUpload()

    logger.info(
        "Parsed traffic CSV: %d video rows, total row %s",
        len(sources),
        "present" if total_row else "absent",
    )
    return TrafficUpload(sources=tuple(sources), total_row=total_row)
