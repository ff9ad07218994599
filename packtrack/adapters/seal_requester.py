"""Seal requesters backed by an upload that arrived with the request."""

from __future__ import annotations

from typing import Optional
from uuid import UUID

from packtrack.adapters.base import BaseSealRequester
from packtrack.adapters.csv_ingestion import parse_traffic_csv
from packtrack.core.content_state import TrafficUpload
from packtrack.core.errors import MappingRequiredError
from packtrack.schemas.traffic import TrafficCsvUpload


class UploadedSealRequester(BaseSealRequester):
    """Resolves the seal from a CSV the client already sent, or skips it."""

    def __init__(self, upload: Optional[TrafficCsvUpload] = None) -> None:
        self._upload = upload

    async def request_seal(
        self, content_item_id: UUID, version_number: int
    ) -> Optional[TrafficUpload]:
        if self._upload is None:
            return None
        traffic = parse_traffic_csv(self._upload.csv_text, self._upload.mapping)
        if not traffic.sources:
            raise MappingRequiredError(
                f"Could not read the seal export for version {version_number}"
            )
        return traffic
