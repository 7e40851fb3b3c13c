from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import httpx

from ...models import DEFAULT_DURATION_MINUTES, RawRecord
from ..base import SourceAdapter
from ..fields import first_present
from ..http import get_json, new_client

logger = logging.getLogger(__name__)

AIRTABLE_API = "https://api.airtable.com/v0"
PAGE_SIZE = 100


def transform_airtable_record(record: Mapping[str, Any]) -> RawRecord:
    """Airtable record -> raw meeting. Column titles first, camelCase fallbacks."""
    fields = record["fields"]
    return {
        "dayOfWeek": first_present(fields, "Day of Week", "dayOfWeek"),
        "startTime": first_present(fields, "Start Time", "startTime"),
        "meetingName": first_present(fields, "Meeting Name", "name"),
        "meetingId": first_present(fields, "Meeting ID", "meetingId"),
        "password": first_present(fields, "Password", "password"),
        "joinUrl": first_present(fields, "Join URL", "joinUrl", "url"),
        "contactInfo": first_present(fields, "Contact Info", "contactInfo"),
        "notes": first_present(fields, "Notes", "notes"),
        "durationMinutes": first_present(fields, "Duration (minutes)", "duration") or DEFAULT_DURATION_MINUTES,
    }


class AirtableAdapter(SourceAdapter):
    name = "airtable"
    required_env = ("AIRTABLE_API_KEY", "AIRTABLE_BASE_ID")

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(env)
        self.transport = transport

    def _table_url(self, base_id: str, table: str) -> str:
        return f"{AIRTABLE_API}/{base_id}/{quote(table, safe='')}"

    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        api_key, base_id = self.require_env(*self.required_env)
        table = source_identifier or self.env.get("AIRTABLE_TABLE_NAME") or "Meetings"
        logger.info("[airtable] fetch table=%s", table)

        headers = {"Authorization": f"Bearer {api_key}"}
        records: List[Dict[str, Any]] = []
        params: Dict[str, Any] = {"pageSize": PAGE_SIZE}

        async with new_client(self.transport) as client:
            while True:
                data = await get_json(
                    client, self._table_url(base_id, table), source=self.name, headers=headers, params=params
                )
                page = data.get("records") or []
                records.extend(page)
                offset = data.get("offset")
                if not offset or len(page) < PAGE_SIZE:
                    break
                params = {"pageSize": PAGE_SIZE, "offset": offset}

        logger.info("[airtable] fetched records=%s", len(records))
        return self.transform_all(records, transform_airtable_record)

    async def test_connection(self) -> bool:
        api_key = self.env.get("AIRTABLE_API_KEY")
        base_id = self.env.get("AIRTABLE_BASE_ID")
        if not api_key or not base_id:
            logger.error("[airtable] missing API credentials")
            return False
        try:
            async with new_client(self.transport) as client:
                resp = await client.get(
                    self._table_url(base_id, self.env.get("AIRTABLE_TABLE_NAME") or "Meetings"),
                    headers={"Authorization": f"Bearer {api_key}"},
                    params={"maxRecords": 1},
                )
        except httpx.HTTPError as e:
            logger.error("[airtable] connection test failed: %s", e)
            return False
        if resp.is_success:
            logger.info("[airtable] connection successful")
            return True
        logger.error("[airtable] connection failed status=%s", resp.status_code)
        return False
