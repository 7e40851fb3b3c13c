from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ...models import DEFAULT_DURATION_MINUTES, RawRecord
from ..base import SourceAdapter
from ..fields import first_present
from ..http import get_json, new_client

logger = logging.getLogger(__name__)


def extract_meeting_list(data: Any) -> List[Any]:
    """`meetings`, then `data`, then the document itself."""
    if isinstance(data, dict):
        data = data.get("meetings") or data.get("data") or data
    if not isinstance(data, list):
        raise ValueError("payload must contain an array of meetings")
    return data


def transform_api_meeting(item: Mapping[str, Any]) -> RawRecord:
    return {
        "dayOfWeek": first_present(item, "dayOfWeek", "day_of_week"),
        "startTime": first_present(item, "startTime", "start_time"),
        "meetingName": first_present(item, "name", "title", "meetingName"),
        "meetingId": first_present(item, "meetingId", "meeting_id"),
        "password": item.get("password"),
        "joinUrl": first_present(item, "joinUrl", "join_url", "url"),
        "contactInfo": first_present(item, "contactInfo", "contact_info", "contact"),
        "notes": first_present(item, "notes", "description"),
        "durationMinutes": first_present(item, "durationMinutes", "duration") or DEFAULT_DURATION_MINUTES,
    }


class RestApiAdapter(SourceAdapter):
    """source_identifier is a full URL, or a path appended to API_BASE_URL."""

    name = "rest-api"

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(env)
        self.transport = transport

    def _resolve_url(self, source_identifier: str) -> str:
        if source_identifier.startswith("http"):
            return source_identifier
        (base,) = self.require_env("API_BASE_URL")
        return base + source_identifier

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.env.get("API_AUTH_TOKEN"):
            headers["Authorization"] = f"Bearer {self.env['API_AUTH_TOKEN']}"
        if self.env.get("API_KEY"):
            headers["X-API-Key"] = self.env["API_KEY"]
        return headers

    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        url = self._resolve_url(source_identifier)
        logger.info("[rest-api] fetch url=%s", url)
        async with new_client(self.transport) as client:
            data = await get_json(client, url, source=self.name, headers=self._headers())
        items = extract_meeting_list(data)
        logger.info("[rest-api] fetched meetings=%s", len(items))
        return self.transform_all(items, transform_api_meeting)

    async def test_connection(self) -> bool:
        url = self.env.get("API_BASE_URL") or self.env.get("API_ENDPOINT")
        if not url:
            logger.error("[rest-api] no API_BASE_URL or API_ENDPOINT configured")
            return False
        try:
            async with new_client(self.transport) as client:
                resp = await client.get(url)
        except httpx.HTTPError as e:
            logger.error("[rest-api] connection test failed: %s", e)
            return False
        if not resp.is_success:
            logger.error("[rest-api] connection failed status=%s", resp.status_code)
        return resp.is_success
