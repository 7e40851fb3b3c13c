from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping

from supabase import Client, create_client

from ...models import DEFAULT_DURATION_MINUTES, RawRecord
from ..base import SourceAdapter

logger = logging.getLogger(__name__)

COLUMNS = (
    "day_of_week,start_time,meeting_name,meeting_id,password,"
    "join_url,contact_info,notes,duration_minutes"
)


def transform_database_row(row: Mapping[str, Any]) -> RawRecord:
    return {
        "dayOfWeek": row.get("day_of_week"),
        "startTime": row.get("start_time"),
        "meetingName": row.get("meeting_name"),
        "meetingId": row.get("meeting_id"),
        "password": row.get("password"),
        "joinUrl": row.get("join_url"),
        "contactInfo": row.get("contact_info"),
        "notes": row.get("notes"),
        "durationMinutes": row.get("duration_minutes") or DEFAULT_DURATION_MINUTES,
    }


class DatabaseAdapter(SourceAdapter):
    """
    Meetings table in the project's Postgres, read through Supabase.

    source_identifier is the table name. Only rows with active = true are
    returned, ordered by day then start time.
    """

    name = "database"
    required_env = ("SUPABASE_URL", "SUPABASE_SERVICE_ROLE_KEY")

    def get_client(self) -> Client:
        url, key = self.require_env(*self.required_env)
        return create_client(url, key)

    def _select_active(self, table: str) -> List[Mapping[str, Any]]:
        client = self.get_client()
        resp = (
            client.table(table)
            .select(COLUMNS)
            .eq("active", True)
            .order("day_of_week")
            .order("start_time")
            .execute()
        )
        return list(getattr(resp, "data", None) or [])

    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        logger.info("[database] fetch table=%s", source_identifier)
        self.require_env(*self.required_env)
        rows = await asyncio.to_thread(self._select_active, source_identifier)
        logger.info("[database] fetched rows=%s", len(rows))
        return self.transform_all(rows, transform_database_row)

    async def test_connection(self) -> bool:
        table = self.env.get("DATABASE_TABLE") or "meetings"
        try:
            client = self.get_client()
            await asyncio.to_thread(lambda: client.table(table).select("meeting_name").limit(1).execute())
        except Exception as e:
            logger.error("[database] connection test failed: %s: %s", type(e).__name__, e)
            return False
        logger.info("[database] connection successful")
        return True
