from __future__ import annotations

import asyncio
import logging
from typing import Any, List, Mapping, Optional, Sequence
from urllib.parse import quote

import httpx
import requests
from google.auth.transport.requests import Request
from google.oauth2.service_account import Credentials

from ...models import DEFAULT_DURATION_MINUTES, RawRecord
from ..base import SourceAdapter
from ..fields import parse_duration, safe_trim
from ..http import get_json, new_client

logger = logging.getLogger(__name__)

SHEETS_API = "https://sheets.googleapis.com/v4/spreadsheets"
TOKEN_URI = "https://oauth2.googleapis.com/token"
SCOPES = ["https://www.googleapis.com/auth/spreadsheets.readonly"]

ROWS_OCCUPIED_BY_HEADER = 2
ROWS_TO_IGNORE_FROM_END = 2

# Column order in the sheet
COLUMNS = (
    "dayOfWeek",
    "startTime",
    "meetingName",
    "meetingId",
    "password",
    "joinUrl",
    "contactInfo",
    "notes",
    "durationMinutes",
)
LAST_COLUMN = chr(ord("A") + len(COLUMNS) - 1)

UNTITLED = "<Untitled Meeting>"


def row_to_meeting(row: Sequence[Any]) -> Optional[RawRecord]:
    """One sheet row -> raw meeting; None for rows without a start time."""
    cells = list(row) + [None] * (len(COLUMNS) - len(row))
    values = dict(zip(COLUMNS, cells))

    start_time = safe_trim(values["startTime"])
    if not start_time:
        return None

    return {
        "dayOfWeek": safe_trim(values["dayOfWeek"]),
        "startTime": start_time,
        "meetingName": safe_trim(values["meetingName"]) or UNTITLED,
        "meetingId": safe_trim(values["meetingId"]),
        "password": safe_trim(values["password"]),
        "joinUrl": safe_trim(values["joinUrl"]),
        "contactInfo": safe_trim(values["contactInfo"]),
        "notes": safe_trim(values["notes"]) or "",
        "durationMinutes": parse_duration(values["durationMinutes"]) or DEFAULT_DURATION_MINUTES,
    }


class GoogleSheetsAdapter(SourceAdapter):
    """
    Reads the first worksheet of a spreadsheet with a service account.

    Layout: 2 header rows, then one meeting per row; the last 2 grid rows are
    ignored. Proxy env vars are not honoured for Google calls.
    """

    name = "google-sheets"
    required_env = ("GOOGLE_API_CLIENT_EMAIL", "GOOGLE_API_PRIVATE_KEY")

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(env)
        self.transport = transport

    def _credentials(self) -> Credentials:
        client_email, private_key = self.require_env(*self.required_env)
        info = {
            "type": "service_account",
            "client_email": client_email,
            "private_key": private_key.replace("\\n", "\n"),
            "token_uri": TOKEN_URI,
        }
        return Credentials.from_service_account_info(info, scopes=SCOPES)

    async def _access_token(self) -> str:
        creds = self._credentials()
        session = requests.Session()
        session.trust_env = False
        try:
            await asyncio.to_thread(creds.refresh, Request(session))
        finally:
            session.close()
        return creds.token

    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        logger.info("[google-sheets] fetch sheet_id=%s", source_identifier)
        token = await self._access_token()
        headers = {"Authorization": f"Bearer {token}"}
        sheet_url = f"{SHEETS_API}/{quote(source_identifier, safe='')}"

        async with new_client(self.transport, trust_env=False) as client:
            meta = await get_json(
                client,
                sheet_url,
                source=self.name,
                headers=headers,
                params={"fields": "sheets.properties(title,gridProperties.rowCount)"},
            )
            props = meta["sheets"][0]["properties"]
            title = props["title"]
            row_count = int(props.get("gridProperties", {}).get("rowCount", 0))
            logger.info("[google-sheets] sheet title=%r rows=%s", title, row_count)

            last_row = row_count - ROWS_TO_IGNORE_FROM_END
            if last_row <= ROWS_OCCUPIED_BY_HEADER:
                return []

            rng = f"'{title}'!A{ROWS_OCCUPIED_BY_HEADER + 1}:{LAST_COLUMN}{last_row}"
            data = await get_json(
                client,
                f"{sheet_url}/values/{quote(rng, safe='')}",
                source=self.name,
                headers=headers,
                params={"valueRenderOption": "FORMATTED_VALUE"},
            )

        meetings = self.transform_all(data.get("values") or [], row_to_meeting)
        logger.info("[google-sheets] fetched meetings=%s", len(meetings))
        return meetings

    async def test_connection(self) -> bool:
        if not (self.env.get("GOOGLE_API_CLIENT_EMAIL") and self.env.get("GOOGLE_API_PRIVATE_KEY")):
            logger.error("[google-sheets] missing required credentials")
            return False
        logger.info("[google-sheets] credentials found")
        return True
