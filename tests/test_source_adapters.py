# tests/test_source_adapters.py
"""
Source adapters against canned provider responses (httpx.MockTransport,
tmp files, mocked SDK clients). No network.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List
from unittest.mock import MagicMock, patch
from urllib.parse import unquote

import httpx
import pytest

from regenerate_schedule.errors import ConfigurationError, SourceFetchError
from regenerate_schedule.sources.adapters.airtable import AirtableAdapter, transform_airtable_record
from regenerate_schedule.sources.adapters.database import DatabaseAdapter, transform_database_row
from regenerate_schedule.sources.adapters.google_sheets import GoogleSheetsAdapter, row_to_meeting
from regenerate_schedule.sources.adapters.jotform import JotformAdapter, resolve_form_ids
from regenerate_schedule.sources.adapters.json_file import JsonFileAdapter
from regenerate_schedule.sources.adapters.rest_api import RestApiAdapter, extract_meeting_list
from regenerate_schedule.sources.fields import first_present, parse_duration


def _answer(name: str, value: Any, text: str = "") -> Dict[str, Any]:
    return {"name": name, "text": text or name, "answer": value}


def _submission(sid: str, day: str | None = "Monday", time: str | None = "7:00 PM", **extra) -> Dict[str, Any]:
    answers: Dict[str, Any] = {}
    if day is not None:
        answers["3"] = _answer("dayOfWeek", day)
    if time is not None:
        answers["4"] = _answer("startTime", time)
    for i, (k, v) in enumerate(extra.items(), start=10):
        answers[str(i)] = _answer(k, v)
    return {"id": sid, "answers": answers}


class Recorder:
    """MockTransport handler that records requests and replays canned responses."""

    def __init__(self, respond):
        self.respond = respond
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.respond(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


# ---------------------------------------------------------------------------
# Field helpers
# ---------------------------------------------------------------------------

class TestFields:
    def test_first_present_skips_empty(self):
        assert first_present({"a": "", "b": None, "c": [], "d": "x"}, "a", "b", "c", "d") == "x"
        assert first_present({}, "a") is None

    @pytest.mark.parametrize(
        "raw, expected",
        [
            (90, 90), ("45", 45), ("90 min", None), (True, None), (-1, None),
            (float("inf"), None), (float("nan"), None), ("9" * 400, None), ([90], None),
        ],
    )
    def test_parse_duration(self, raw, expected):
        assert parse_duration(raw) == expected


# ---------------------------------------------------------------------------
# Jotform
# ---------------------------------------------------------------------------

class TestJotform:
    ENV = {"JOTFORM_API_KEY": "k", "JOTFORM_PAGE_SIZE": "2"}

    @pytest.mark.asyncio
    async def test_pages_until_short_page(self):
        pages = {
            "0": [_submission("1"), _submission("2")],
            "2": [_submission("3"), _submission("4")],
            "4": [_submission("5")],
        }
        rec = Recorder(lambda r: httpx.Response(200, json={"content": pages[r.url.params["offset"]]}))
        adapter = JotformAdapter(env=self.ENV, transport=rec.transport)

        meetings = await adapter.fetch_meetings("f1")

        assert len(meetings) == 5
        assert [r.url.params["offset"] for r in rec.requests] == ["0", "2", "4"]
        assert all(r.url.path == "/form/f1/submissions" for r in rec.requests)
        assert rec.requests[0].url.params["apiKey"] == "k"
        assert rec.requests[0].url.params["limit"] == "2"

    @pytest.mark.asyncio
    async def test_total_hint_stops_paging(self):
        body = {
            "content": [_submission("1"), _submission("2")],
            "resultSet": {"offset": 0, "limit": 2, "count": 2, "total": 2},
        }
        rec = Recorder(lambda r: httpx.Response(200, json=body))
        adapter = JotformAdapter(env=self.ENV, transport=rec.transport)

        meetings = await adapter.fetch_meetings("f1")

        assert len(meetings) == 2
        assert len(rec.requests) == 1

    @pytest.mark.asyncio
    async def test_multiple_forms_keep_order_and_skip_bad_submissions(self):
        forms = {
            "/form/a/submissions": [_submission("a1", meetingName="From A")],
            "/form/b/submissions": [
                _submission("b1", day=None),
                {"id": "b2", "answers": "not-a-dict"},
                _submission("b3", time="8:00 PM", meetingName="From B", duration="90"),
            ],
        }
        rec = Recorder(lambda r: httpx.Response(200, json={"content": forms[r.url.path]}))
        adapter = JotformAdapter(env={"JOTFORM_API_KEY": "k"}, transport=rec.transport)

        meetings = await adapter.fetch_meetings("a, b")

        assert [m["meetingName"] for m in meetings] == ["From A", "From B"]
        assert meetings[1]["durationMinutes"] == 90
        assert meetings[0]["durationMinutes"] == 60

    @pytest.mark.asyncio
    async def test_missing_api_key_fails_before_request(self):
        rec = Recorder(lambda r: httpx.Response(200, json={}))
        with pytest.raises(ConfigurationError, match="JOTFORM_API_KEY"):
            await JotformAdapter(env={}, transport=rec.transport).fetch_meetings("f1")
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_no_form_ids(self):
        with pytest.raises(ConfigurationError, match="form IDs"):
            await JotformAdapter(env={"JOTFORM_API_KEY": "k"}).fetch_meetings("")

    @pytest.mark.asyncio
    async def test_unknown_transformer(self):
        adapter = JotformAdapter(env={"JOTFORM_API_KEY": "k", "JOTFORM_TRANSFORMER": "fancy"})
        with pytest.raises(ConfigurationError, match="fancy"):
            await adapter.fetch_meetings("f1")

    @pytest.mark.asyncio
    async def test_non_2xx_raises_with_status(self):
        rec = Recorder(lambda r: httpx.Response(401, text="Unauthorized"))
        with pytest.raises(SourceFetchError) as exc_info:
            await JotformAdapter(env=self.ENV, transport=rec.transport).fetch_meetings("f1")
        assert exc_info.value.status_code == 401

    def test_field_map_override(self):
        adapter = JotformAdapter(env={"JOTFORM_FIELD_MAP": json.dumps({"dayOfWeek": ["q7_whichDay"]})})
        transform = adapter.get_transformer()
        submission = {
            "id": "9",
            "title": "Submission Title",
            "sender_email": "who@example.org",
            "answers": {
                "7": {"name": "q7_whichDay", "text": "Which day?", "answer": "Thursday"},
                "8": {"name": "time", "text": "Time", "answer": {"hourSelect": "7", "ampm": "PM"}, "prettyFormat": "7:00 PM"},
            },
        }
        rec = transform(submission, {"formTitle": "Form"})
        assert rec["dayOfWeek"] == "Thursday"
        assert rec["startTime"] == "7:00 PM"
        assert rec["meetingName"] == "Submission Title"
        assert rec["contactInfo"] == "who@example.org"

    def test_resolve_form_ids(self):
        assert resolve_form_ids(" 1, 2 ,,3", {}) == ["1", "2", "3"]
        assert resolve_form_ids("", {"JOTFORM_FORM_IDS": "9"}) == ["9"]


# ---------------------------------------------------------------------------
# Airtable
# ---------------------------------------------------------------------------

class TestAirtable:
    ENV = {"AIRTABLE_API_KEY": "pat", "AIRTABLE_BASE_ID": "app1"}

    @pytest.mark.asyncio
    async def test_missing_credentials_fail_before_request(self):
        rec = Recorder(lambda r: httpx.Response(200, json={"records": []}))
        with pytest.raises(ConfigurationError) as exc_info:
            await AirtableAdapter(env={"AIRTABLE_BASE_ID": "app1"}, transport=rec.transport).fetch_meetings("")
        assert "AIRTABLE_API_KEY" in str(exc_info.value)
        assert rec.requests == []

    @pytest.mark.asyncio
    async def test_non_2xx(self):
        rec = Recorder(lambda r: httpx.Response(403, json={"error": "NOT_AUTHORIZED"}))
        with pytest.raises(SourceFetchError) as exc_info:
            await AirtableAdapter(env=self.ENV, transport=rec.transport).fetch_meetings("Meetings")
        assert exc_info.value.status_code == 403
        assert "NOT_AUTHORIZED" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_follows_offset_and_maps_columns(self):
        full_page = [{"id": f"r{i}", "fields": {"Day of Week": "Monday", "Start Time": "7:00 PM"}} for i in range(100)]
        last_page = [
            {"id": "x", "fields": {"dayOfWeek": "Friday", "startTime": "6 PM", "name": "Alias", "Duration (minutes)": 45}},
            {"id": "broken"},
        ]

        def respond(request: httpx.Request) -> httpx.Response:
            if "offset" not in request.url.params:
                return httpx.Response(200, json={"records": full_page, "offset": "itrNext"})
            return httpx.Response(200, json={"records": last_page})

        rec = Recorder(respond)
        meetings = await AirtableAdapter(env=self.ENV, transport=rec.transport).fetch_meetings("My Table")

        assert len(rec.requests) == 2
        assert rec.requests[0].headers["Authorization"] == "Bearer pat"
        assert rec.requests[1].url.params["offset"] == "itrNext"
        assert unquote(rec.requests[0].url.path) == "/v0/app1/My Table"
        assert len(meetings) == 101
        assert meetings[-1]["meetingName"] == "Alias"
        assert meetings[-1]["durationMinutes"] == 45

    def test_transform_defaults(self):
        rec = transform_airtable_record({"fields": {"Day of Week": "Monday", "Start Time": "7 PM"}})
        assert rec["durationMinutes"] == 60
        assert rec["meetingName"] is None


# ---------------------------------------------------------------------------
# REST API
# ---------------------------------------------------------------------------

class TestRestApi:
    @pytest.mark.asyncio
    async def test_relative_path_and_auth_headers(self):
        body = {"data": [{"day_of_week": "Monday", "start_time": "7:00 PM", "title": "T", "join_url": "https://j"}]}
        rec = Recorder(lambda r: httpx.Response(200, json=body))
        adapter = RestApiAdapter(
            env={"API_BASE_URL": "https://api.example.org", "API_AUTH_TOKEN": "tok", "API_KEY": "key"},
            transport=rec.transport,
        )

        meetings = await adapter.fetch_meetings("/meetings")

        req = rec.requests[0]
        assert str(req.url) == "https://api.example.org/meetings"
        assert req.headers["Authorization"] == "Bearer tok"
        assert req.headers["X-API-Key"] == "key"
        assert meetings == [{
            "dayOfWeek": "Monday",
            "startTime": "7:00 PM",
            "meetingName": "T",
            "meetingId": None,
            "password": None,
            "joinUrl": "https://j",
            "contactInfo": None,
            "notes": None,
            "durationMinutes": 60,
        }]

    @pytest.mark.asyncio
    async def test_relative_path_without_base_url(self):
        with pytest.raises(ConfigurationError, match="API_BASE_URL"):
            await RestApiAdapter(env={}).fetch_meetings("/meetings")

    def test_extract_meeting_list(self):
        assert extract_meeting_list({"meetings": [1]}) == [1]
        assert extract_meeting_list([2]) == [2]
        with pytest.raises(ValueError):
            extract_meeting_list({"meetings": "nope"})


# ---------------------------------------------------------------------------
# JSON file
# ---------------------------------------------------------------------------

class TestJsonFile:
    @pytest.mark.asyncio
    async def test_reads_file_and_skips_non_objects(self, tmp_path):
        path = tmp_path / "meetings.json"
        path.write_text(
            json.dumps({"meetings": [{"dayOfWeek": "Monday", "startTime": "7:00 PM"}, "garbage", 42]}),
            encoding="utf-8",
        )
        meetings = await JsonFileAdapter(env={}).fetch_meetings(str(path))
        assert meetings == [{"dayOfWeek": "Monday", "startTime": "7:00 PM"}]

    @pytest.mark.asyncio
    async def test_missing_file_propagates(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            await JsonFileAdapter(env={}).fetch_meetings(str(tmp_path / "nope.json"))

    @pytest.mark.asyncio
    async def test_connection(self, tmp_path):
        path = tmp_path / "m.json"
        assert await JsonFileAdapter(env={"JSON_FILE_PATH": str(path)}).test_connection() is False
        path.write_text("[]", encoding="utf-8")
        assert await JsonFileAdapter(env={"JSON_FILE_PATH": str(path)}).test_connection() is True


# ---------------------------------------------------------------------------
# Google Sheets
# ---------------------------------------------------------------------------

class TestGoogleSheets:
    def test_row_to_meeting(self):
        row = ["Monday", "7:00 PM", "", "123", "", "https://zoom.us/j/123", "", "", "90"]
        rec = row_to_meeting(row)
        assert rec["meetingName"] == "<Untitled Meeting>"
        assert rec["meetingId"] == "123"
        assert rec["durationMinutes"] == 90
        assert rec["notes"] == ""

    def test_short_row_padded_and_blank_start_skipped(self):
        assert row_to_meeting(["Tuesday", "8 PM"])["durationMinutes"] == 60
        assert row_to_meeting(["Tuesday", "  "]) is None
        assert row_to_meeting([]) is None

    @pytest.mark.asyncio
    async def test_fetch_reads_data_rows_only(self):
        def respond(request: httpx.Request) -> httpx.Response:
            if "/values/" not in request.url.path:
                return httpx.Response(
                    200, json={"sheets": [{"properties": {"title": "Schedule", "gridProperties": {"rowCount": 10}}}]}
                )
            return httpx.Response(200, json={"values": [["Monday", "7:00 PM", "Group"], ["Monday", ""]]})

        rec = Recorder(respond)
        adapter = GoogleSheetsAdapter(env={}, transport=rec.transport)

        with patch.object(GoogleSheetsAdapter, "_access_token", return_value="tok"):
            meetings = await adapter.fetch_meetings("sheet-1")

        assert len(rec.requests) == 2
        assert rec.requests[0].headers["Authorization"] == "Bearer tok"
        assert "'Schedule'!A3:I8" in unquote(str(rec.requests[1].url))
        assert rec.requests[1].url.params["valueRenderOption"] == "FORMATTED_VALUE"
        assert [m["meetingName"] for m in meetings] == ["Group"]

    @pytest.mark.asyncio
    async def test_missing_credentials(self):
        with pytest.raises(ConfigurationError, match="GOOGLE_API_CLIENT_EMAIL"):
            await GoogleSheetsAdapter(env={}).fetch_meetings("sheet-1")
        assert await GoogleSheetsAdapter(env={}).test_connection() is False


# ---------------------------------------------------------------------------
# Database (Supabase)
# ---------------------------------------------------------------------------

class TestDatabase:
    ENV = {"SUPABASE_URL": "https://x.supabase.co", "SUPABASE_SERVICE_ROLE_KEY": "srk"}

    @pytest.mark.asyncio
    async def test_selects_active_rows(self):
        client = MagicMock()
        query = client.table.return_value.select.return_value.eq.return_value.order.return_value.order.return_value
        query.execute.return_value = MagicMock(
            data=[{"day_of_week": "Monday", "start_time": "19:00", "meeting_name": "Db", "duration_minutes": None}]
        )

        with patch("regenerate_schedule.sources.adapters.database.create_client", return_value=client) as cc:
            meetings = await DatabaseAdapter(env=self.ENV).fetch_meetings("meetings")

        cc.assert_called_once_with("https://x.supabase.co", "srk")
        client.table.assert_called_once_with("meetings")
        client.table.return_value.select.return_value.eq.assert_called_once_with("active", True)
        assert meetings[0]["meetingName"] == "Db"
        assert meetings[0]["durationMinutes"] == 60

    @pytest.mark.asyncio
    async def test_missing_env(self):
        with pytest.raises(ConfigurationError, match="SUPABASE_URL"):
            await DatabaseAdapter(env={}).fetch_meetings("meetings")

    def test_transform(self):
        rec = transform_database_row({"day_of_week": "Friday", "start_time": "6 PM", "join_url": "u"})
        assert rec["joinUrl"] == "u"
        assert rec["dayOfWeek"] == "Friday"
