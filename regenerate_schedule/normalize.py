from __future__ import annotations

import asyncio
import json
import logging
import re
from datetime import datetime, time, timedelta, timezone
from pathlib import Path
from typing import Any, Iterable, List, Mapping, Optional, Tuple
from zoneinfo import ZoneInfo

import dateparser

from .config import SCHEDULE_TYPE
from .models import (
    DEFAULT_DURATION_MINUTES,
    DEFAULT_MEETING_NAME,
    NormalizedMeeting,
    RawRecord,
    ScheduleMetadata,
    SchedulePayload,
)
from .sources.base import SourceAdapter
from .sources.fields import parse_duration, safe_trim

logger = logging.getLogger(__name__)


# ============================================================
# Day / time parsing
# ============================================================

WEEKDAYS = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

_DAY_LOOKUP = {name.lower(): i for i, name in enumerate(WEEKDAYS)}
_DAY_LOOKUP.update({
    "mon": 0,
    "tue": 1, "tues": 1,
    "wed": 2, "weds": 2,
    "thu": 3, "thur": 3, "thurs": 3,
    "fri": 4,
    "sat": 5,
    "sun": 6,
})

_TIME_FORMATS = (
    "%I:%M %p",
    "%I:%M%p",
    "%I %p",
    "%I%p",
    "%H:%M",
    "%H:%M:%S",
    "%I:%M:%S %p",
)

# dateparser turns a bare weekday, word or number ("7" = day of month) into
# midnight; only hand it strings that look like a clock time.
_TIME_HINT_RE = re.compile(r"\d\s*[:h]\s*\d|\d\s*[ap]\.?\s*m\b|noon|midnight", re.IGNORECASE)


def parse_day(value: Any) -> Optional[int]:
    """Weekday index (Monday=0) from a full or abbreviated day name."""
    s = safe_trim(value)
    if not s:
        return None
    return _DAY_LOOKUP.get(s.lower().rstrip("."))


def parse_start_time(value: Any) -> Optional[time]:
    """
    Clock time from "7:00 PM", "7pm", "19:00", "7:00 p.m.", "noon", ...
    Fixed formats first, dateparser as fallback.
    """
    s = safe_trim(value)
    if not s:
        return None

    compact = " ".join(s.upper().replace(".", "").split())
    for fmt in _TIME_FORMATS:
        try:
            return datetime.strptime(compact, fmt).time()
        except ValueError:
            continue

    if not _TIME_HINT_RE.search(s):
        return None
    parsed = dateparser.parse(s, languages=["en"], settings={"RETURN_AS_TIMEZONE_AWARE": False})
    if parsed is None:
        return None
    return parsed.time().replace(second=0, microsecond=0)


def next_occurrence(day_index: int, start: time, now: datetime) -> datetime:
    """
    Nearest start at or after *now* on weekday *day_index* at *start*,
    in now's timezone (wall-clock time, DST-aware).
    """
    days_ahead = (day_index - now.weekday()) % 7
    candidate = datetime.combine(now.date() + timedelta(days=days_ahead), start, tzinfo=now.tzinfo)
    if candidate < now:
        candidate += timedelta(days=7)
    return candidate


# ============================================================
# Record -> NormalizedMeeting
# ============================================================

def normalize_record(raw: Mapping[str, Any]) -> Optional[Tuple[NormalizedMeeting, int, time]]:
    """
    Returns (meeting, day_index, start_time) or None when the record cannot be
    placed on the weekly schedule.
    """
    day_raw = safe_trim(raw.get("dayOfWeek"))
    time_raw = safe_trim(raw.get("startTime"))
    if not day_raw or not time_raw:
        return None

    day_index = parse_day(day_raw)
    if day_index is None:
        logger.warning("[normalize] DROP unknown dayOfWeek=%r meetingName=%r", day_raw, raw.get("meetingName"))
        return None

    start = parse_start_time(time_raw)
    if start is None:
        logger.warning("[normalize] DROP unparseable startTime=%r meetingName=%r", time_raw, raw.get("meetingName"))
        return None

    meeting = NormalizedMeeting(
        day_of_week=WEEKDAYS[day_index],
        start_time=time_raw,
        meeting_name=safe_trim(raw.get("meetingName")) or DEFAULT_MEETING_NAME,
        duration_minutes=parse_duration(raw.get("durationMinutes")) or DEFAULT_DURATION_MINUTES,
        meeting_id=safe_trim(raw.get("meetingId")),
        password=safe_trim(raw.get("password")),
        join_url=safe_trim(raw.get("joinUrl")),
        contact_info=safe_trim(raw.get("contactInfo")),
        notes=safe_trim(raw.get("notes")),
    )
    return meeting, day_index, start


def normalize_records(records: Iterable[Mapping[str, Any]], *, now: datetime) -> List[NormalizedMeeting]:
    """
    Normalize, drop records without day/time, and order by next occurrence.
    Equal occurrences keep input order (sorted() is stable).
    """
    keyed: List[Tuple[datetime, NormalizedMeeting]] = []
    dropped = 0
    for raw in records:
        try:
            result = normalize_record(raw)
        except (ValueError, TypeError, ArithmeticError) as e:
            logger.warning("[normalize] DROP invalid record: %s: %s", type(e).__name__, e)
            result = None
        if result is None:
            dropped += 1
            continue
        meeting, day_index, start = result
        keyed.append((next_occurrence(day_index, start, now), meeting))

    if dropped:
        logger.info("[normalize] dropped=%s kept=%s", dropped, len(keyed))

    return [m for _, m in sorted(keyed, key=lambda pair: pair[0])]


def build_schedule(
    records: Iterable[Mapping[str, Any]],
    *,
    now: datetime,
    schedule_type: str = SCHEDULE_TYPE,
) -> SchedulePayload:
    return SchedulePayload(
        metadata=ScheduleMetadata(
            schedule_type=schedule_type,
            generated_at=now.astimezone(timezone.utc),
        ),
        meetings=normalize_records(records, now=now),
    )


def serialize_schedule(payload: SchedulePayload) -> str:
    return json.dumps(payload.to_json_dict(), separators=(",", ":"), ensure_ascii=False)


# ============================================================
# Fetch + normalize for one tenant
# ============================================================

async def generate_schedule(
    adapter: SourceAdapter,
    source_identifier: str,
    *,
    tz_name: str,
    schedule_type: str = SCHEDULE_TYPE,
    now: Optional[datetime] = None,
    debug_file: Optional[str] = None,
) -> SchedulePayload:
    logger.info("[schedule] generate source=%s id=%s", adapter.name, source_identifier)
    records: List[RawRecord] = await adapter.fetch_meetings(source_identifier)
    logger.info("[schedule] fetched raw=%s", len(records))

    now = now or datetime.now(ZoneInfo(tz_name))
    payload = build_schedule(records, now=now, schedule_type=schedule_type)
    logger.info("[schedule] generated meetings=%s", len(payload.meetings))

    if debug_file:
        logger.info("[schedule] writing debug file path=%s", debug_file)
        text = json.dumps(payload.to_json_dict(), indent=2, ensure_ascii=False)
        await asyncio.to_thread(Path(debug_file).write_text, text, encoding="utf-8")

    return payload
