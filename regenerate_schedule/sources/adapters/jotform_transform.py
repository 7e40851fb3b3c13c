"""
Jotform submission -> raw meeting transform strategies.

Submissions carry an `answers` dict keyed by question id; each answer has a
`name`, a `text` (the question label) and the value in `answer` or
`prettyFormat`. Fields are located by matching normalized identifiers
(lowercase alphanumerics) against an alias table, which JOTFORM_FIELD_MAP
(JSON: {"dayOfWeek": ["q5_whichDay"], ...}) can extend.

Strategies are registered by name in TRANSFORMERS and selected with
JOTFORM_TRANSFORMER.
"""
from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from ...models import DEFAULT_DURATION_MINUTES, DEFAULT_MEETING_NAME, RawRecord
from ..fields import parse_duration, safe_trim

logger = logging.getLogger(__name__)

Transformer = Callable[[Mapping[str, Any], Mapping[str, Any]], Optional[RawRecord]]

DEFAULT_FIELD_ALIASES: Dict[str, List[str]] = {
    "dayOfWeek": ["dayofweek", "day_of_week", "meetingday", "meeting_day", "day"],
    "startTime": ["starttime", "start_time", "meetingtime", "meeting_time", "time"],
    "meetingName": ["meetingname", "meeting_name", "title", "meetingtitle", "meeting_title", "groupname"],
    "meetingId": ["meetingid", "meeting_id", "zoomid", "zoom_id", "connectionid"],
    "password": ["password", "passcode", "meetingpassword", "meeting_password"],
    "joinUrl": ["joinurl", "join_url", "meetinglink", "meeting_link", "zoomlink", "zoom_link", "url"],
    "contactInfo": ["contact", "contactinfo", "contact_info", "contactemail", "contact_email"],
    "notes": ["notes", "description", "details", "extra", "comments"],
    "durationMinutes": ["duration", "durationminutes", "duration_minutes", "meetinglength", "meeting_length"],
}

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")


def normalize_identifier(identifier: Any) -> Optional[str]:
    if identifier is None:
        return None
    s = _NON_ALNUM_RE.sub("", str(identifier).lower())
    return s or None


def load_field_map_override(raw: Optional[str]) -> Dict[str, Any]:
    if not raw:
        return {}
    try:
        parsed = json.loads(raw)
    except json.JSONDecodeError as e:
        logger.warning("[jotform] failed to parse JOTFORM_FIELD_MAP: %s", e)
        return {}
    return parsed if isinstance(parsed, dict) else {}


def build_field_aliases(overrides: Optional[Mapping[str, Any]] = None) -> Dict[str, List[str]]:
    merged: Dict[str, List[str]] = {k: list(dict.fromkeys(v)) for k, v in DEFAULT_FIELD_ALIASES.items()}
    for key, value in (overrides or {}).items():
        extra = value if isinstance(value, list) else [value]
        merged.setdefault(key, []).extend(str(i).strip() for i in extra if str(i).strip())

    return {
        key: [n for n in (normalize_identifier(i) for i in idents) if n]
        for key, idents in merged.items()
    }


def find_answer(answers: Mapping[str, Any], identifiers: List[str]) -> Optional[Mapping[str, Any]]:
    if not answers or not identifiers:
        return None
    for answer in answers.values():
        if not isinstance(answer, Mapping):
            continue
        for attr in ("name", "text", "qid"):
            ident = normalize_identifier(answer.get(attr))
            if ident and ident in identifiers:
                return answer
    return None


def _part_to_str(part: Any) -> str:
    if part is None:
        return ""
    if isinstance(part, (str, int, float)):
        return str(part)
    return json.dumps(part)


def extract_answer_value(answer: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Flatten the different answer shapes (text, list, name/address objects)."""
    if not answer:
        return None
    if isinstance(answer.get("prettyFormat"), str):
        return answer["prettyFormat"]

    value = answer.get("answer")
    if value is None:
        return None
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    if isinstance(value, list):
        return ", ".join(s for s in (_part_to_str(v) for v in value) if s)
    if isinstance(value, dict):
        if isinstance(value.get("full"), str):
            return value["full"]
        return " ".join(s for s in (_part_to_str(v) for v in value.values()) if s).strip()
    return None


def make_default_transformer(aliases: Mapping[str, List[str]]) -> Transformer:
    def transform_submission(submission: Mapping[str, Any], context: Mapping[str, Any]) -> Optional[RawRecord]:
        answers = submission.get("answers") or {}

        def get(field_name: str) -> Optional[str]:
            return extract_answer_value(find_answer(answers, aliases.get(field_name, [])))

        day_of_week = safe_trim(get("dayOfWeek"))
        start_time = safe_trim(get("startTime"))
        if not day_of_week or not start_time:
            logger.warning(
                "[jotform] submission %s missing dayOfWeek/startTime. Skipping.",
                submission.get("id") or "unknown",
            )
            return None

        return {
            "dayOfWeek": day_of_week,
            "startTime": start_time,
            "meetingName": (
                safe_trim(get("meetingName"))
                or safe_trim(submission.get("title"))
                or safe_trim(context.get("formTitle"))
                or DEFAULT_MEETING_NAME
            ),
            "meetingId": safe_trim(get("meetingId")),
            "password": safe_trim(get("password")),
            "joinUrl": safe_trim(get("joinUrl")),
            "contactInfo": safe_trim(get("contactInfo")) or safe_trim(submission.get("sender_email")),
            "notes": safe_trim(get("notes")) or "",
            "durationMinutes": parse_duration(get("durationMinutes")) or DEFAULT_DURATION_MINUTES,
        }

    return transform_submission


TRANSFORMERS: Dict[str, Callable[[Mapping[str, Any]], Transformer]] = {
    "default": make_default_transformer,
}
