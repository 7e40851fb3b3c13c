from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, List

from ...models import RawRecord
from ..base import SourceAdapter
from .rest_api import extract_meeting_list

logger = logging.getLogger(__name__)


def _as_record(item: Any) -> RawRecord:
    if not isinstance(item, dict):
        raise TypeError(f"expected an object, got {type(item).__name__}")
    return dict(item)


class JsonFileAdapter(SourceAdapter):
    """Meetings already in canonical shape, read from a local JSON file."""

    name = "json-file"

    def _resolve(self, source_identifier: str) -> Path:
        p = Path(source_identifier)
        return p if p.is_absolute() else Path.cwd() / p

    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        path = self._resolve(source_identifier)
        logger.info("[json-file] load path=%s", path)
        text = await asyncio.to_thread(path.read_text, encoding="utf-8")
        items = extract_meeting_list(json.loads(text))
        logger.info("[json-file] loaded meetings=%s file=%s", len(items), path.name)
        return self.transform_all(items, _as_record)

    async def test_connection(self) -> bool:
        path = self._resolve(self.env.get("JSON_FILE_PATH") or "./meetings.json")
        ok = await asyncio.to_thread(path.is_file)
        if not ok:
            logger.error("[json-file] file not accessible path=%s", path)
        return ok
