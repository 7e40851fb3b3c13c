from __future__ import annotations

import math
import re
from typing import Any, Mapping, Optional

_NUMERIC_RE = re.compile(r"^\s*\d+(?:\.\d+)?\s*$")


def safe_trim(value: Any) -> Optional[str]:
    """str(value).strip(), or None for None/blank."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


def first_present(fields: Mapping[str, Any], *keys: str) -> Any:
    """First truthy value among *keys* (alias fallback chain)."""
    for k in keys:
        v = fields.get(k)
        if v not in (None, "", [], {}):
            return v
    return None


def parse_duration(value: Any) -> Optional[int]:
    """
    Minutes from an int, float or numeric string. None when absent,
    non-positive, non-finite or in any other format ("1 hour", "90 min" are
    not parsed).
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        if not _NUMERIC_RE.match(value):
            return None
        value = float(value)
    if not isinstance(value, (int, float)):
        return None
    # float("9" * 400) is inf
    if isinstance(value, float) and not math.isfinite(value):
        return None
    minutes = int(value)
    return minutes if minutes > 0 else None
