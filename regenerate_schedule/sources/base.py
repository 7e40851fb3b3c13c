from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Mapping, Optional, Tuple

from ..errors import ConfigurationError
from ..models import RawRecord

logger = logging.getLogger(__name__)


class SourceAdapter(ABC):
    """
    Contract for meeting sources.

    fetch_meetings() returns records already mapped onto the canonical
    camelCase keys. Provider errors propagate; individual malformed records
    are skipped with a warning.
    """

    name: str = "source"
    # credentials checked once at start-up (AppContext.from_settings)
    required_env: Tuple[str, ...] = ()

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env: Mapping[str, str] = os.environ if env is None else env

    @abstractmethod
    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        """Return raw meeting records for one tenant's source."""

    async def test_connection(self) -> bool:
        """Cheap credential and connectivity check. Never raises."""
        return True

    # ---- helpers for subclasses ----

    def require_env(self, *names: str) -> List[str]:
        """Values of *names*; raises before any network call when one is missing."""
        missing = [n for n in names if not (self.env.get(n) or "").strip()]
        if missing:
            raise ConfigurationError(f"[{self.name}] missing {', '.join(missing)}")
        return [self.env[n].strip() for n in names]

    def transform_all(
        self,
        items: Iterable[Any],
        transform: Callable[[Any], Optional[RawRecord]],
    ) -> List[RawRecord]:
        """Apply *transform* per item; drop None results and skip items that raise."""
        out: List[RawRecord] = []
        for idx, item in enumerate(items):
            try:
                rec = transform(item)
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.warning(
                    "[%s] SKIP malformed record index=%s: %s: %s",
                    self.name, idx, type(e).__name__, e,
                )
                continue
            if rec is not None:
                out.append(rec)
        return out
