# regenerate_schedule/util.py
"""
Small async and parsing helpers shared by the pipeline, adapters and effects.
"""
from __future__ import annotations

import asyncio
import os
from typing import Any, Awaitable, Callable, Iterable, List, Mapping, Optional, Sequence, TypeVar

from .errors import ConfigurationError

T = TypeVar("T")
R = TypeVar("R")


# ---------------------------------------------------------------------------
# Ordered async iteration
# ---------------------------------------------------------------------------

async def async_for_each(
    items: Sequence[T],
    callback: Callable[[T, int], Awaitable[Any]],
) -> None:
    """Await *callback* for each item, one at a time, in order."""
    for index, item in enumerate(items):
        await callback(item, index)


async def async_parallel_map(
    items: Sequence[T],
    callback: Callable[[T, int], Awaitable[R]],
) -> List[R]:
    """
    Run *callback* for every item concurrently.

    Results come back in input order. The first exception propagates.
    Only for work that is independent and safe to interleave.
    """
    return list(await asyncio.gather(*(callback(item, i) for i, item in enumerate(items))))


async def sleep_ms(ms: float) -> None:
    await asyncio.sleep(max(ms, 0) / 1000.0)


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def _normalize_token(s: str) -> str:
    return s.strip().lower()


def parse_boolean(value: Any) -> bool:
    """
    Strict boolean parsing for env-style values.

    Accepts real bools and the strings "true"/"false" (any case, padded).
    Anything else is a configuration error.
    """
    if value is None:
        raise ConfigurationError(f"parse_boolean() needs a str or bool, got {value!r}")
    if isinstance(value, bool):
        return value
    token = _normalize_token(str(value))
    if token == "true":
        return True
    if token == "false":
        return False
    raise ConfigurationError(f"Unable to convert {value!r} to a boolean")


def env_bool(env: Mapping[str, str], name: str, default: bool = False) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    return parse_boolean(raw)


def env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = (env.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def first_env(env: Mapping[str, str], *names: str, default: Optional[str] = None) -> Optional[str]:
    """Value of the first non-empty variable among *names*."""
    for name in names:
        v = (env.get(name) or "").strip()
        if v:
            return v
    return default


def validate_env_vars(names: Iterable[str], env: Optional[Mapping[str, str]] = None) -> None:
    """Fail fast if any of *names* is unset or blank."""
    env = os.environ if env is None else env
    missing = [n for n in names if not (env.get(n) or "").strip()]
    if missing:
        raise ConfigurationError(f"Missing required environment variables: {', '.join(missing)}")
