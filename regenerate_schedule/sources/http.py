from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import httpx

from ..errors import SourceFetchError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 30.0


def new_client(
    transport: Optional[httpx.AsyncBaseTransport] = None,
    *,
    trust_env: bool = True,
    timeout_s: float = DEFAULT_TIMEOUT_S,
) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        transport=transport,
        trust_env=trust_env,
        timeout=timeout_s,
        headers={"User-Agent": "regenerate-schedule"},
    )


def _snippet(resp: httpx.Response, limit: int = 200) -> str:
    try:
        return resp.text[:limit]
    except Exception:
        return ""


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    source: str,
    headers: Optional[Mapping[str, str]] = None,
    params: Optional[Mapping[str, Any]] = None,
) -> Any:
    """
    GET *url* and decode JSON.

    Non-2xx -> SourceFetchError(status, reason + body snippet).
    Transport errors (httpx.TransportError) propagate unchanged.
    """
    logger.debug("[%s] GET %s", source, url)
    resp = await client.get(url, headers=headers, params=params)
    if not resp.is_success:
        raise SourceFetchError(source, resp.status_code, f"{resp.reason_phrase} {_snippet(resp)}".strip())
    return resp.json()
