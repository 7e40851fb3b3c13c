from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from ...errors import ConfigurationError
from ...models import RawRecord
from ...util import async_parallel_map, env_int
from ..base import SourceAdapter
from ..http import get_json, new_client
from .jotform_transform import TRANSFORMERS, Transformer, build_field_aliases, load_field_map_override

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.jotform.com"
DEFAULT_PAGE_SIZE = 200


def resolve_form_ids(source_identifier: Optional[str], env: Mapping[str, str]) -> List[str]:
    """Comma-separated ids from the source identifier, else JOTFORM_FORM_IDS."""
    raw = source_identifier if (source_identifier or "").strip() else env.get("JOTFORM_FORM_IDS", "")
    return [i.strip() for i in (raw or "").split(",") if i.strip()]


class JotformAdapter(SourceAdapter):
    """
    Submissions of one or more Jotform forms, mapped through a named
    transform strategy (JOTFORM_TRANSFORMER, default "default").

    Pages are requested while they come back full; the resultSet total, when
    present, ends paging without the extra empty request.
    """

    name = "jotform"
    required_env = ("JOTFORM_API_KEY",)

    def __init__(
        self,
        env: Optional[Mapping[str, str]] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        super().__init__(env)
        self.transport = transport
        self._transformer: Optional[Transformer] = None

    @property
    def base_url(self) -> str:
        return (self.env.get("JOTFORM_BASE_URL") or DEFAULT_BASE_URL).rstrip("/")

    @property
    def page_size(self) -> int:
        return env_int(self.env, "JOTFORM_PAGE_SIZE", DEFAULT_PAGE_SIZE)

    def get_transformer(self) -> Transformer:
        if self._transformer is None:
            strategy = (self.env.get("JOTFORM_TRANSFORMER") or "default").strip()
            factory = TRANSFORMERS.get(strategy)
            if factory is None:
                raise ConfigurationError(
                    f"Unknown Jotform transformer: {strategy!r} (supported: {', '.join(sorted(TRANSFORMERS))})"
                )
            aliases = build_field_aliases(load_field_map_override(self.env.get("JOTFORM_FIELD_MAP")))
            self._transformer = factory(aliases)
        return self._transformer

    async def fetch_page(
        self, client: httpx.AsyncClient, api_key: str, form_id: str, offset: int
    ) -> Dict[str, Any]:
        payload = await get_json(
            client,
            f"{self.base_url}/form/{form_id}/submissions",
            source=self.name,
            params={
                "apiKey": api_key,
                "offset": str(offset),
                "limit": str(self.page_size),
                "orderby": "created_at",
            },
        )
        payload = payload or {}
        return {
            "content": payload.get("content") or [],
            "result_set": payload.get("resultSet") or payload.get("resultset"),
        }

    async def fetch_all_submissions(
        self, client: httpx.AsyncClient, api_key: str, form_id: str
    ) -> List[Dict[str, Any]]:
        page_size = self.page_size
        submissions: List[Dict[str, Any]] = []
        offset = 0

        while True:
            page = await self.fetch_page(client, api_key, form_id, offset)
            content = page["content"]
            submissions.extend(content)

            if len(content) < page_size:
                break

            rs = page["result_set"]
            if isinstance(rs, dict):
                total = rs.get("total")
                count = rs.get("count", len(content))
                seen_to = rs.get("offset", offset) + count
                if isinstance(total, int) and seen_to >= total:
                    break

            offset += page_size

        return submissions

    async def fetch_meetings(self, source_identifier: str) -> List[RawRecord]:
        (api_key,) = self.require_env(*self.required_env)
        form_ids = resolve_form_ids(source_identifier, self.env)
        if not form_ids:
            raise ConfigurationError(
                "No Jotform form IDs provided. Set JOTFORM_FORM_IDS or pass a comma-separated source id."
            )
        if self.env.get("JOTFORM_RATE_LIMIT_PER_DAY"):
            logger.info("[jotform] operator rate limit per day=%s", self.env["JOTFORM_RATE_LIMIT_PER_DAY"])

        transformer = self.get_transformer()

        async with new_client(self.transport) as client:
            per_form = await async_parallel_map(
                form_ids, lambda form_id, _i: self.fetch_all_submissions(client, api_key, form_id)
            )

        meetings: List[RawRecord] = []
        for form_id, submissions in zip(form_ids, per_form):
            logger.info("[jotform] form=%s submissions=%s", form_id, len(submissions))
            meetings.extend(
                self.transform_all(
                    submissions,
                    lambda s, form_id=form_id: transformer(
                        s, {"formId": form_id, "formTitle": s.get("form_title"), "submissionId": s.get("id")}
                    ),
                )
            )

        logger.info("[jotform] total meetings after transform=%s", len(meetings))
        return meetings

    async def test_connection(self) -> bool:
        api_key = self.env.get("JOTFORM_API_KEY")
        if not api_key:
            logger.error("[jotform] missing JOTFORM_API_KEY")
            return False
        form_ids = resolve_form_ids(None, self.env)
        try:
            async with new_client(self.transport) as client:
                if not form_ids:
                    logger.info("[jotform] no form ids configured; listing forms")
                    await get_json(
                        client,
                        f"{self.base_url}/user/forms",
                        source=self.name,
                        params={"apiKey": api_key, "limit": "1"},
                    )
                else:
                    await self.fetch_page(client, api_key, form_ids[0], 0)
        except Exception as e:
            logger.error("[jotform] connection test failed: %s: %s", type(e).__name__, e)
            return False
        logger.info("[jotform] connection successful")
        return True
