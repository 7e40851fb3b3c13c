"""
Materialize a schedule payload into the static site and push it.

Sequence per tenant:
  1. download the HTML template (bounded retry, fixed delay)
  2. inject `const JSON_SCHEDULE=<json>` at the marker
  3. upload the HTML (no retry)
  4. upload the JSON payload as <site>.json (no retry)

Any failure aborts the remaining steps for that tenant and propagates.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional

from .errors import DownloadFailedError
from .models import SchedulePayload, TenantConfig
from .normalize import serialize_schedule
from .storage.base import StorageAdapter
from .util import sleep_ms

logger = logging.getLogger(__name__)

HTML_TEMPLATE_JSON_INJECT_MARKER = "/* INJECT_SCHEDULE_JSON */"
DOWNLOAD_ATTEMPTS = 3

Sleeper = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class PublishTarget:
    template_bucket: str
    deploy_bucket: str
    template_key: str
    retry_delay_ms: int = 300


async def download_file_with_retry(
    storage: StorageAdapter,
    *,
    bucket: str,
    key: str,
    attempts: int = DOWNLOAD_ATTEMPTS,
    delay_ms: float = 300,
    sleep: Sleeper = sleep_ms,
) -> str:
    """
    Up to *attempts* downloads with *delay_ms* between them (none after the
    last). Raises DownloadFailedError carrying the key and the last error.
    """
    last_error: Optional[BaseException] = None
    for attempt in range(1, attempts + 1):
        try:
            logger.info("[publish] download attempt=%s/%s key=%s", attempt, attempts, key)
            content = await storage.download_file(bucket=bucket, key=key)
            logger.info("[publish] download ok key=%s", key)
            return content
        except Exception as e:
            last_error = e
            logger.warning(
                "[publish] download failed attempt=%s/%s key=%s: %s: %s",
                attempt, attempts, key, type(e).__name__, e,
            )
            if attempt < attempts:
                await sleep(delay_ms)
    raise DownloadFailedError(key, last_error, attempts)


def render_artifact(template_html: str, payload: SchedulePayload) -> str:
    """Literal, single-occurrence marker replacement. No marker -> template unchanged."""
    if HTML_TEMPLATE_JSON_INJECT_MARKER not in template_html:
        logger.warning("[publish] template has no inject marker; uploading without schedule data")
        return template_html
    injected = f"const JSON_SCHEDULE={serialize_schedule(payload)}"
    return template_html.replace(HTML_TEMPLATE_JSON_INJECT_MARKER, injected, 1)


async def publish_schedule(
    storage: StorageAdapter,
    payload: SchedulePayload,
    tenant: TenantConfig,
    target: PublishTarget,
    *,
    sleep: Sleeper = sleep_ms,
) -> None:
    logger.info("[publish] start tenant=%s site=%s", tenant.name, tenant.site_identifier)

    template_html = await download_file_with_retry(
        storage,
        bucket=target.template_bucket,
        key=tenant.template_key or target.template_key,
        delay_ms=target.retry_delay_ms,
        sleep=sleep,
    )

    html = render_artifact(template_html, payload)

    logger.info("[publish] upload html bucket=%s key=%s", target.deploy_bucket, tenant.html_key)
    await storage.upload_file(
        bucket=target.deploy_bucket,
        key=tenant.html_key,
        body=html,
        content_type="text/html",
    )

    logger.info("[publish] upload json bucket=%s key=%s", target.deploy_bucket, tenant.json_key)
    await storage.upload_file(
        bucket=target.deploy_bucket,
        key=tenant.json_key,
        body=serialize_schedule(payload),
        content_type="application/json",
    )

    logger.info("[publish] done tenant=%s", tenant.name)
