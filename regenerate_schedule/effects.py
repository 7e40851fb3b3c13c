# regenerate_schedule/effects.py
"""
Best-effort side effects: chat notification, liveness check-in, CDN purge,
crash reporting.

Every effect goes through AdvisoryEffect.run(), which never raises: it
returns an EffectResult (ok / skipped / failed) and logs. Callers may look at
the result but nothing they do with it can change a job's outcome.
"""
from __future__ import annotations

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Sequence

import boto3
import httpx
from honeybadger import honeybadger

from .config import Settings

logger = logging.getLogger(__name__)

OK = "ok"
SKIPPED = "skipped"
FAILED = "failed"


@dataclass(frozen=True)
class EffectResult:
    effect: str
    status: str
    detail: str = ""

    @property
    def ok(self) -> bool:
        return self.status == OK


class AdvisoryEffect(ABC):
    name: str = "effect"

    @property
    @abstractmethod
    def enabled(self) -> bool:
        ...

    @abstractmethod
    async def perform(self, *args: Any, **kwargs: Any) -> str:
        """Do the work; may raise. Returns a short detail string."""

    async def run(self, *args: Any, **kwargs: Any) -> EffectResult:
        if not self.enabled:
            logger.info("[%s] skipped (not configured)", self.name)
            return EffectResult(self.name, SKIPPED)
        try:
            detail = await self.perform(*args, **kwargs)
        except Exception as e:
            logger.error("[%s] FAILED (ignored): %s: %s", self.name, type(e).__name__, e)
            return EffectResult(self.name, FAILED, f"{type(e).__name__}: {e}")
        logger.info("[%s] ok %s", self.name, detail)
        return EffectResult(self.name, OK, detail)


# ---------------------------------------------------------------------------
# CloudWatch log deeplink (appended to chat messages)
# ---------------------------------------------------------------------------

CLOUDWATCH_ROOT = (
    "https://console.aws.amazon.com/cloudwatch/home?region=us-east-1#logsV2:log-groups/log-group/"
)


def cloudwatch_url_encode(s: str) -> str:
    return (
        s.replace("$", "$2524")
        .replace("/", "$252F")
        .replace("[", "$255B")
        .replace("]", "$255D")
    )


def get_log_deeplink(group: Optional[str], stream: Optional[str]) -> str:
    if not group or not stream:
        return ""
    return f"{CLOUDWATCH_ROOT}{cloudwatch_url_encode(group)}/log-events/{cloudwatch_url_encode(stream)}"


# ---------------------------------------------------------------------------
# Effects
# ---------------------------------------------------------------------------

class SlackNotifier(AdvisoryEffect):
    name = "slack"

    def __init__(
        self,
        webhook_url: Optional[str],
        *,
        log_link: str = "",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.webhook_url = webhook_url
        self.log_link = log_link
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.webhook_url)

    def format(self, text: str) -> str:
        suffix = f" <{self.log_link}| Logs ›>" if self.log_link else "(`<dev>`)"
        return text + suffix

    async def perform(self, text: str) -> str:
        async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
            resp = await client.post(self.webhook_url, json={"text": self.format(text)})
        resp.raise_for_status()
        return f"status={resp.status_code}"


class HoneybadgerCheckIn(AdvisoryEffect):
    name = "check-in"
    base_url = "https://api.honeybadger.io/v1/check_in"

    def __init__(self, token: Optional[str], *, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.token = token
        self.transport = transport

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    async def perform(self) -> str:
        async with httpx.AsyncClient(transport=self.transport, timeout=10.0) as client:
            resp = await client.get(f"{self.base_url}/{self.token}")
        resp.raise_for_status()
        return f"status={resp.status_code}"


class CloudFrontInvalidator(AdvisoryEffect):
    name = "cdn"

    def __init__(self, distribution_id: Optional[str], *, client: Any = None) -> None:
        self.distribution_id = distribution_id
        self._client = client

    @property
    def enabled(self) -> bool:
        return bool(self.distribution_id)

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client("cloudfront")
        return self._client

    async def perform(self, paths: Sequence[str] = ("/*",)) -> str:
        client = self.client
        resp = await asyncio.to_thread(
            client.create_invalidation,
            DistributionId=self.distribution_id,
            InvalidationBatch={
                "Paths": {"Quantity": len(paths), "Items": list(paths)},
                "CallerReference": str(time.time()),
            },
        )
        inv_id = ((resp or {}).get("Invalidation") or {}).get("Id")
        return f"invalidation_id={inv_id} paths={list(paths)}"


class CrashReporter(AdvisoryEffect):
    """Sends one Honeybadger notice per error."""

    name = "crash-report"

    def __init__(self, api_key: Optional[str], *, environment: str = "production") -> None:
        self.api_key = api_key
        self.environment = environment
        self._configured = False

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def _configure(self) -> None:
        if not self._configured:
            honeybadger.configure(api_key=self.api_key, environment=self.environment)
            self._configured = True

    async def perform(self, error: BaseException, context: Optional[Mapping[str, Any]] = None) -> str:
        self._configure()
        await asyncio.to_thread(honeybadger.notify, error, context=dict(context or {}))
        return f"error={type(error).__name__}"


@dataclass
class Effects:
    notifier: SlackNotifier
    check_in: HoneybadgerCheckIn
    cdn: CloudFrontInvalidator
    crash: CrashReporter

    @classmethod
    def from_settings(cls, settings: Settings) -> "Effects":
        return cls(
            notifier=SlackNotifier(
                settings.slack_webhook_url,
                log_link=get_log_deeplink(settings.log_group_name, settings.log_stream_name),
            ),
            check_in=HoneybadgerCheckIn(settings.honeybadger_check_in_token),
            cdn=CloudFrontInvalidator(settings.cloudfront_distribution_id),
            crash=CrashReporter(settings.honeybadger_api_key),
        )

    def describe(self) -> Dict[str, bool]:
        return {e.name: e.enabled for e in (self.notifier, self.check_in, self.cdn, self.crash)}
