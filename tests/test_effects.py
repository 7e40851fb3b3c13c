# tests/test_effects.py
from __future__ import annotations

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest

from regenerate_schedule.config import Settings
from regenerate_schedule.effects import (
    FAILED,
    OK,
    SKIPPED,
    CloudFrontInvalidator,
    CrashReporter,
    Effects,
    HoneybadgerCheckIn,
    SlackNotifier,
    cloudwatch_url_encode,
    get_log_deeplink,
)


class TestDeeplink:
    def test_encoding(self):
        assert cloudwatch_url_encode("/aws/lambda/fn") == "$252Faws$252Flambda$252Ffn"
        assert cloudwatch_url_encode("[$LATEST]") == "$255B$2524LATEST$255D"

    def test_link(self):
        link = get_log_deeplink("/aws/lambda/fn", "2026/10/19/[$LATEST]abc")
        assert link.startswith("https://console.aws.amazon.com/cloudwatch/home?region=us-east-1#logsV2:")
        assert link.endswith("/log-events/2026$252F10$252F19$252F$255B$2524LATEST$255Dabc")

    def test_no_link_without_both_parts(self):
        assert get_log_deeplink(None, "stream") == ""
        assert get_log_deeplink("group", "") == ""


class TestSlack:
    def test_format(self):
        assert SlackNotifier("u").format("hi") == "hi(`<dev>`)"
        assert SlackNotifier("u", log_link="https://logs").format("hi") == "hi <https://logs| Logs ›>"

    @pytest.mark.asyncio
    async def test_posts_text(self):
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append((str(request.url), json.loads(request.content)))
            return httpx.Response(200, text="ok")

        notifier = SlackNotifier("https://hooks.slack.test/abc", transport=httpx.MockTransport(handler))
        result = await notifier.run("✅ done")

        assert result.status == OK
        assert seen == [("https://hooks.slack.test/abc", {"text": "✅ done(`<dev>`)"})]

    @pytest.mark.asyncio
    async def test_skipped_without_webhook(self):
        result = await SlackNotifier(None).run("x")
        assert result.status == SKIPPED
        assert not result.ok

    @pytest.mark.asyncio
    async def test_http_error_is_swallowed(self):
        notifier = SlackNotifier(
            "https://hooks.slack.test/abc",
            transport=httpx.MockTransport(lambda r: httpx.Response(403, text="invalid_token")),
        )
        result = await notifier.run("x")
        assert result.status == FAILED
        assert "HTTPStatusError" in result.detail


class TestCheckIn:
    @pytest.mark.asyncio
    async def test_pings_token_url(self):
        urls = []

        def handler(request: httpx.Request) -> httpx.Response:
            urls.append(str(request.url))
            return httpx.Response(200)

        result = await HoneybadgerCheckIn("abc123", transport=httpx.MockTransport(handler)).run()

        assert result.ok
        assert urls == ["https://api.honeybadger.io/v1/check_in/abc123"]

    @pytest.mark.asyncio
    async def test_network_error_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectTimeout("timed out", request=request)

        result = await HoneybadgerCheckIn("abc123", transport=httpx.MockTransport(handler)).run()
        assert result.status == FAILED


class TestCloudFront:
    @pytest.mark.asyncio
    async def test_invalidates_paths(self):
        client = MagicMock()
        client.create_invalidation.return_value = {"Invalidation": {"Id": "I123"}}

        result = await CloudFrontInvalidator("EDFDVBD6", client=client).run(["/*"])

        assert result.ok
        assert "I123" in result.detail
        kwargs = client.create_invalidation.call_args.kwargs
        assert kwargs["DistributionId"] == "EDFDVBD6"
        assert kwargs["InvalidationBatch"]["Paths"] == {"Quantity": 1, "Items": ["/*"]}
        assert kwargs["InvalidationBatch"]["CallerReference"]

    @pytest.mark.asyncio
    async def test_skipped_without_distribution(self):
        client = MagicMock()
        result = await CloudFrontInvalidator(None, client=client).run(["/*"])
        assert result.status == SKIPPED
        client.create_invalidation.assert_not_called()


class TestCrashReporter:
    @pytest.mark.asyncio
    async def test_notify_failure_is_swallowed(self):
        with patch("regenerate_schedule.effects.honeybadger") as hb:
            hb.notify.side_effect = RuntimeError("quota")
            result = await CrashReporter("key").run(ValueError("x"), {"tenant": "A"})
        assert result.status == FAILED

    @pytest.mark.asyncio
    async def test_configures_once(self):
        reporter = CrashReporter("key")
        with patch("regenerate_schedule.effects.honeybadger") as hb:
            await reporter.run(ValueError("one"))
            await reporter.run(ValueError("two"))
        hb.configure.assert_called_once()
        assert hb.notify.call_count == 2


def test_effects_from_settings():
    settings = Settings(
        slack_webhook_url="https://hooks.slack.test/x",
        cloudfront_distribution_id="D1",
        log_group_name="g",
        log_stream_name="s",
    )
    effects = Effects.from_settings(settings)

    assert effects.describe() == {"slack": True, "check-in": False, "cdn": True, "crash-report": False}
    assert effects.notifier.log_link == get_log_deeplink("g", "s")
