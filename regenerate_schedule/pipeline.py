# regenerate_schedule/pipeline.py
"""
One regeneration run across all tenants.

=== Flow ===

  resolve source + storage adapters           (setup; failures are fatal)
  for each tenant, in configured order:
      fetch -> normalize/sort -> publish      (failures recorded, loop continues)
  CDN purge "/*"                              (best-effort)
  summary notification                        (best-effort)
  liveness check-in                           (best-effort)

Tenants run strictly one at a time: adapters are not assumed safe for
concurrent use, and per-tenant attribution has to stay deterministic.

A setup-level failure is reported (crash reporter + chat, best-effort) and
re-raised to whoever triggered the run.
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Mapping, Optional

from .config import Settings
from .effects import Effects
from .errors import ConfigurationError
from .models import JobResult, SchedulePayload, TenantConfig, TenantOutcome
from .normalize import generate_schedule
from .publish import PublishTarget, Sleeper, publish_schedule
from .registry import AdapterRegistry
from .sources.base import SourceAdapter
from .sources.registry import source_registry
from .storage.base import StorageAdapter
from .storage.registry import storage_registry
from .tenants import load_tenants
from .util import async_for_each, async_parallel_map, sleep_ms, validate_env_vars

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    """Everything a run needs; built once at process start."""

    settings: Settings
    tenants: List[TenantConfig]
    sources: AdapterRegistry[SourceAdapter]
    storage: AdapterRegistry[StorageAdapter]
    effects: Effects

    @classmethod
    def from_settings(cls, settings: Settings, env: Optional[Mapping[str, str]] = None) -> "AppContext":
        """
        Fails fast on missing tenants or on credentials the configured
        backends declare. Unknown backend names still fail at first resolve().
        """
        sources = source_registry(settings.meeting_source)
        storage = storage_registry(settings.storage_backend)
        validate_env_vars([*sources.required_env, *storage.required_env], env)
        return cls(
            settings=settings,
            tenants=load_tenants(settings),
            sources=sources,
            storage=storage,
            effects=Effects.from_settings(settings),
        )

    @property
    def publish_target(self) -> PublishTarget:
        s = self.settings
        return PublishTarget(
            template_bucket=s.template_bucket,
            deploy_bucket=s.deploy_bucket,
            template_key=s.template_key,
            retry_delay_ms=s.download_retry_delay_ms,
        )


# ---------------------------------------------------------------------------
# Per tenant
# ---------------------------------------------------------------------------

async def rebuild_and_deploy_site(
    ctx: AppContext,
    tenant: TenantConfig,
    source: SourceAdapter,
    storage: StorageAdapter,
    *,
    now: Optional[datetime] = None,
    sleep: Sleeper = sleep_ms,
) -> SchedulePayload:
    s = ctx.settings
    payload = await generate_schedule(
        source,
        tenant.source_identifier,
        tz_name=s.schedule_timezone,
        schedule_type=s.schedule_type,
        now=now,
        debug_file=s.debug_file_path if s.write_debug_files else None,
    )
    await publish_schedule(storage, payload, tenant, ctx.publish_target, sleep=sleep)
    return payload


def _failure_message(result: JobResult) -> str:
    details = "; ".join(f"{o.tenant}: {o.error!r}" for o in result.failed_tenants)
    return f"❗️ Schedule regeneration finished with {result.errors} error(s): {details}"


# ---------------------------------------------------------------------------
# Whole run
# ---------------------------------------------------------------------------

async def run_schedule_regeneration_job(
    ctx: AppContext,
    *,
    now: Optional[datetime] = None,
    sleep: Sleeper = sleep_ms,
) -> JobResult:
    started = datetime.now(timezone.utc)
    logger.info("[pipeline] start job at=%s tenants=%s", started.isoformat(), len(ctx.tenants))

    try:
        source = ctx.sources.resolve()
        storage = ctx.storage.resolve()
        result = JobResult()

        async def _run_tenant(tenant: TenantConfig, idx: int) -> None:
            logger.info("[tenant] start name=%s (%s/%s)", tenant.name, idx + 1, len(ctx.tenants))
            try:
                await rebuild_and_deploy_site(ctx, tenant, source, storage, now=now, sleep=sleep)
            except Exception as e:
                logger.error(
                    "[tenant] ERROR name=%s: %s: %s", tenant.name, type(e).__name__, e, exc_info=True
                )
                result.outcomes.append(TenantOutcome(tenant.name, e))
                await ctx.effects.crash.run(
                    e, {"tenant": tenant.name, "site": tenant.site_identifier, "source": source.name}
                )
                return
            result.outcomes.append(TenantOutcome(tenant.name))
            logger.info("[tenant] done name=%s", tenant.name)

        await async_for_each(ctx.tenants, _run_tenant)

        await ctx.effects.cdn.run(["/*"])

        if result.success:
            await ctx.effects.notifier.run(f"✅ Schedules regenerated ({len(result.outcomes)} sites)")
        else:
            logger.warning("[pipeline] completed with errors=%s", result.errors)
            await ctx.effects.notifier.run(_failure_message(result))

        await ctx.effects.check_in.run()

    except Exception as err:
        logger.error("[pipeline] FATAL %s: %s", type(err).__name__, err, exc_info=True)
        await ctx.effects.crash.run(err, {"stage": "orchestration"})
        await ctx.effects.notifier.run(f"❗️ Error! {err!r}")
        raise

    elapsed = (datetime.now(timezone.utc) - started).total_seconds()
    logger.info(
        "[pipeline][summary] tenants=%s ok=%s errors=%s success=%s duration_s=%.1f",
        len(result.outcomes), len(result.outcomes) - result.errors, result.errors, result.success, elapsed,
    )
    return result


async def check_connections(ctx: AppContext) -> Dict[str, bool]:
    """Check the source and the template bucket side by side."""
    source = ctx.sources.resolve()
    storage = ctx.storage.resolve()

    async def _storage_check() -> bool:
        try:
            return await storage.file_exists(bucket=ctx.settings.template_bucket, key=ctx.settings.template_key)
        except Exception as e:
            logger.error("[check] storage check failed: %s: %s", type(e).__name__, e)
            return False

    checks = {"source": source.test_connection, "storage": _storage_check}
    results = await async_parallel_map(list(checks.values()), lambda check, _i: check())
    return dict(zip(checks, results))


async def run_worker(ctx: AppContext, interval_minutes: int) -> None:
    """Run, sleep, repeat. interval <= 0 means a single run."""
    while True:
        try:
            await run_schedule_regeneration_job(ctx)
        except Exception as e:
            logger.error("[worker] run failed: %s: %s", type(e).__name__, e)
        if interval_minutes <= 0:
            logger.info("[worker] RUN_INTERVAL_MINUTES <= 0, exiting after single run")
            return
        logger.info("[worker] sleeping minutes=%s", interval_minutes)
        await asyncio.sleep(interval_minutes * 60)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Regenerate and deploy meeting schedules for all tenants.")
    parser.add_argument("--loop", action="store_true", help="Keep running every RUN_INTERVAL_MINUTES.")
    parser.add_argument("--interval-minutes", type=int, default=None, help="Override RUN_INTERVAL_MINUTES.")
    parser.add_argument("--check", action="store_true", help="Only test source/storage connectivity.")
    args = parser.parse_args(argv)

    try:
        settings = Settings.from_env()
    except ConfigurationError as e:
        configure_logging("INFO")
        logger.error("[config] %s", e)
        return 2
    configure_logging(settings.log_level)

    try:
        ctx = AppContext.from_settings(settings)
    except ConfigurationError as e:
        logger.error("[config] %s", e)
        return 2

    if args.check:
        try:
            results = asyncio.run(check_connections(ctx))
        except ConfigurationError as e:
            logger.error("[config] %s", e)
            return 2
        for name, ok in results.items():
            logger.info("[check] %s=%s", name, "ok" if ok else "FAILED")
        return 0 if all(results.values()) else 1

    if args.loop:
        interval = args.interval_minutes if args.interval_minutes is not None else settings.run_interval_minutes
        asyncio.run(run_worker(ctx, interval))
        return 0

    result = asyncio.run(run_schedule_regeneration_job(ctx))
    return 0 if result.success else 1


if __name__ == "__main__":
    sys.exit(main())
