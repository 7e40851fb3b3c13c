"""
Long-running service: cron-scheduled runs plus a small HTTP surface.

  GET  /         service info
  GET  /health   liveness + process uptime
  POST /trigger  start a run in the background, answer 202 immediately
"""
from __future__ import annotations

import logging
import sys
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import uvicorn
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from fastapi import BackgroundTasks, FastAPI

from .config import Settings
from .errors import ConfigurationError
from .pipeline import AppContext, configure_logging, run_schedule_regeneration_job
from .storage.registry import PUBLIC_URL_BACKENDS

logger = logging.getLogger(__name__)

_STARTED_MONOTONIC = time.monotonic()


async def run_job_safely(ctx: AppContext, trigger: str) -> None:
    """Trigger wrapper: a failed run is logged, never raised into the scheduler/HTTP layer."""
    logger.info("[server] run triggered by=%s", trigger)
    try:
        await run_schedule_regeneration_job(ctx)
    except Exception as e:
        logger.error("[server] run failed trigger=%s: %s: %s", trigger, type(e).__name__, e)


def build_scheduler(ctx: AppContext) -> AsyncIOScheduler:
    scheduler = AsyncIOScheduler(timezone="UTC")
    scheduler.add_job(
        run_job_safely,
        CronTrigger.from_crontab(ctx.settings.cron_schedule, timezone="UTC"),
        args=[ctx, "cron"],
        id="regenerate-schedule",
        max_instances=1,
        coalesce=True,
    )
    if ctx.settings.run_on_startup:
        scheduler.add_job(run_job_safely, args=[ctx, "startup"], id="regenerate-schedule-startup")
    return scheduler


def create_app(ctx: AppContext, *, with_scheduler: bool = True) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler: Optional[AsyncIOScheduler] = None
        if with_scheduler:
            scheduler = build_scheduler(ctx)
            scheduler.start()
            logger.info("[server] cron scheduled schedule=%r (UTC)", ctx.settings.cron_schedule)
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)

    app = FastAPI(title="Schedule Regeneration", lifespan=lifespan)

    @app.get("/")
    async def root() -> Dict[str, Any]:
        backend = ctx.settings.storage_backend
        return {
            "service": "Schedule Regeneration",
            "status": "running",
            "source": ctx.settings.meeting_source,
            "storage": {"backend": backend, "publicUrls": backend in PUBLIC_URL_BACKENDS},
            "integrations": ctx.effects.describe(),
            "endpoints": {"health": "/health", "trigger": "POST /trigger"},
        }

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - _STARTED_MONOTONIC, 3),
        }

    @app.post("/trigger", status_code=202)
    async def trigger(background_tasks: BackgroundTasks) -> Dict[str, Any]:
        background_tasks.add_task(run_job_safely, ctx, "manual")
        return {"message": "Job triggered", "timestamp": datetime.now(timezone.utc).isoformat()}

    return app


def main() -> int:
    try:
        settings = Settings.from_env()
        configure_logging(settings.log_level)
        ctx = AppContext.from_settings(settings)
    except ConfigurationError as e:
        configure_logging("INFO")
        logger.error("[config] %s", e)
        return 2
    uvicorn.run(create_app(ctx), host="0.0.0.0", port=settings.port)
    return 0


if __name__ == "__main__":
    sys.exit(main())
