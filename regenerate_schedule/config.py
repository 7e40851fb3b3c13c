from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping, Optional

from dotenv import load_dotenv

from .util import env_bool, env_int, first_env

DEFAULT_MEETING_SOURCE = "google-sheets"
DEFAULT_STORAGE_BACKEND = "aws-s3"

HTML_TEMPLATE_FILE_KEY = "index.template.html"
STORAGE_DOWNLOAD_RETRY_TIMEOUT_DEFAULT_MS = 300
SCHEDULE_TYPE = "fullWeek"


@dataclass(frozen=True)
class Settings:
    meeting_source: str = DEFAULT_MEETING_SOURCE
    storage_backend: str = DEFAULT_STORAGE_BACKEND

    template_bucket: str = "templates"
    deploy_bucket: str = "sites"
    template_key: str = HTML_TEMPLATE_FILE_KEY
    download_retry_delay_ms: int = STORAGE_DOWNLOAD_RETRY_TIMEOUT_DEFAULT_MS

    schedule_timezone: str = "America/New_York"
    schedule_type: str = SCHEDULE_TYPE
    write_debug_files: bool = False
    debug_file_path: str = "meetingsNext7Days.json"

    # advisory integrations; None = disabled
    slack_webhook_url: Optional[str] = None
    honeybadger_api_key: Optional[str] = None
    honeybadger_check_in_token: Optional[str] = None
    cloudfront_distribution_id: Optional[str] = None
    log_group_name: Optional[str] = None
    log_stream_name: Optional[str] = None

    # triggers
    cron_schedule: str = "0 * * * *"
    run_on_startup: bool = False
    run_interval_minutes: int = 60
    port: int = 8080
    log_level: str = "INFO"

    tenants_file: Optional[str] = None
    tenants_json: Optional[str] = None

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> "Settings":
        """
        Build settings from the process environment.

        `.env` is loaded first (without overriding real env vars) when reading
        from os.environ. Bucket names follow the storage backend naming:
          template bucket: S3_BUCKET_NAME | R2_BUCKET_NAME | "templates"
          deploy bucket:   STATIC_SITE_S3_BUCKET | R2_BUCKET_NAME | "sites"
        """
        if env is None:
            load_dotenv()
            env = os.environ

        return cls(
            meeting_source=first_env(env, "MEETING_SOURCE", default=DEFAULT_MEETING_SOURCE),
            storage_backend=first_env(env, "STORAGE_BACKEND", default=DEFAULT_STORAGE_BACKEND),
            template_bucket=first_env(env, "S3_BUCKET_NAME", "R2_BUCKET_NAME", default="templates"),
            deploy_bucket=first_env(env, "STATIC_SITE_S3_BUCKET", "R2_BUCKET_NAME", default="sites"),
            template_key=first_env(env, "HTML_TEMPLATE_KEY", default=HTML_TEMPLATE_FILE_KEY),
            download_retry_delay_ms=env_int(
                env, "STORAGE_DOWNLOAD_RETRY_TIMEOUT_MS", STORAGE_DOWNLOAD_RETRY_TIMEOUT_DEFAULT_MS
            ),
            schedule_timezone=first_env(env, "SCHEDULE_TIMEZONE", default="America/New_York"),
            write_debug_files=env_bool(env, "WRITE_DEBUG_FILES"),
            debug_file_path=first_env(env, "DEBUG_FILE_PATH", default="meetingsNext7Days.json"),
            slack_webhook_url=first_env(env, "SLACK_WEBHOOK_URL"),
            honeybadger_api_key=first_env(env, "HONEYBADGER_API_KEY"),
            honeybadger_check_in_token=first_env(env, "HONEYBADGER_CHECK_IN_TOKEN"),
            cloudfront_distribution_id=first_env(env, "CLOUDFRONT_DISTRIBUTION_ID"),
            log_group_name=first_env(env, "AWS_LAMBDA_LOG_GROUP_NAME"),
            log_stream_name=first_env(env, "AWS_LAMBDA_LOG_STREAM_NAME"),
            cron_schedule=first_env(env, "CRON_SCHEDULE", default="0 * * * *"),
            run_on_startup=env_bool(env, "RUN_ON_STARTUP"),
            run_interval_minutes=env_int(env, "RUN_INTERVAL_MINUTES", 60),
            port=env_int(env, "PORT", 8080),
            log_level=first_env(env, "LOG_LEVEL", default="INFO").upper(),
            tenants_file=first_env(env, "TENANTS_FILE"),
            tenants_json=first_env(env, "TENANTS_JSON"),
        )
