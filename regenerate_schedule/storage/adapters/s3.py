"""S3-compatible object storage: AWS S3 and Cloudflare R2."""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Mapping, Optional

import boto3
from botocore.config import Config
from botocore.exceptions import ClientError

from ..base import Body, StorageAdapter, to_bytes

logger = logging.getLogger(__name__)

_MISS_CODES = {"404", "NotFound", "NoSuchKey"}


class S3StorageAdapter(StorageAdapter):
    name = "aws-s3"
    scheme = "s3"

    def __init__(self, env: Optional[Mapping[str, str]] = None, client: Any = None) -> None:
        super().__init__(env)
        self._client = client

    @property
    def region(self) -> str:
        return self.env.get("AWS_S3_REGION") or "us-east-1"

    def client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "service_name": "s3",
            "region_name": self.region,
            "config": Config(signature_version="s3v4"),
        }
        access_key = self.env.get("AWS_ACCESS_KEY_ID")
        secret_key = self.env.get("AWS_SECRET_ACCESS_KEY")
        if access_key and secret_key:
            kwargs["aws_access_key_id"] = access_key
            kwargs["aws_secret_access_key"] = secret_key
        return kwargs

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(**self.client_kwargs())
        return self._client

    async def upload_file(self, *, bucket: str, key: str, body: Body, content_type: str) -> Dict[str, Any]:
        logger.info("[%s] upload %s://%s/%s", self.name, self.scheme, bucket, key)
        client = self.client
        resp = await asyncio.to_thread(
            client.put_object,
            Bucket=bucket,
            Key=key,
            Body=to_bytes(body),
            ContentType=content_type or "application/octet-stream",
        )
        return {"Location": f"{self.scheme}://{bucket}/{key}", "ETag": (resp or {}).get("ETag")}

    async def download_file(self, *, bucket: str, key: str) -> str:
        logger.info("[%s] download %s://%s/%s", self.name, self.scheme, bucket, key)
        client = self.client

        def _read() -> bytes:
            return client.get_object(Bucket=bucket, Key=key)["Body"].read()

        data = await asyncio.to_thread(_read)
        return data.decode("utf-8")

    async def file_exists(self, *, bucket: str, key: str) -> bool:
        client = self.client
        try:
            await asyncio.to_thread(client.head_object, Bucket=bucket, Key=key)
            return True
        except ClientError as e:
            if str(e.response.get("Error", {}).get("Code")) in _MISS_CODES:
                return False
            raise

    def get_public_url(self, *, bucket: str, key: str) -> Optional[str]:
        return f"https://{bucket}.s3.{self.region}.amazonaws.com/{key}"


class R2StorageAdapter(S3StorageAdapter):
    """Cloudflare R2 through the S3 API. Public URLs need R2_PUBLIC_DOMAIN."""

    name = "cloudflare-r2"
    required_env = ("R2_ACCOUNT_ID", "R2_ACCESS_KEY_ID", "R2_SECRET_ACCESS_KEY")
    scheme = "r2"

    @property
    def region(self) -> str:
        return "auto"

    def client_kwargs(self) -> Dict[str, Any]:
        account_id, access_key, secret_key = self.require_env(*self.required_env)
        return {
            "service_name": "s3",
            "region_name": self.region,
            "endpoint_url": f"https://{account_id}.r2.cloudflarestorage.com",
            "aws_access_key_id": access_key,
            "aws_secret_access_key": secret_key,
            "config": Config(signature_version="s3v4"),
        }

    def get_public_url(self, *, bucket: str, key: str) -> Optional[str]:
        domain = self.env.get("R2_PUBLIC_DOMAIN")
        if domain:
            return f"https://{domain}/{key}"
        logger.warning("[cloudflare-r2] no R2_PUBLIC_DOMAIN set, cannot build public URL")
        return None
