from __future__ import annotations

import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from ..base import Body, StorageAdapter, to_bytes

logger = logging.getLogger(__name__)


class LocalStorageAdapter(StorageAdapter):
    """
    Files under <root>/<bucket>/<key>; the content type goes to a sibling
    `<file>.meta` JSON file. For development and tests.
    """

    name = "local"
    root_env = "LOCAL_STORAGE_PATH"
    default_root = "./local-storage"

    @property
    def root(self) -> Path:
        return Path(self.env.get(self.root_env) or self.default_root)

    def path_for(self, bucket: str, key: str) -> Path:
        base = (self.root / bucket).resolve()
        full = (base / key).resolve()
        if base != full and base not in full.parents:
            raise ValueError(f"key escapes bucket directory: {key!r}")
        return full

    async def upload_file(self, *, bucket: str, key: str, body: Body, content_type: str) -> Dict[str, Any]:
        full = self.path_for(bucket, key)
        logger.info("[%s] write %s", self.name, full)

        def _write() -> None:
            full.parent.mkdir(parents=True, exist_ok=True)
            full.write_bytes(to_bytes(body))
            if content_type:
                Path(f"{full}.meta").write_text(json.dumps({"contentType": content_type}), encoding="utf-8")

        await asyncio.to_thread(_write)
        return {"Location": str(full)}

    async def download_file(self, *, bucket: str, key: str) -> str:
        full = self.path_for(bucket, key)
        logger.info("[%s] read %s", self.name, full)
        return await asyncio.to_thread(full.read_text, encoding="utf-8")

    async def file_exists(self, *, bucket: str, key: str) -> bool:
        return await asyncio.to_thread(self.path_for(bucket, key).is_file)


class FlyVolumesStorageAdapter(LocalStorageAdapter):
    """Same layout on a mounted Fly.io volume; public only behind FLY_APP_URL."""

    name = "fly-volumes"
    root_env = "FLY_VOLUME_PATH"
    default_root = "/data"

    def get_public_url(self, *, bucket: str, key: str) -> Optional[str]:
        base_url = self.env.get("FLY_APP_URL")
        if base_url:
            return f"{base_url.rstrip('/')}/files/{bucket}/{key}"
        return None
