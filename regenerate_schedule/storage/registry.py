from __future__ import annotations

from typing import Dict, Type

from ..registry import AdapterRegistry
from .base import StorageAdapter
from .adapters.local import FlyVolumesStorageAdapter, LocalStorageAdapter
from .adapters.s3 import R2StorageAdapter, S3StorageAdapter


ADAPTERS: Dict[str, Type[StorageAdapter]] = {
    "aws-s3": S3StorageAdapter,
    "cloudflare-r2": R2StorageAdapter,
    "fly-volumes": FlyVolumesStorageAdapter,
    "local": LocalStorageAdapter,
}

# backends whose objects can be served directly / fronted by a CDN
PUBLIC_URL_BACKENDS = frozenset({"aws-s3", "cloudflare-r2"})


def storage_registry(backend: str) -> AdapterRegistry[StorageAdapter]:
    return AdapterRegistry("storage", backend, ADAPTERS)
