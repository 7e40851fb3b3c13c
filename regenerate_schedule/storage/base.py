from __future__ import annotations

import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Mapping, Optional, Tuple, Union

from ..errors import ConfigurationError

Body = Union[str, bytes]


def to_bytes(body: Body) -> bytes:
    return body if isinstance(body, bytes) else body.encode("utf-8")


class StorageAdapter(ABC):
    """
    Contract for artifact storage.

    Object-store backends expose public URLs; volume/disk backends may not
    (get_public_url returns None). file_exists reports a miss as False;
    download_file of a missing key raises whatever the backend raises.
    """

    name: str = "storage"
    required_env: Tuple[str, ...] = ()

    def __init__(self, env: Optional[Mapping[str, str]] = None) -> None:
        self.env: Mapping[str, str] = os.environ if env is None else env

    @abstractmethod
    async def upload_file(self, *, bucket: str, key: str, body: Body, content_type: str) -> Dict[str, Any]:
        """Store *body*; returns a backend receipt (at least {"Location": ...})."""

    @abstractmethod
    async def download_file(self, *, bucket: str, key: str) -> str:
        """Object content decoded as UTF-8."""

    @abstractmethod
    async def file_exists(self, *, bucket: str, key: str) -> bool:
        ...

    def get_public_url(self, *, bucket: str, key: str) -> Optional[str]:
        return None

    def require_env(self, *names: str) -> list[str]:
        missing = [n for n in names if not (self.env.get(n) or "").strip()]
        if missing:
            raise ConfigurationError(f"[{self.name}] missing {', '.join(missing)}")
        return [self.env[n].strip() for n in names]
