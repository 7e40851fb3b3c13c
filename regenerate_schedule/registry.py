from __future__ import annotations

import logging
import threading
from typing import Callable, Generic, Mapping, Optional, Tuple, TypeVar

from .errors import ConfigurationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AdapterRegistry(Generic[T]):
    """
    Lazily resolves one configured backend name to one adapter instance.

    The set of variants is closed (a name -> factory mapping fixed at import
    time). Resolution happens on the first call to resolve() and is cached for
    the lifetime of the registry; an unknown name fails there, not here.
    """

    def __init__(self, kind: str, backend: str, variants: Mapping[str, Callable[[], T]]) -> None:
        self.kind = kind
        self.backend = backend
        self._variants = dict(variants)
        self._instance: Optional[T] = None
        self._lock = threading.Lock()

    @property
    def supported(self) -> list[str]:
        return sorted(self._variants)

    @property
    def required_env(self) -> Tuple[str, ...]:
        """Env vars the configured variant declares; empty for an unknown name."""
        return tuple(getattr(self._variants.get(self.backend), "required_env", ()))

    @property
    def resolved(self) -> bool:
        return self._instance is not None

    def resolve(self) -> T:
        if self._instance is not None:
            return self._instance
        with self._lock:
            if self._instance is None:
                factory = self._variants.get(self.backend)
                if factory is None:
                    raise ConfigurationError(
                        f"Unknown {self.kind} backend: {self.backend!r} "
                        f"(supported: {', '.join(self.supported)})"
                    )
                logger.info("[registry] init kind=%s backend=%s", self.kind, self.backend)
                self._instance = factory()
        return self._instance
