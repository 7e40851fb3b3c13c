from __future__ import annotations

from typing import Optional


class ScheduleError(Exception):
    """Base class for errors raised by the schedule pipeline."""


class ConfigurationError(ScheduleError):
    """
    Unknown backend name, missing credential or unparseable setting.
    Raised at first use, never retried.
    """


class SourceFetchError(ScheduleError):
    """A meeting source answered with a non-success status."""

    def __init__(self, source: str, status_code: int, message: str = "") -> None:
        self.source = source
        self.status_code = status_code
        self.message = message
        super().__init__(f"{source} returned {status_code}: {message}".rstrip(": "))


class DownloadFailedError(ScheduleError):
    """Template download still failing after every retry attempt."""

    name = "DOWNLOAD_FAILED"

    def __init__(self, key: str, last_error: Optional[BaseException], attempts: int) -> None:
        self.key = key
        self.last_error = last_error
        self.attempts = attempts
        super().__init__(
            f"{self.name}: key={key!r} attempts={attempts} "
            f"last_error={type(last_error).__name__ if last_error else None}: {last_error}"
        )
