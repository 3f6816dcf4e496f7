"""Marker-file guard that keeps two captures of one repository apart."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from types import TracebackType

from .errors import DiffSnapError, ErrorCode

logger = logging.getLogger(__name__)


class CaptureLock:
    """Exclusive, non-blocking marker file; fails fast when already held."""

    def __init__(self, path: Path) -> None:
        self.path = path
        self._held = False

    def acquire(self) -> None:
        try:
            fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError as exc:
            raise DiffSnapError(
                ErrorCode.CAPTURE_IN_PROGRESS,
                "A capture is already in progress for this repository",
                f"Wait for it to finish, or remove {self.path} if no capture is running.",
                {"lock_file": str(self.path)},
            ) from exc
        with os.fdopen(fd, "w", encoding="utf-8") as handle:
            handle.write(f"{os.getpid()}\n")
        self._held = True
        logger.debug("Acquired capture lock %s", self.path)

    def release(self) -> None:
        if not self._held:
            return
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        self._held = False
        logger.debug("Released capture lock %s", self.path)

    def __enter__(self) -> "CaptureLock":
        self.acquire()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.release()
