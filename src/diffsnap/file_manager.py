"""Low-level file system helpers used by the snapshot store and config layer."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Any

import yaml

from .constants import SCRATCH_SUFFIX
from .errors import DiffSnapError, ErrorCode


def _permission_denied(action: str, path: Path) -> DiffSnapError:
    return DiffSnapError(
        ErrorCode.PERMISSION_DENIED,
        f"Permission denied while {action} {path}",
        "Check directory permissions and try again.",
    )


class FileManager:
    """Wrapper around text, YAML and snapshot file operations.

    Snapshot payloads are written and read with newline translation disabled and
    undecodable bytes carried as surrogates, so that a stored patch compares
    byte-for-byte with a freshly captured one.
    """

    def read_text(self, path: Path) -> str:
        try:
            with path.open(
                "r", encoding="utf-8", errors="surrogateescape", newline=""
            ) as handle:
                return handle.read()
        except FileNotFoundError:
            return ""
        except PermissionError as exc:
            raise _permission_denied("reading", path) from exc

    def write_scratch(self, directory: Path, content: str) -> Path:
        """Write content to a scratch file inside ``directory`` and return its path."""
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, name = tempfile.mkstemp(dir=directory, prefix=".", suffix=SCRATCH_SUFFIX)
            with os.fdopen(
                fd, "w", encoding="utf-8", errors="surrogateescape", newline=""
            ) as handle:
                handle.write(content)
        except PermissionError as exc:
            raise _permission_denied("writing", directory) from exc
        return Path(name)

    def promote(self, scratch: Path, target: Path) -> None:
        """Atomically move a scratch file to its final name."""
        try:
            os.replace(scratch, target)
        except PermissionError as exc:
            raise _permission_denied("writing", target) from exc

    def discard(self, path: Path) -> None:
        try:
            path.unlink()
        except FileNotFoundError:
            return
        except PermissionError as exc:
            raise _permission_denied("removing", path) from exc

    def prune_empty_parents(self, path: Path, stop_at: Path) -> None:
        """Remove empty directories from ``path`` upwards, never touching ``stop_at``."""
        current = path
        while current != stop_at and stop_at in current.parents:
            try:
                current.rmdir()
            except OSError:
                return
            current = current.parent

    def write_yaml(self, path: Path, payload: dict[str, Any]) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with path.open("w", encoding="utf-8") as handle:
                yaml.safe_dump(payload, handle, sort_keys=False, allow_unicode=False)
        except PermissionError as exc:
            raise _permission_denied("writing", path) from exc

    def read_yaml(self, path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with path.open("r", encoding="utf-8") as handle:
                loaded = yaml.safe_load(handle)
        except PermissionError as exc:
            raise _permission_denied("reading", path) from exc
        except yaml.YAMLError as exc:
            raise DiffSnapError(
                ErrorCode.INVALID_INPUT,
                f"Configuration file is not valid YAML: {path}",
                "Fix the file by hand or rewrite it with `diffsnap config <key> <value>`.",
            ) from exc
        if isinstance(loaded, dict):
            return loaded
        return {}
