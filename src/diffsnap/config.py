"""Repository-local configuration: load once, pass around, rewrite on request."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .constants import DEFAULT_LOG_LEVEL, DEFAULT_MAX_SNAPSHOTS, DEFAULT_OUTPUT_DIR_NAME
from .errors import DiffSnapError, ErrorCode
from .file_manager import FileManager
from .runtime import LOG_LEVELS

logger = logging.getLogger(__name__)

MUTABLE_KEYS = ("output_dir", "max_snapshots", "log_level")


class SnapshotConfig(BaseModel):
    """Immutable settings shared by every component of one invocation."""

    model_config = ConfigDict(frozen=True)

    output_dir: str = ""
    max_snapshots: int = Field(default=DEFAULT_MAX_SNAPSHOTS, ge=1)
    log_level: str = DEFAULT_LOG_LEVEL

    @field_validator("log_level")
    @classmethod
    def _known_log_level(cls, value: str) -> str:
        level = str(value).strip().upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of: {', '.join(sorted(LOG_LEVELS))}")
        return level

    def output_root(self, repo_root: Path, git_dir: Path) -> Path:
        """Resolve the snapshot root; relative paths are anchored at the repository root."""
        if not self.output_dir:
            return git_dir / DEFAULT_OUTPUT_DIR_NAME
        path = Path(self.output_dir).expanduser()
        if not path.is_absolute():
            path = repo_root / path
        return path

    def to_file_payload(self) -> dict[str, Any]:
        return {key: getattr(self, key) for key in MUTABLE_KEYS}


def _build(values: dict[str, Any], source: Path) -> SnapshotConfig:
    try:
        return SnapshotConfig(**values)
    except ValidationError as exc:
        errors: Any
        try:
            errors = exc.errors(include_context=False, include_input=False)
        except TypeError:
            errors = exc.errors()
        raise DiffSnapError(
            ErrorCode.INVALID_INPUT,
            f"Invalid configuration in {source}",
            f"Supported keys: {', '.join(MUTABLE_KEYS)}.",
            {"errors": errors},
        ) from exc


def load_config(path: Path, file_manager: FileManager | None = None) -> SnapshotConfig:
    """Read the config file, falling back to compiled-in defaults when it is absent."""
    manager = file_manager or FileManager()
    raw = manager.read_yaml(path)
    values = {key: raw[key] for key in MUTABLE_KEYS if raw.get(key) is not None}
    config = _build(values, path)
    logger.debug("Loaded configuration from %s: %s", path, config.to_file_payload())
    return config


def update_config(
    config: SnapshotConfig,
    key: str,
    value: Any,
    path: Path,
    file_manager: FileManager | None = None,
) -> SnapshotConfig:
    """Return a new config with ``key`` replaced and rewrite the file wholesale."""
    if key not in MUTABLE_KEYS:
        raise DiffSnapError(
            ErrorCode.INVALID_INPUT,
            f"Unsupported config key '{key}'",
            f"Use one of: {', '.join(MUTABLE_KEYS)}",
        )

    if key == "max_snapshots":
        try:
            value = int(value)
        except (TypeError, ValueError) as exc:
            raise DiffSnapError(
                ErrorCode.INVALID_INPUT,
                f"Config key '{key}' requires an integer value",
                "Provide a numeric value.",
            ) from exc

    updated = _build({**config.to_file_payload(), key: value}, path)
    (file_manager or FileManager()).write_yaml(path, updated.to_file_payload())
    logger.info("Config key %s set to %r in %s", key, getattr(updated, key), path)
    return updated
