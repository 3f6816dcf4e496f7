"""Runtime configuration helpers sourced from environment variables."""

from __future__ import annotations

import logging
import os
import shlex
import sys
from collections.abc import Mapping
from dataclasses import dataclass

LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


@dataclass(frozen=True)
class RuntimeDefaults:
    """Process-level overrides read once at startup."""

    log_level: str | None
    command_prefix: str


def default_command_prefix() -> str:
    """Return the invocation used for scheduled runs of this interpreter."""
    return f"{shlex.quote(sys.executable)} -m diffsnap.cli"


def get_runtime_defaults(env: Mapping[str, str] | None = None) -> RuntimeDefaults:
    """Validate and return runtime overrides from environment variables."""
    source = os.environ if env is None else env

    log_level = source.get("DIFFSNAP_LOG_LEVEL", "").strip().upper() or None
    if log_level is not None and log_level not in LOG_LEVELS:
        allowed = ", ".join(sorted(LOG_LEVELS))
        raise ValueError(f"DIFFSNAP_LOG_LEVEL must be one of: {allowed}.")

    command_prefix = source.get("DIFFSNAP_COMMAND", "").strip() or default_command_prefix()
    return RuntimeDefaults(log_level=log_level, command_prefix=command_prefix)


def configure_logging(level: str) -> None:
    """Route log records to stderr so stdout stays reserved for command output."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
