"""Pydantic models for diffsnap command inputs and outputs."""

from __future__ import annotations

from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from .constants import DEFAULT_WATCH_MINUTES, MAX_LABEL_LENGTH


class RotationOutcome(str, Enum):
    DISCARDED = "discarded"
    STORED = "stored"
    STORED_AFTER_EVICTION = "stored_after_eviction"


class CleanupMode(str, Enum):
    OBSOLETE = "obsolete"
    NAMED = "named"


class CaptureRequest(BaseModel):
    label: str | None = Field(default=None, max_length=MAX_LABEL_LENGTH)

    @field_validator("label")
    @classmethod
    def _label_is_file_safe(cls, value: str | None) -> str | None:
        if value is None or value == "":
            return None
        if "/" in value or "\\" in value or "\x00" in value:
            raise ValueError("label must not contain path separators or NUL bytes")
        return value


class WatchRequest(BaseModel):
    minutes: int | None = Field(default=None, ge=1, le=59)
    cron: str | None = None

    @field_validator("cron")
    @classmethod
    def _cron_not_blank(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        if not stripped:
            raise ValueError("cron expression must not be blank")
        if "\n" in stripped:
            raise ValueError("cron expression must be a single line")
        return stripped

    @model_validator(mode="after")
    def _exclusive_schedule(self) -> "WatchRequest":
        if self.minutes is not None and self.cron is not None:
            raise ValueError("minutes and cron are mutually exclusive")
        return self

    def schedule(self) -> str:
        """Return the cron schedule expression for this request."""
        if self.cron is not None:
            return self.cron
        return f"*/{self.minutes or DEFAULT_WATCH_MINUTES} * * * *"


class BaseToolResponse(BaseModel):
    status: Literal["success", "error"]
    message: str = ""
    error_code: str = ""
    suggestion: str = ""
    details: dict[str, Any] = Field(default_factory=dict)


class CaptureResponse(BaseToolResponse):
    outcome: RotationOutcome | None = None
    branch: str = ""
    filename: str = ""
    evicted: list[str] = Field(default_factory=list)
    count: int = 0


class BranchSummary(BaseModel):
    name: str
    count: int = 0
    latest: str = ""
    current: bool = False
    obsolete: bool = False


class StatusResponse(BaseToolResponse):
    current_branch: str = ""
    output_dir: str = ""
    max_snapshots: int = 0
    watched: bool = False
    schedule: str = ""
    branches: list[BranchSummary] = Field(default_factory=list)


class CleanupResponse(BaseToolResponse):
    mode: CleanupMode | None = None
    candidates: list[BranchSummary] = Field(default_factory=list)
    deleted: list[str] = Field(default_factory=list)
    confirmed: bool = False


class WatchResponse(BaseToolResponse):
    watched: bool = False
    schedule: str = ""
    command: str = ""
    changed: bool = False
