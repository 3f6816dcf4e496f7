"""Domain-specific error types for diffsnap operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    """Supported error codes reported by diffsnap commands."""

    NOT_A_REPOSITORY = "NOT_A_REPOSITORY"
    CAPTURE_IN_PROGRESS = "CAPTURE_IN_PROGRESS"
    MISSING_PREREQUISITE = "MISSING_PREREQUISITE"
    BRANCH_NOT_FOUND = "BRANCH_NOT_FOUND"
    INVALID_BRANCH_NAME = "INVALID_BRANCH_NAME"
    INVALID_INPUT = "INVALID_INPUT"
    PERMISSION_DENIED = "PERMISSION_DENIED"
    SCHEDULER_ERROR = "SCHEDULER_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class DiffSnapError(Exception):
    """Structured exception carrying a stable error contract."""

    code: ErrorCode
    message: str
    suggestion: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return self.message

    def to_payload(self) -> dict[str, Any]:
        return {
            "status": "error",
            "error_code": self.code.value,
            "message": self.message,
            "suggestion": self.suggestion or "",
            "details": self.details,
        }
