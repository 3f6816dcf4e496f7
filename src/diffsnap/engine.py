"""Core diffsnap engine wiring the differ, store, rotation and scheduler together."""

from __future__ import annotations

import logging
import os
from collections.abc import Callable, Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from . import cleanup, rotation
from .config import SnapshotConfig, load_config, update_config
from .constants import CONFIG_FILE_NAME, LOCK_FILE_NAME
from .errors import DiffSnapError, ErrorCode
from .file_manager import FileManager
from .inventory import classify, classify_named
from .lock import CaptureLock
from .models import (
    CaptureRequest,
    CaptureResponse,
    CleanupMode,
    CleanupResponse,
    RotationOutcome,
    StatusResponse,
    WatchRequest,
    WatchResponse,
)
from .repository import GitRepository
from .runtime import RuntimeDefaults, get_runtime_defaults
from .store import SnapshotStore
from .watch import CrontabJobTable, JobTable, WatchController, watch_command

logger = logging.getLogger(__name__)


class DiffSnapEngine:
    """Main service implementing diffsnap operations for one repository."""

    def __init__(
        self,
        repository: GitRepository,
        config: SnapshotConfig,
        runtime: RuntimeDefaults,
        job_table: JobTable | None = None,
        file_manager: FileManager | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> None:
        self.repository = repository
        self.config = config
        self.runtime = runtime
        self.file_manager = file_manager or FileManager()
        self.store = SnapshotStore(
            config.output_root(repository.root, repository.git_dir), self.file_manager
        )
        self.watcher = WatchController(
            job_table or CrontabJobTable(),
            watch_command(repository.root, runtime.command_prefix),
        )
        self._now_fn = now_fn or datetime.now

    @classmethod
    def open(
        cls,
        directory: str | os.PathLike[str] = ".",
        env: Mapping[str, str] | None = None,
        job_table: JobTable | None = None,
        now_fn: Callable[[], datetime] | None = None,
    ) -> "DiffSnapEngine":
        """Discover the repository, load its config once and build the engine."""
        repository = GitRepository.discover(directory)
        try:
            runtime = get_runtime_defaults(env)
        except ValueError as exc:
            raise DiffSnapError(ErrorCode.INVALID_INPUT, str(exc)) from exc
        file_manager = FileManager()
        config = load_config(repository.git_dir / CONFIG_FILE_NAME, file_manager)
        return cls(
            repository,
            config,
            runtime,
            job_table=job_table,
            file_manager=file_manager,
            now_fn=now_fn,
        )

    @property
    def config_path(self) -> Path:
        return self.repository.git_dir / CONFIG_FILE_NAME

    @property
    def lock_path(self) -> Path:
        return self.repository.git_dir / LOCK_FILE_NAME

    @property
    def log_level(self) -> str:
        return self.runtime.log_level or self.config.log_level

    def _checked_out(self) -> str:
        """Return the checked-out branch name, or an empty string on a detached HEAD."""
        try:
            return self.repository.current_branch()
        except DiffSnapError:
            return ""

    def capture(self, request: CaptureRequest) -> CaptureResponse:
        """Take one snapshot of the working tree for the checked-out branch."""
        with CaptureLock(self.lock_path):
            branch = self.repository.current_branch()
            blob = self.repository.capture(exclude=self.store.root.resolve())
            branch_store = self.store.branch(branch)
            result = rotation.apply(
                branch_store,
                blob,
                self.config.max_snapshots,
                label=request.label,
                captured_at=self._now_fn(),
            )
            count = len(branch_store)

        if result.outcome == RotationOutcome.DISCARDED:
            message = f"No changes since the last snapshot on branch '{branch}'"
        elif result.outcome == RotationOutcome.STORED_AFTER_EVICTION:
            message = f"Snapshot saved on branch '{branch}', evicted {', '.join(result.evicted)}"
        else:
            message = f"Snapshot saved on branch '{branch}'"
        return CaptureResponse(
            status="success",
            message=message,
            outcome=result.outcome,
            branch=branch,
            filename=result.filename,
            evicted=result.evicted,
            count=count,
        )

    def get_status(self) -> StatusResponse:
        """Report every stored branch with its count, newest capture and liveness.

        An unusable scheduler does not fail the report; the watch state is
        then marked unknown in ``details``.
        """
        live = self.repository.live_branches()
        checked_out = self._checked_out()
        summaries = cleanup.summarize(self.store, self.store.stored_branches(), live, checked_out)
        details: dict[str, Any] = {}
        try:
            schedule = self.watcher.schedule()
        except DiffSnapError as exc:
            if exc.code != ErrorCode.SCHEDULER_ERROR:
                raise
            logger.warning("Watch state unavailable: %s", exc.message)
            schedule = ""
            details = {"watch_state": "unknown", "scheduler_error": exc.message}
        return StatusResponse(
            status="success",
            message=f"{len(summaries)} branch(es) with snapshots",
            current_branch=checked_out,
            output_dir=str(self.store.root),
            max_snapshots=self.config.max_snapshots,
            watched=bool(schedule),
            schedule=schedule,
            branches=summaries,
            details=details,
        )

    def cleanup_candidates(self, branch: str | None = None) -> CleanupResponse:
        """Return the branches a clean would delete, without deleting anything."""
        live = self.repository.live_branches()
        checked_out = self._checked_out()
        if branch is not None:
            if not classify_named(self.store, branch):
                return CleanupResponse(
                    status="success",
                    message=f"No snapshots stored for branch '{branch}'",
                    error_code=ErrorCode.BRANCH_NOT_FOUND.value,
                    mode=CleanupMode.NAMED,
                    details={"branch": branch},
                )
            return CleanupResponse(
                status="success",
                message=f"Branch '{branch}' selected for removal",
                mode=CleanupMode.NAMED,
                candidates=cleanup.summarize(self.store, [branch], live, checked_out),
            )

        classification = classify(self.store.stored_branches(), live)
        candidates = cleanup.summarize(self.store, classification.obsolete, live, checked_out)
        return CleanupResponse(
            status="success",
            message=f"{len(candidates)} obsolete branch(es) found",
            mode=CleanupMode.OBSOLETE,
            candidates=candidates,
        )

    def clean(self, confirm: cleanup.Confirm, branch: str | None = None) -> CleanupResponse:
        """Delete obsolete branches, or one named branch, once ``confirm`` agrees."""
        response = self.cleanup_candidates(branch)
        if not response.candidates:
            return response
        deleted = cleanup.execute(self.store, response.candidates, confirm)
        if not deleted:
            return response.model_copy(update={"message": "Cleanup cancelled; nothing deleted"})
        return response.model_copy(
            update={
                "message": f"Deleted snapshots of {len(deleted)} branch(es)",
                "deleted": deleted,
                "confirmed": True,
            }
        )

    def watch(self, request: WatchRequest) -> WatchResponse:
        schedule = request.schedule()
        changed = self.watcher.register(schedule)
        return WatchResponse(
            status="success",
            message=f"Watching with schedule '{schedule}'" if changed else "Already watching",
            watched=True,
            schedule=schedule,
            command=self.watcher.command,
            changed=changed,
        )

    def unwatch(self) -> WatchResponse:
        changed = self.watcher.deregister()
        return WatchResponse(
            status="success",
            message="Watch job removed" if changed else "Not watching; nothing to remove",
            watched=False,
            command=self.watcher.command,
            changed=changed,
        )

    def get_config(self) -> dict[str, Any]:
        """Return effective configuration values."""
        values = self.config.to_file_payload()
        values["output_dir"] = str(self.store.root)
        return values

    def set_config(self, key: str, value: Any) -> dict[str, Any]:
        """Validate and persist one key; the running engine keeps its loaded config."""
        updated = update_config(self.config, key, value, self.config_path, self.file_manager)
        return updated.to_file_payload()
