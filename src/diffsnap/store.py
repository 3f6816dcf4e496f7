"""On-disk snapshot store: one directory of timestamped patch files per branch."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from .constants import SNAPSHOT_SUFFIX, TIMESTAMP_FORMAT
from .errors import DiffSnapError, ErrorCode
from .file_manager import FileManager

logger = logging.getLogger(__name__)

SNAPSHOT_NAME_PATTERN = re.compile(
    r"^(?P<stamp>\d{8}-\d{6})(?:-(?P<label>.+))?" + re.escape(SNAPSHOT_SUFFIX) + r"$"
)


@dataclass(frozen=True)
class Snapshot:
    """One stored diff file. Ordering is carried by the timestamp in its name."""

    path: Path
    stamp: str
    label: str | None
    mtime_ns: int

    @property
    def name(self) -> str:
        return self.path.name

    @property
    def captured_at(self) -> datetime:
        return datetime.strptime(self.stamp, TIMESTAMP_FORMAT)

    def sort_key(self) -> tuple[str, int, str]:
        return (self.stamp, self.mtime_ns, self.path.name)


def snapshot_filename(captured_at: datetime, label: str | None = None) -> str:
    stamp = captured_at.strftime(TIMESTAMP_FORMAT)
    if label:
        return f"{stamp}-{label}{SNAPSHOT_SUFFIX}"
    return f"{stamp}{SNAPSHOT_SUFFIX}"


class BranchStore:
    """Snapshots of a single branch, always listed live from disk."""

    def __init__(self, branch: str, path: Path, file_manager: FileManager) -> None:
        self.branch = branch
        self.path = path
        self.file_manager = file_manager

    def snapshots(self) -> list[Snapshot]:
        """Return stored snapshots ordered oldest first."""
        if not self.path.is_dir():
            return []
        found: list[Snapshot] = []
        for entry in self.path.iterdir():
            match = SNAPSHOT_NAME_PATTERN.match(entry.name)
            if match is None or not entry.is_file():
                continue
            found.append(
                Snapshot(
                    path=entry,
                    stamp=match.group("stamp"),
                    label=match.group("label"),
                    mtime_ns=entry.stat().st_mtime_ns,
                )
            )
        return sorted(found, key=Snapshot.sort_key)

    def __len__(self) -> int:
        return len(self.snapshots())

    def newest(self) -> Snapshot | None:
        items = self.snapshots()
        return items[-1] if items else None

    def oldest(self) -> Snapshot | None:
        items = self.snapshots()
        return items[0] if items else None

    def read(self, snapshot: Snapshot) -> str:
        return self.file_manager.read_text(snapshot.path)

    def stage(self, payload: str) -> Path:
        """Write ``payload`` to a scratch file that is invisible to listings."""
        return self.file_manager.write_scratch(self.path, payload)

    def commit(self, scratch: Path, filename: str) -> Path:
        target = self.path / filename
        self.file_manager.promote(scratch, target)
        return target

    def abandon(self, scratch: Path) -> None:
        self.file_manager.discard(scratch)

    def delete(self, snapshot: Snapshot) -> None:
        self.file_manager.discard(snapshot.path)
        logger.info("Evicted snapshot %s from branch %s", snapshot.name, self.branch)


class SnapshotStore:
    """All branch stores beneath one output root."""

    def __init__(self, root: Path, file_manager: FileManager | None = None) -> None:
        self.root = root
        self.file_manager = file_manager or FileManager()

    def branch(self, name: str) -> BranchStore:
        return BranchStore(name, self._branch_path(name), self.file_manager)

    def stored_branches(self) -> list[str]:
        """Return names of every branch directory that holds at least one snapshot."""
        if not self.root.is_dir():
            return []
        names: list[str] = []
        for directory in sorted(p for p in self.root.rglob("*") if p.is_dir()):
            if any(
                SNAPSHOT_NAME_PATTERN.match(entry.name) and entry.is_file()
                for entry in directory.iterdir()
            ):
                names.append(directory.relative_to(self.root).as_posix())
        return names

    def has_branch(self, name: str) -> bool:
        return len(self.branch(name)) > 0

    def remove_branch(self, name: str) -> None:
        """Irreversibly delete every snapshot stored for ``name``.

        Only snapshot files directly inside the branch directory are removed;
        nested directories belong to other branches (``feature`` vs ``feature/x``).
        """
        branch_store = self.branch(name)
        for snapshot in branch_store.snapshots():
            self.file_manager.discard(snapshot.path)
        self.file_manager.prune_empty_parents(branch_store.path, self.root.resolve())
        logger.info("Deleted snapshots of branch %s", name)

    def _branch_path(self, name: str) -> Path:
        """Build a branch path constrained to the output root."""
        if not name or name.startswith("/") or "\x00" in name:
            raise DiffSnapError(
                ErrorCode.INVALID_BRANCH_NAME,
                f"Invalid branch name '{name}'",
                "Use a branch name as listed by `git branch`.",
            )
        root = self.root.resolve()
        path = (self.root / name).resolve()
        if path == root or root not in path.parents:
            raise DiffSnapError(
                ErrorCode.INVALID_BRANCH_NAME,
                f"Invalid branch name '{name}'",
                "Branch names must stay inside the snapshot output directory.",
            )
        return path
