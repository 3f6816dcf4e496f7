"""Git working-tree access: repository discovery, diff capture and live branches."""

from __future__ import annotations

import logging
import os
from pathlib import Path

from git import GitCommandError, InvalidGitRepositoryError, NoSuchPathError, Repo

from .errors import DiffSnapError, ErrorCode

logger = logging.getLogger(__name__)


class GitRepository:
    """Read-only view over the repository that snapshots are taken from."""

    def __init__(self, repo: Repo) -> None:
        self.repo = repo

    @classmethod
    def discover(cls, directory: str | os.PathLike[str] = ".") -> "GitRepository":
        """Locate the repository containing ``directory`` or fail with NOT_A_REPOSITORY."""
        try:
            repo = Repo(directory, search_parent_directories=True)
        except (InvalidGitRepositoryError, NoSuchPathError) as exc:
            raise DiffSnapError(
                ErrorCode.NOT_A_REPOSITORY,
                f"Not inside a git repository: {Path(directory).resolve()}",
                "Run diffsnap from a git working tree.",
            ) from exc
        if repo.bare:
            raise DiffSnapError(
                ErrorCode.NOT_A_REPOSITORY,
                f"Repository at {repo.git_dir} has no working tree",
                "Run diffsnap from a non-bare git working tree.",
            )
        return cls(repo)

    @property
    def root(self) -> Path:
        return Path(self.repo.working_tree_dir).resolve()

    @property
    def git_dir(self) -> Path:
        return Path(self.repo.git_dir).resolve()

    def current_branch(self) -> str:
        """Return the checked-out branch name; a detached HEAD is an error."""
        try:
            return self.repo.active_branch.name
        except TypeError as exc:
            raise DiffSnapError(
                ErrorCode.MISSING_PREREQUISITE,
                "HEAD is detached; snapshots are stored per branch",
                "Check out a branch before capturing.",
            ) from exc

    def live_branches(self) -> set[str]:
        return {head.name for head in self.repo.heads}

    def capture(self, exclude: Path | None = None) -> str:
        """Return one diff blob covering tracked and untracked changes.

        Untracked files below ``exclude`` (the snapshot output directory, when it
        lives inside the working tree) are left out.
        """
        if not self.repo.head.is_valid():
            raise DiffSnapError(
                ErrorCode.MISSING_PREREQUISITE,
                "Repository has no commits yet; cannot diff against HEAD",
                "Create an initial commit first.",
            )
        try:
            tracked = self.repo.git.diff("HEAD", strip_newline_in_stdout=False)
            listing = self.repo.git.ls_files("--others", "--exclude-standard", "-z")
        except GitCommandError as exc:
            raise DiffSnapError(
                ErrorCode.MISSING_PREREQUISITE,
                str(exc.stderr or exc).strip(),
                "Resolve the git error above and retry.",
            ) from exc

        parts = [tracked]
        untracked = [name for name in listing.split("\x00") if name]
        if exclude is not None:
            untracked = [name for name in untracked if not self._is_below(name, exclude)]
        for name in untracked:
            # git exits 1 when --no-index finds a difference, which is always here.
            parts.append(
                self.repo.git.diff(
                    "--no-index",
                    "--",
                    os.devnull,
                    name,
                    with_exceptions=False,
                    strip_newline_in_stdout=False,
                )
            )
        logger.debug("Captured diff with %d untracked file(s)", len(untracked))
        return "".join(parts)

    def _is_below(self, name: str, directory: Path) -> bool:
        path = (self.root / name).resolve()
        return path == directory or directory in path.parents
