from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

import pytest
from git import Repo


class MemoryJobTable:
    """In-memory stand-in for the user's crontab."""

    def __init__(self, lines: list[str] | None = None) -> None:
        self.lines = list(lines or [])
        self.writes = 0

    def read(self) -> list[str]:
        return list(self.lines)

    def write(self, lines: list[str]) -> None:
        self.lines = list(lines)
        self.writes += 1


class StepClock:
    """Returns a new datetime one minute later on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2024, 3, 1, 9, 0, 0)

    def __call__(self) -> datetime:
        value = self.current
        self.current += timedelta(minutes=1)
        return value


@pytest.fixture()
def job_table() -> MemoryJobTable:
    return MemoryJobTable()


@pytest.fixture()
def clock() -> StepClock:
    return StepClock()


@pytest.fixture()
def git_repo(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Repo:
    for key in ("GIT_AUTHOR_NAME", "GIT_COMMITTER_NAME"):
        monkeypatch.setenv(key, "Snapshot Tester")
    for key in ("GIT_AUTHOR_EMAIL", "GIT_COMMITTER_EMAIL"):
        monkeypatch.setenv(key, "tester@example.com")
    monkeypatch.delenv("DIFFSNAP_LOG_LEVEL", raising=False)
    monkeypatch.delenv("DIFFSNAP_COMMAND", raising=False)

    root = tmp_path / "repo"
    root.mkdir()
    repo = Repo.init(root)
    (root / "README.md").write_text("old line\n", encoding="utf-8")
    (root / ".gitignore").write_text("*.log\n", encoding="utf-8")
    repo.index.add(["README.md", ".gitignore"])
    repo.index.commit("initial commit")
    repo.git.branch("-M", "main")
    return repo
