"""Watch-job registration against the user's crontab."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path
from typing import Protocol

from .errors import DiffSnapError, ErrorCode

logger = logging.getLogger(__name__)


class JobTable(Protocol):
    """Ordered list of scheduler lines that can be read and rewritten wholesale."""

    def read(self) -> list[str]: ...

    def write(self, lines: list[str]) -> None: ...


class CrontabJobTable:
    """The per-user crontab, accessed through the ``crontab`` binary.

    Reads and writes are not locked against concurrent external edits;
    the last writer wins.
    """

    def __init__(self, binary: str = "crontab") -> None:
        self.binary = binary

    def read(self) -> list[str]:
        result = self._run([self.binary, "-l"])
        if result.returncode != 0:
            if "no crontab" in result.stderr.lower():
                return []
            raise DiffSnapError(
                ErrorCode.SCHEDULER_ERROR,
                f"Unable to read crontab: {result.stderr.strip()}",
                "Check that cron is installed and usable by this user.",
            )
        return result.stdout.splitlines()

    def write(self, lines: list[str]) -> None:
        content = "".join(f"{line}\n" for line in lines)
        result = self._run([self.binary, "-"], content)
        if result.returncode != 0:
            raise DiffSnapError(
                ErrorCode.SCHEDULER_ERROR,
                f"Unable to write crontab: {result.stderr.strip()}",
                "Check that cron is installed and usable by this user.",
            )

    def _run(self, argv: list[str], stdin: str | None = None) -> subprocess.CompletedProcess[str]:
        try:
            return subprocess.run(
                argv, input=stdin, capture_output=True, text=True, check=False
            )
        except FileNotFoundError as exc:
            raise DiffSnapError(
                ErrorCode.SCHEDULER_ERROR,
                f"Scheduler binary '{self.binary}' not found",
                "Install cron to use watch/unwatch.",
            ) from exc


def watch_command(repo_root: Path, command_prefix: str) -> str:
    """Return the scheduled invocation, unique to the repository's absolute path.

    cron turns an unescaped ``%`` into a newline, so every ``%`` is written as ``\\%``.
    """
    command = f"cd {shlex.quote(str(repo_root.resolve()))} && {command_prefix} run"
    return command.replace("%", r"\%")


class WatchController:
    """Register, replace or remove the single watch job of one repository."""

    def __init__(self, table: JobTable, command: str) -> None:
        self.table = table
        self.command = command

    def _matching(self, lines: list[str]) -> list[str]:
        return [line for line in lines if self.command in line]

    def is_watched(self) -> bool:
        return bool(self._matching(self.table.read()))

    def schedule(self) -> str:
        """Return the schedule of the registered job, or an empty string."""
        for line in self.table.read():
            if self.command in line:
                return line[: line.index(self.command)].strip()
        return ""

    def register(self, schedule: str) -> bool:
        """Install the job with ``schedule``; return whether the crontab changed."""
        lines = self.table.read()
        entry = f"{schedule} {self.command}"
        kept = [line for line in lines if self.command not in line]
        if len(kept) == len(lines) - 1 and entry in lines:
            logger.info("Watch job already registered with schedule %s", schedule)
            return False
        self.table.write([*kept, entry])
        logger.info("Registered watch job: %s", entry)
        return True

    def deregister(self) -> bool:
        """Remove the job; return False when it was not registered."""
        lines = self.table.read()
        kept = [line for line in lines if self.command not in line]
        if len(kept) == len(lines):
            return False
        self.table.write(kept)
        logger.info("Removed watch job for command %s", self.command)
        return True
