"""Summarise and delete the stored snapshots of cleanup candidates."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable

from .models import BranchSummary
from .store import SnapshotStore

logger = logging.getLogger(__name__)

Confirm = Callable[[list[BranchSummary]], bool]


def summarize(
    store: SnapshotStore,
    names: Iterable[str],
    live: set[str],
    checked_out: str = "",
) -> list[BranchSummary]:
    """Describe each branch by snapshot count and newest capture time."""
    summaries: list[BranchSummary] = []
    for name in sorted(names):
        snapshots = store.branch(name).snapshots()
        latest = ""
        if snapshots:
            latest = snapshots[-1].captured_at.strftime("%Y-%m-%d %H:%M:%S")
        summaries.append(
            BranchSummary(
                name=name,
                count=len(snapshots),
                latest=latest,
                current=name == checked_out,
                obsolete=name not in live,
            )
        )
    return summaries


def execute(store: SnapshotStore, candidates: list[BranchSummary], confirm: Confirm) -> list[str]:
    """Delete every candidate after ``confirm`` approves the whole batch.

    Deletions are not rolled back: if one fails, earlier ones stay deleted.
    """
    if not candidates or not confirm(candidates):
        return []
    deleted: list[str] = []
    for candidate in candidates:
        store.remove_branch(candidate.name)
        deleted.append(candidate.name)
    logger.info("Cleaned snapshots of %d branch(es)", len(deleted))
    return deleted
