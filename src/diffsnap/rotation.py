"""Rotation policy: dedup against the newest snapshot, evict the oldest on overflow."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from .models import RotationOutcome
from .store import BranchStore, snapshot_filename

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RotationResult:
    outcome: RotationOutcome
    filename: str = ""
    evicted: list[str] = field(default_factory=list)


def apply(
    store: BranchStore,
    blob: str,
    max_count: int,
    label: str | None = None,
    captured_at: datetime | None = None,
) -> RotationResult:
    """Persist ``blob`` into ``store`` unless it repeats the newest snapshot.

    When the store already holds ``max_count`` snapshots the oldest ones are
    removed first, regardless of content. The payload is staged to a scratch
    file before any eviction so a failed write leaves the store untouched.
    A write that lands on an existing filename (same second, same label)
    replaces that file and does not evict.
    """
    if max_count < 1:
        raise ValueError("max_count must be at least 1")

    existing = store.snapshots()
    if existing and store.read(existing[-1]) == blob:
        logger.info(
            "Discarded capture for branch %s: identical to %s", store.branch, existing[-1].name
        )
        return RotationResult(outcome=RotationOutcome.DISCARDED)

    filename = snapshot_filename(captured_at or datetime.now(), label)
    scratch = store.stage(blob)
    evicted: list[str] = []
    try:
        replacing = any(snapshot.name == filename for snapshot in existing)
        if not replacing:
            overflow = len(existing) - max_count + 1
            for snapshot in existing[: max(0, overflow)]:
                store.delete(snapshot)
                evicted.append(snapshot.name)
        store.commit(scratch, filename)
    except BaseException:
        store.abandon(scratch)
        raise

    logger.info("Stored snapshot %s for branch %s", filename, store.branch)
    if evicted:
        return RotationResult(
            outcome=RotationOutcome.STORED_AFTER_EVICTION, filename=filename, evicted=evicted
        )
    return RotationResult(outcome=RotationOutcome.STORED, filename=filename)
